# Overview: Staff accounts, password hashing and default roles.

"""
Passwords are hashed with bcrypt (cost factor 12). Login is by email.
Session tokens are handled separately (see session_service.py).
"""

import re

import bcrypt

from ..extensions import db
from ..models import User, Role, RolePermission
from ..permissions import DEFAULT_ROLE_PERMISSIONS
from ..time_utils import utcnow


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


class AuthenticationError(Exception):
    """Raised when credentials are wrong or the account is disabled."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Minimum 8 characters with at least one letter and one digit.

    Raises PasswordValidationError if requirements not met.
    """
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")
    if not re.search(r"[A-Za-z]", password):
        raise PasswordValidationError("Password must contain at least one letter")
    if not re.search(r"\d", password):
        raise PasswordValidationError("Password must contain at least one digit")


def hash_password(password: str) -> str:
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed hash in the database
        return False


def create_user(
    *,
    email: str,
    name: str,
    password: str,
    role_name: str | None = None,
    phone: str | None = None,
    is_super_admin: bool = False,
) -> User:
    email = email.strip().lower()
    if db.session.query(User).filter_by(email=email).first():
        raise ValueError(f"User with email {email} already exists")

    role = None
    if role_name:
        role = db.session.query(Role).filter_by(name=role_name).first()
        if role is None:
            raise ValueError(f"Role '{role_name}' not found")

    user = User(
        email=email,
        name=name,
        phone=phone,
        password_hash=hash_password(password),
        role_id=role.id if role else None,
        is_super_admin=is_super_admin,
    )
    db.session.add(user)
    db.session.commit()
    return user


def authenticate(email: str, password: str) -> User:
    user = db.session.query(User).filter_by(email=(email or "").strip().lower()).first()
    if user is None or not verify_password(password or "", user.password_hash):
        raise AuthenticationError("Invalid email or password")
    if not user.is_active:
        raise AuthenticationError("Account is disabled")

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def create_default_roles() -> int:
    """
    Create the default roles and grant their default permissions.

    Safe to call repeatedly (idempotent). Returns the number of permission
    grants added.
    """
    added = 0
    for role_name, codes in DEFAULT_ROLE_PERMISSIONS.items():
        role = db.session.query(Role).filter_by(name=role_name).first()
        if role is None:
            role = Role(name=role_name, is_system=True)
            db.session.add(role)
            db.session.flush()

        existing = role.permission_codes()
        for code in codes:
            if code not in existing:
                db.session.add(RolePermission(role_id=role.id, permission_code=code))
                added += 1

    db.session.commit()
    return added
