# Overview: Permission resolution for authenticated users.

from ..extensions import db
from ..models import User


class PermissionDeniedError(Exception):
    """Raised when user lacks required permission."""
    pass


def get_user_permissions(user_id: int) -> set[str]:
    """
    Permission codes granted to the user through their role.
    """
    user = db.session.get(User, user_id)
    if user is None or user.role is None:
        return set()
    return user.role.permission_codes()


def user_has_permission(user: User, permission_code: str) -> bool:
    if user.is_super_admin:
        return True
    return permission_code in get_user_permissions(user.id)


def require_permission(user: User, permission_code: str) -> None:
    """Raise PermissionDeniedError unless user holds permission_code."""
    if not user_has_permission(user, permission_code):
        raise PermissionDeniedError(f"Permission denied: {permission_code}")
