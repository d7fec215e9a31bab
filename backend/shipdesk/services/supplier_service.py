# Overview: Supplier directory; every inward receive references one supplier.

"""
Supplier Service

Suppliers are referenced by stock movements, so they are never deleted.
Deactivating a supplier hides it from the default listing and blocks new
receives against it; the movement history keeps pointing at the row.
"""

from __future__ import annotations

from sqlalchemy import or_

from ..extensions import db
from ..errors import NotFoundError
from ..models import Supplier
from ..validation import ModelValidationPolicy, ValidationError, validate_payload
from .audit_service import append_audit_log
from .concurrency import lock_for_update, run_with_retry


SUPPLIER_POLICY = ModelValidationPolicy(
    writable_fields={
        "name": "name",
        "contactPerson": "contact_person",
        "email": "email",
        "phone": "phone",
        "address": "address",
        "gstNumber": "gst_number",
        "isActive": "is_active",
    },
    required_on_create=frozenset({"name"}),
)


def _check_name(patch: dict) -> None:
    if "name" in patch and not patch["name"]:
        raise ValidationError(details=["name cannot be empty"])


def _lock_supplier(supplier_id: int) -> Supplier:
    supplier = lock_for_update(db.session.query(Supplier).filter_by(id=supplier_id)).first()
    if supplier is None:
        raise NotFoundError("Supplier")
    return supplier


def list_suppliers(*, include_inactive: bool = False, search: str | None = None) -> list[Supplier]:
    q = db.session.query(Supplier)
    if not include_inactive:
        q = q.filter(Supplier.is_active.is_(True))
    if search and search.strip():
        like = f"%{search.strip()}%"
        q = q.filter(or_(
            Supplier.name.ilike(like),
            Supplier.contact_person.ilike(like),
            Supplier.gst_number.ilike(like),
        ))
    return q.order_by(Supplier.name, Supplier.id).all()


def get_supplier(supplier_id: int) -> Supplier:
    supplier = db.session.get(Supplier, supplier_id)
    if supplier is None:
        raise NotFoundError("Supplier")
    return supplier


def create_supplier(payload: dict, *, actor_user_id: int | None) -> Supplier:
    patch = validate_payload(model=Supplier, payload=payload, policy=SUPPLIER_POLICY, partial=False)
    _check_name(patch)

    def _op():
        supplier = Supplier(**patch)
        db.session.add(supplier)
        db.session.flush()

        append_audit_log(
            user_id=actor_user_id,
            action="create",
            module="suppliers",
            entity_type="supplier",
            entity_id=supplier.id,
            new_data=supplier.to_dict(),
        )
        db.session.commit()
        return supplier

    return run_with_retry(_op)


def update_supplier(supplier_id: int, payload: dict, *, actor_user_id: int | None) -> Supplier:
    """Partial update; only keys present in payload change."""
    patch = validate_payload(model=Supplier, payload=payload, policy=SUPPLIER_POLICY, partial=True)
    _check_name(patch)

    def _op():
        supplier = _lock_supplier(supplier_id)
        old = supplier.to_dict()
        for key, value in patch.items():
            setattr(supplier, key, value)
        db.session.flush()

        append_audit_log(
            user_id=actor_user_id,
            action="update",
            module="suppliers",
            entity_type="supplier",
            entity_id=supplier.id,
            old_data=old,
            new_data=supplier.to_dict(),
        )
        db.session.commit()
        return supplier

    return run_with_retry(_op)


def deactivate_supplier(supplier_id: int, *, actor_user_id: int | None) -> Supplier:
    """Soft delete. Deactivating an inactive supplier is a no-op."""

    def _op():
        supplier = _lock_supplier(supplier_id)
        if supplier.is_active:
            supplier.is_active = False
            append_audit_log(
                user_id=actor_user_id,
                action="deactivate",
                module="suppliers",
                entity_type="supplier",
                entity_id=supplier.id,
                old_data={"isActive": True},
                new_data={"isActive": False},
            )
        db.session.commit()
        return supplier

    return run_with_retry(_op)
