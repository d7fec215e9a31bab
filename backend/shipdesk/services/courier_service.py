# Overview: Courier partner directory used by dispatch and replacement dispatch.

from __future__ import annotations

from ..extensions import db
from ..errors import NotFoundError
from ..models import COURIER_TYPES, CourierPartner
from ..validation import ModelValidationPolicy, ValidationError, validate_payload
from .audit_service import append_audit_log
from .concurrency import lock_for_update, run_with_retry


COURIER_POLICY = ModelValidationPolicy(
    writable_fields={
        "name": "name",
        "code": "code",
        "type": "type",
        "contactPerson": "contact_person",
        "phone": "phone",
        "isActive": "is_active",
    },
    required_on_create=frozenset({"name", "code", "type"}),
    choices={"type": COURIER_TYPES},
)


def _normalize(patch: dict, *, courier_id: int | None = None) -> dict:
    """Upper-case the code and enforce its uniqueness. Codes are matched case-insensitively."""
    errors = []
    if "name" in patch and not patch["name"]:
        errors.append("name cannot be empty")
    if "type" in patch and patch["type"] is None:
        errors.append("type cannot be empty")
    if "code" in patch:
        code = (patch["code"] or "").upper()
        if not code:
            errors.append("code cannot be empty")
        else:
            q = db.session.query(CourierPartner).filter(CourierPartner.code == code)
            if courier_id is not None:
                q = q.filter(CourierPartner.id != courier_id)
            if q.first() is not None:
                errors.append(f"Courier code {code} already exists")
        patch["code"] = code
    if errors:
        raise ValidationError(details=errors)
    return patch


def _lock_courier(courier_id: int) -> CourierPartner:
    courier = lock_for_update(db.session.query(CourierPartner).filter_by(id=courier_id)).first()
    if courier is None:
        raise NotFoundError("Courier partner")
    return courier


def list_couriers(*, include_inactive: bool = False, courier_type: str | None = None) -> list[CourierPartner]:
    if courier_type is not None and courier_type not in COURIER_TYPES:
        raise ValidationError(details=[f"type must be one of: {', '.join(sorted(COURIER_TYPES))}"])

    q = db.session.query(CourierPartner)
    if not include_inactive:
        q = q.filter(CourierPartner.is_active.is_(True))
    if courier_type:
        q = q.filter(CourierPartner.type == courier_type)
    return q.order_by(CourierPartner.name, CourierPartner.id).all()


def get_courier(courier_id: int) -> CourierPartner:
    courier = db.session.get(CourierPartner, courier_id)
    if courier is None:
        raise NotFoundError("Courier partner")
    return courier


def create_courier(payload: dict, *, actor_user_id: int | None) -> CourierPartner:
    patch = validate_payload(model=CourierPartner, payload=payload, policy=COURIER_POLICY, partial=False)

    def _op():
        courier = CourierPartner(**_normalize(dict(patch)))
        db.session.add(courier)
        db.session.flush()

        append_audit_log(
            user_id=actor_user_id,
            action="create",
            module="couriers",
            entity_type="courier_partner",
            entity_id=courier.id,
            new_data=courier.to_dict(),
        )
        db.session.commit()
        return courier

    return run_with_retry(_op)


def update_courier(courier_id: int, payload: dict, *, actor_user_id: int | None) -> CourierPartner:
    """
    Partial update. Orders already dispatched keep their courier_partner_id;
    switching type only affects later dispatches.
    """
    patch = validate_payload(model=CourierPartner, payload=payload, policy=COURIER_POLICY, partial=True)

    def _op():
        courier = _lock_courier(courier_id)
        changes = _normalize(dict(patch), courier_id=courier.id)
        old = courier.to_dict()
        for key, value in changes.items():
            setattr(courier, key, value)
        db.session.flush()

        append_audit_log(
            user_id=actor_user_id,
            action="update",
            module="couriers",
            entity_type="courier_partner",
            entity_id=courier.id,
            old_data=old,
            new_data=courier.to_dict(),
        )
        db.session.commit()
        return courier

    return run_with_retry(_op)


def deactivate_courier(courier_id: int, *, actor_user_id: int | None) -> CourierPartner:
    """Soft delete: inactive partners are rejected by dispatch but stay on past orders."""

    def _op():
        courier = _lock_courier(courier_id)
        if courier.is_active:
            courier.is_active = False
            append_audit_log(
                user_id=actor_user_id,
                action="deactivate",
                module="couriers",
                entity_type="courier_partner",
                entity_id=courier.id,
                old_data={"isActive": True},
                new_data={"isActive": False},
            )
        db.session.commit()
        return courier

    return run_with_retry(_op)
