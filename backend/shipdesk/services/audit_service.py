# Overview: Append-only audit trail for back-office changes.

from __future__ import annotations

from flask import has_request_context, request

from ..extensions import db
from ..models import AuditLog
"""
Audit log invariants

- Append-only: rows are never updated or deleted.
- Written inside the caller's DB transaction (flush only, never commit), so an
  audit row exists exactly when the change it records was committed.
- No domain logic here.
"""


def append_audit_log(
    *,
    user_id: int | None,
    action: str,
    module: str,
    entity_type: str | None = None,
    entity_id: int | None = None,
    old_data: dict | None = None,
    new_data: dict | None = None,
) -> AuditLog:
    ip_address = request.remote_addr if has_request_context() else None

    entry = AuditLog(
        user_id=user_id,
        action=action,
        module=module,
        entity_type=entity_type,
        entity_id=entity_id,
        old_data=old_data,
        new_data=new_data,
        ip_address=ip_address,
    )
    db.session.add(entry)
    db.session.flush()
    return entry


def list_audit_logs(*, module: str | None = None, entity_type: str | None = None,
                    entity_id: int | None = None, limit: int = 200) -> list[AuditLog]:
    q = db.session.query(AuditLog)
    if module:
        q = q.filter(AuditLog.module == module)
    if entity_type:
        q = q.filter(AuditLog.entity_type == entity_type)
    if entity_id is not None:
        q = q.filter(AuditLog.entity_id == entity_id)
    return q.order_by(AuditLog.id.desc()).limit(limit).all()
