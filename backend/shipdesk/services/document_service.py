# Overview: Human-facing document numbers (order numbers) from atomic sequences.

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence
from ..time_utils import utcnow


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


def _allocate(sequence_key: str) -> int:
    """
    Atomically take the next number for sequence_key.

    The increment is a single UPDATE ... SET next_number = next_number + 1, so
    two concurrent callers can never receive the same number. Must be the
    first write of the caller's unit of work: the IntegrityError path rolls
    the session back.
    """
    if not sequence_key:
        raise DocumentSequenceError("sequence_key is required")

    stmt = (
        update(DocumentSequence)
        .where(DocumentSequence.sequence_key == sequence_key)
        .values(next_number=DocumentSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        db.session.flush()
        current = (
            db.session.query(DocumentSequence.next_number)
            .filter_by(sequence_key=sequence_key)
            .scalar()
        )
        return current - 1

    seq = DocumentSequence(sequence_key=sequence_key, next_number=2)
    db.session.add(seq)
    try:
        db.session.flush()
        return 1
    except IntegrityError:
        # Another writer created the row first; take a number from it.
        db.session.rollback()
        result = db.session.execute(stmt)
        if not result.rowcount:
            raise
        db.session.flush()
        current = (
            db.session.query(DocumentSequence.next_number)
            .filter_by(sequence_key=sequence_key)
            .scalar()
        )
        return current - 1


def next_order_number(year: int | None = None) -> str:
    """
    Allocate the next order number: ORD-<year>-<seq>, seq zero-padded to 5
    digits and restarting at 1 every calendar year.
    """
    year = year or utcnow().year
    seq = _allocate(f"ORDER-{year}")
    return f"ORD-{year}-{seq:05d}"
