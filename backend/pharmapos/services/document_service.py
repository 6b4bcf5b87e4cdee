# Overview: Human-readable document numbers for sales and returns.

from __future__ import annotations

from sqlalchemy import func

from ..extensions import db


def next_document_number(model, prefix: str, width: int = 6) -> str:
    """
    Next sequential number for a document table, e.g. "S-000124".

    Derived from the highest existing number. Two writers racing can pick
    the same number; the unique constraint on document_number rejects the
    loser and run_with_retry re-runs its whole operation with a fresh number.
    """
    last = (
        db.session.query(func.max(model.document_number))
        .filter(model.document_number.like(f"{prefix}-%"))
        .scalar()
    )
    last_seq = int(last.split("-", 1)[1]) if last else 0
    return f"{prefix}-{str(last_seq + 1).zfill(width)}"
