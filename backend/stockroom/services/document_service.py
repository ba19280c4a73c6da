# Overview: Gap-free per-period document numbering (invoice numbers).

from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence, Sale
from ..time_utils import month_period


def _current_value(document_type: str, period: str) -> int:
    return (
        db.session.query(DocumentSequence.next_number)
        .filter_by(document_type=document_type, period=period)
        .scalar()
    )


def next_document_number(
    *,
    document_type: str,
    period: str,
    prefix: str,
    pad: int = 4,
    seed: int = 0,
) -> str:
    """
    Atomically allocate the next number for (document_type, period).

    Runs inside the caller's transaction, so a rolled-back document gives
    its number back. seed is the highest number already issued when the
    sequence row does not exist yet (documents created before numbering
    moved into this table).
    """
    if not document_type:
        raise ValueError("document_type is required")
    if not period:
        raise ValueError("period is required")

    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.document_type == document_type,
            DocumentSequence.period == period,
        )
        .values(next_number=DocumentSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        db.session.flush()
        next_num = _current_value(document_type, period) - 1
    else:
        next_num = seed + 1
        seq = DocumentSequence(document_type=document_type, period=period, next_number=next_num + 1)
        try:
            # Savepoint: losing the first-allocation race undoes only this insert
            with db.session.begin_nested():
                db.session.add(seq)
        except IntegrityError:
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise
            db.session.flush()
            next_num = _current_value(document_type, period) - 1

    return f"{prefix}-{period}-{next_num:0{pad}d}"


def _highest_issued_invoice(prefix: str, period: str) -> int:
    stem = f"{prefix}-{period}-"
    highest = 0
    rows = db.session.query(Sale.invoice_number).filter(Sale.invoice_number.like(f"{stem}%")).all()
    for (number,) in rows:
        suffix = number[len(stem):]
        if suffix.isdigit():
            highest = max(highest, int(suffix))
    return highest


def next_invoice_number(sold_at: datetime) -> str:
    """INV-YYYYMM-NNNN, restarting at 0001 every calendar month."""
    prefix = current_app.config.get("INVOICE_PREFIX", "INV")
    period = month_period(sold_at)
    return next_document_number(
        document_type="INVOICE",
        period=period,
        prefix=prefix,
        seed=_highest_issued_invoice(prefix, period),
    )
