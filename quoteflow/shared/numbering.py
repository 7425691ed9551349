"""Per-company document numbers (Q202501-0001, ORD-20250115-0001, ...)"""

import logging
from typing import Callable, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..utils.retry import with_retry

logger = logging.getLogger(__name__)

T = TypeVar("T")


def next_number(db: Session, column, company_column, company_id: int, prefix: str, width: int) -> str:
    """Next sequential number under prefix, based on the highest one in use"""
    latest = (
        db.query(column)
        .filter(company_column == company_id, column.like(f"{prefix}%"))
        .order_by(column.desc())
        .first()
    )

    sequence = 1
    if latest and latest[0]:
        try:
            sequence = int(latest[0][len(prefix):]) + 1
        except ValueError:
            logger.warning(f"⚠️ Unparseable document number {latest[0]}, restarting sequence")
    return f"{prefix}{sequence:0{width}d}"


def insert_numbered(db: Session, make_number: Callable[[], str], build: Callable[[str], T]) -> T:
    """
    Insert a row that carries a generated unique number.

    A concurrent insert of the same number fails the unique constraint, so the
    insert is retried with a freshly generated number.
    """

    def attempt() -> T:
        number = make_number()
        row = build(number)
        db.add(row)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise
        db.refresh(row)
        return row

    return with_retry(attempt)
