"""
Error aggregation

Unhandled errors are grouped by a fingerprint so repeated occurrences of the
same failure increment one row instead of flooding the store.
"""

import hashlib
import logging
import re
import traceback
from datetime import datetime, timedelta
from typing import Any, Optional, Union

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from .models import ErrorAggregate
from .utils.pii_redactor import redact_pii

logger = logging.getLogger(__name__)

UUID_RE = re.compile(r"\b[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}\b", re.I)
HEX_RE = re.compile(r"\b(?:0x)?[0-9a-f]{8,}\b", re.I)
NUMBER_RE = re.compile(r"\d+")
LINE_NUMBER_RE = re.compile(r", line \d+|:\d+(?::\d+)?")


def normalize_message(message: str) -> str:
    """Collapse the variable parts of a message (ids, hex, numbers)"""
    normalized = UUID_RE.sub("<uuid>", message or "")
    normalized = HEX_RE.sub("<hex>", normalized)
    normalized = NUMBER_RE.sub("<n>", normalized)
    return normalized.strip()


def first_stack_frame(stack: Optional[str]) -> str:
    """First meaningful frame line of a stack trace, without line numbers"""
    if not stack:
        return ""
    for line in stack.splitlines():
        line = line.strip()
        if line.startswith("File ") or line.startswith("at "):
            return LINE_NUMBER_RE.sub("", line)
    return ""


def extract_error_info(error: BaseException) -> dict:
    frames = traceback.extract_tb(error.__traceback__) if error.__traceback__ else []
    # The innermost frame is where the error was raised
    stack = "".join(traceback.format_list(list(reversed(frames)))) if frames else None
    return {
        "message": str(error) or type(error).__name__,
        "error_type": type(error).__name__,
        "stack": stack,
    }


def get_error_fingerprint(info: dict) -> str:
    parts = [
        info.get("error_type") or "",
        normalize_message(info.get("message", "")),
        first_stack_frame(info.get("stack")),
    ]
    return hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()


class ErrorAggregator:
    """Deduplicating error store backed by the error_aggregates table"""

    def __init__(self, db: Session):
        self.db = db

    def record_error(
        self,
        error: Union[BaseException, dict],
        path: Optional[str] = None,
        context: Optional[dict] = None,
    ) -> dict:
        """Insert a new aggregate or bump the count of an existing one"""
        info = extract_error_info(error) if isinstance(error, BaseException) else dict(error)
        fingerprint = get_error_fingerprint(info)
        now = datetime.utcnow()

        existing = (
            self.db.query(ErrorAggregate).filter(ErrorAggregate.fingerprint == fingerprint).first()
        )
        if existing:
            existing.count = ErrorAggregate.count + 1
            existing.last_seen = now
            self.db.commit()
            self.db.refresh(existing)
            return {"fingerprint": fingerprint, "is_new": False, "count": existing.count}

        aggregate = ErrorAggregate(
            fingerprint=fingerprint,
            error_type=info.get("error_type"),
            message=redact_pii(info.get("message", "")),
            stack_trace=info.get("stack"),
            path=path,
            count=1,
            first_seen=now,
            last_seen=now,
            resolved=False,
            context=context,
        )
        self.db.add(aggregate)
        self.db.commit()
        logger.info(f"📊 New error aggregate {fingerprint[:12]}: {aggregate.message[:100]}")
        return {"fingerprint": fingerprint, "is_new": True, "count": 1}

    def get_aggregate(self, fingerprint: str) -> Optional[ErrorAggregate]:
        return self.db.query(ErrorAggregate).filter(ErrorAggregate.fingerprint == fingerprint).first()

    def get_top_errors(self, limit: int = 10, resolved: bool = False) -> list[ErrorAggregate]:
        return (
            self.db.query(ErrorAggregate)
            .filter(ErrorAggregate.resolved == resolved)
            .order_by(ErrorAggregate.count.desc(), ErrorAggregate.last_seen.desc())
            .limit(limit)
            .all()
        )

    def get_recent_errors(self, limit: int = 10, resolved: bool = False) -> list[ErrorAggregate]:
        return (
            self.db.query(ErrorAggregate)
            .filter(ErrorAggregate.resolved == resolved)
            .order_by(ErrorAggregate.last_seen.desc())
            .limit(limit)
            .all()
        )

    def resolve_error(self, fingerprint: str, resolved_by: Optional[str] = None) -> bool:
        aggregate = self.get_aggregate(fingerprint)
        if not aggregate:
            return False
        aggregate.resolved = True
        aggregate.resolved_at = datetime.utcnow()
        aggregate.resolved_by = resolved_by
        self.db.commit()
        return True

    def reopen_error(self, fingerprint: str) -> bool:
        aggregate = self.get_aggregate(fingerprint)
        if not aggregate:
            return False
        aggregate.resolved = False
        aggregate.resolved_at = None
        aggregate.resolved_by = None
        self.db.commit()
        return True

    def cleanup_resolved_errors(self, days_ago: int = 30) -> int:
        """Delete aggregates resolved more than days_ago days ago"""
        cutoff = datetime.utcnow() - timedelta(days=days_ago)
        deleted = (
            self.db.query(ErrorAggregate)
            .filter(ErrorAggregate.resolved.is_(True), ErrorAggregate.resolved_at < cutoff)
            .delete(synchronize_session=False)
        )
        self.db.commit()
        if deleted:
            logger.info(f"🧹 Removed {deleted} resolved error aggregates older than {days_ago} days")
        return deleted

    def get_stats(self) -> dict[str, Any]:
        row = self.db.query(
            func.count(ErrorAggregate.id),
            func.sum(case((ErrorAggregate.resolved.is_(False), 1), else_=0)),
            func.sum(case((ErrorAggregate.resolved.is_(True), 1), else_=0)),
            func.sum(ErrorAggregate.count),
        ).one()
        return {
            "total_errors": row[0] or 0,
            "unresolved_errors": int(row[1] or 0),
            "resolved_errors": int(row[2] or 0),
            "total_occurrences": int(row[3] or 0),
        }
