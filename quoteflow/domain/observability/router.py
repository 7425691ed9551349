"""Observability router - aggregated application errors"""

from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session

from ...database import get_db
from ...error_aggregator import ErrorAggregator
from ...models import User
from ...permissions import require_permission
from ...responses import ok

router = APIRouter(prefix="/api/observability", tags=["Observability"])


class ErrorAggregateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    fingerprint: str
    error_type: Optional[str] = None
    message: str
    path: Optional[str] = None
    count: int
    first_seen: datetime
    last_seen: datetime
    resolved: bool
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None
    context: Optional[dict[str, Any]] = None


def get_aggregator(db: Session = Depends(get_db)) -> ErrorAggregator:
    return ErrorAggregator(db)


def serialize_aggregate(aggregate) -> dict:
    return ErrorAggregateResponse.model_validate(aggregate).model_dump()


@router.get("/errors")
async def list_errors(
    sort: str = Query("top", pattern="^(top|recent)$"),
    resolved: bool = False,
    limit: int = Query(10, ge=1, le=100),
    user: User = Depends(require_permission("observability:read")),
    aggregator: ErrorAggregator = Depends(get_aggregator),
):
    if sort == "recent":
        errors = aggregator.get_recent_errors(limit, resolved)
    else:
        errors = aggregator.get_top_errors(limit, resolved)
    return ok([serialize_aggregate(e) for e in errors])


@router.get("/errors/stats")
async def get_error_stats(
    user: User = Depends(require_permission("observability:read")),
    aggregator: ErrorAggregator = Depends(get_aggregator),
):
    return ok(aggregator.get_stats())


@router.delete("/errors/resolved")
async def cleanup_resolved_errors(
    days: int = Query(30, ge=1, le=365),
    user: User = Depends(require_permission("observability:write")),
    aggregator: ErrorAggregator = Depends(get_aggregator),
):
    return ok({"deleted": aggregator.cleanup_resolved_errors(days)})


@router.get("/errors/{fingerprint}")
async def get_error(
    fingerprint: str,
    user: User = Depends(require_permission("observability:read")),
    aggregator: ErrorAggregator = Depends(get_aggregator),
):
    aggregate = aggregator.get_aggregate(fingerprint)
    if not aggregate:
        raise HTTPException(status_code=404, detail="Error aggregate not found")
    return ok(serialize_aggregate(aggregate))


@router.post("/errors/{fingerprint}/resolve")
async def resolve_error(
    fingerprint: str,
    user: User = Depends(require_permission("observability:write")),
    aggregator: ErrorAggregator = Depends(get_aggregator),
):
    if not aggregator.resolve_error(fingerprint, resolved_by=user.email):
        raise HTTPException(status_code=404, detail="Error aggregate not found")
    return ok({"fingerprint": fingerprint, "resolved": True})


@router.post("/errors/{fingerprint}/reopen")
async def reopen_error(
    fingerprint: str,
    user: User = Depends(require_permission("observability:write")),
    aggregator: ErrorAggregator = Depends(get_aggregator),
):
    if not aggregator.reopen_error(fingerprint):
        raise HTTPException(status_code=404, detail="Error aggregate not found")
    return ok({"fingerprint": fingerprint, "resolved": False})


__all__ = ["router"]
