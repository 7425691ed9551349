"""Exchange rate router"""

import datetime as dt

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ...database import get_db
from ...models import User
from ...permissions import require_permission
from ...rate_limiter import create_rate_limiter
from ...responses import ok
from .schemas import Currency
from .service import ExchangeRateService

router = APIRouter(prefix="/api/exchange-rates", tags=["Exchange Rates"])

# Upstream API quota is shared by every tenant
sync_limit = create_rate_limiter(limit=5, window_seconds=3600, key_prefix="exchange_rates_sync", use_ip=False)


def get_exchange_rate_service(db: Session = Depends(get_db)) -> ExchangeRateService:
    """Dependency injection for ExchangeRateService"""
    return ExchangeRateService(db)


@router.get("")
async def get_exchange_rates(
    base: Currency = "USD",
    user: User = Depends(require_permission("exchange_rates:read")),
    service: ExchangeRateService = Depends(get_exchange_rate_service),
):
    return ok({"base_currency": base, "rates": await service.get_exchange_rates(base)})


@router.get("/convert")
async def convert_amount(
    amount: float = Query(..., ge=0),
    from_currency: Currency = Query(..., alias="from"),
    to_currency: Currency = Query(..., alias="to"),
    user: User = Depends(require_permission("exchange_rates:read")),
    service: ExchangeRateService = Depends(get_exchange_rate_service),
):
    return ok(await service.convert(amount, from_currency, to_currency))


@router.get("/history/{rate_date}")
async def get_rates_by_date(
    rate_date: dt.date,
    base: Currency = "USD",
    user: User = Depends(require_permission("exchange_rates:read")),
    service: ExchangeRateService = Depends(get_exchange_rate_service),
):
    rates = service.get_rates_by_date(rate_date, base)
    if rates is None:
        raise HTTPException(status_code=404, detail=f"No exchange rates for {rate_date}")
    return ok({"base_currency": base, "date": rate_date, "rates": rates})


@router.post("/sync")
async def sync_exchange_rates(
    _: None = Depends(sync_limit),
    user: User = Depends(require_permission("exchange_rates:write")),
    service: ExchangeRateService = Depends(get_exchange_rate_service),
):
    results = await service.sync_all()
    synced = sum(1 for r in results if r["success"])
    return ok(results, f"Synced {synced} out of {len(results)} currencies")


__all__ = ["router"]
