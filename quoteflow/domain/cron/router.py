"""
Scheduled job endpoints

Called by the platform scheduler with `Authorization: Bearer <CRON_SECRET>`.
The POST variants are manual triggers guarded by the admin API key in
production.
"""

import logging
import time
from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from sqlalchemy.orm import Session

from ... import config
from ...database import get_db
from ...webhook_security import constant_time_compare
from ..exchange_rates.service import ExchangeRateService
from ..payments.repository import PaymentRepository
from ..payments.service import PaymentService
from .notifications import send_error_notification, send_success_notification

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cron", tags=["Cron"])


def next_run_time(now: Optional[datetime] = None) -> str:
    """Next 00:00 UTC"""
    now = now or datetime.utcnow()
    tomorrow = (now + timedelta(days=1)).replace(hour=0, minute=0, second=0, microsecond=0)
    return tomorrow.isoformat() + "Z"


def elapsed_ms(started: float) -> str:
    return f"{int((time.monotonic() - started) * 1000)}ms"


async def verify_cron_secret(authorization: Optional[str] = Header(None)) -> None:
    if not config.CRON_SECRET:
        logger.error("❌ CRON_SECRET not configured")
        raise HTTPException(status_code=500, detail="CRON_SECRET not configured")
    if not constant_time_compare(authorization or "", f"Bearer {config.CRON_SECRET}"):
        raise HTTPException(status_code=401, detail="Unauthorized")


async def verify_admin_key(x_admin_api_key: Optional[str] = Header(None)) -> None:
    if config.IS_PRODUCTION and not constant_time_compare(x_admin_api_key or "", config.ADMIN_API_KEY or ""):
        raise HTTPException(status_code=401, detail="Unauthorized")


# ==========================================
# Jobs
# ==========================================


async def run_exchange_rate_sync(db: Session) -> dict:
    logger.info("🕒 Starting scheduled exchange rate sync...")
    started = time.monotonic()

    results = await ExchangeRateService(db).sync_all()
    synced = sum(1 for r in results if r["success"])

    if synced < len(results):
        failed = ", ".join(r["currency"] for r in results if not r["success"])
        await send_error_notification("Exchange Rate Sync Failed", f"Failed to sync rates for: {failed}")
    else:
        await send_success_notification(f"Exchange rates synced successfully ({synced} currencies)")

    return {
        "success": synced == len(results),
        "message": f"Synced {synced} out of {len(results)} currencies",
        "duration": elapsed_ms(started),
        "results": results,
        "nextRun": next_run_time(),
    }


async def run_mark_overdue(db: Session) -> dict:
    logger.info("🕒 Starting scheduled mark overdue payments job...")
    started = time.monotonic()

    company_ids = PaymentRepository.company_ids_with_pending_schedules(db)
    logger.info(f"📊 Found {len(company_ids)} companies with pending payment schedules")

    service = PaymentService(db)
    results = []
    for company_id in company_ids:
        try:
            counts = service.check_overdue(company_id)
            results.append({"company_id": company_id, "success": True, **counts})
        except Exception as e:
            db.rollback()
            logger.exception(f"❌ Failed to mark overdue payments for company {company_id}: {e}")
            results.append({"company_id": company_id, "success": False, "error": str(e)})

    failed = [str(r["company_id"]) for r in results if not r["success"]]
    total_updated = sum(r.get("schedules_marked", 0) for r in results)

    if failed:
        await send_error_notification(
            "Mark Overdue Payments Failed", f"Failed to mark overdue for companies: {', '.join(failed)}"
        )
    else:
        await send_success_notification(
            f"Marked {total_updated} overdue payments for {len(company_ids)} companies"
        )

    return {
        "success": not failed,
        "message": f"Marked {total_updated} overdue payment schedules across {len(company_ids)} companies",
        "duration": elapsed_ms(started),
        "results": results,
        "nextRun": next_run_time(),
    }


async def run_guarded(job, db: Session, title: str) -> dict:
    try:
        return await job(db)
    except Exception as e:
        logger.exception(f"❌ Cron job failed: {e}")
        await send_error_notification(title, str(e))
        raise HTTPException(status_code=500, detail=f"{title}: {e}") from e


# ==========================================
# Endpoints
# ==========================================


@router.get("/exchange-rates", dependencies=[Depends(verify_cron_secret)])
async def cron_exchange_rates(db: Session = Depends(get_db)):
    return await run_guarded(run_exchange_rate_sync, db, "Exchange Rate Sync Failed")


@router.post("/exchange-rates", dependencies=[Depends(verify_admin_key)])
async def trigger_exchange_rates(db: Session = Depends(get_db)):
    logger.info("🔧 Manual exchange rate sync triggered")
    return await run_guarded(run_exchange_rate_sync, db, "Exchange Rate Sync Failed")


@router.get("/mark-overdue", dependencies=[Depends(verify_cron_secret)])
async def cron_mark_overdue(db: Session = Depends(get_db)):
    return await run_guarded(run_mark_overdue, db, "Mark Overdue Payments Failed")


@router.post("/mark-overdue", dependencies=[Depends(verify_admin_key)])
async def trigger_mark_overdue(db: Session = Depends(get_db)):
    logger.info("🔧 Manual mark overdue triggered")
    return await run_guarded(run_mark_overdue, db, "Mark Overdue Payments Failed")


__all__ = ["router"]
