"""
Exchange rate service

Rates come from ExchangeRate-API and are stored per day. Reads go through the
KV cache first, then the database, then the API. The API key is part of the
request URL, so request errors are logged by type only.
"""

import logging
from datetime import date, datetime
from typing import Optional

import httpx
from sqlalchemy.orm import Session

from ...cache import KVCache, get_kv
from ...config import EXCHANGE_RATE_API_BASE, EXCHANGE_RATE_API_KEY
from ...shared.money import round_amount
from ...shared.validators import SUPPORTED_CURRENCIES
from .repository import ExchangeRateRepository

logger = logging.getLogger(__name__)

RATE_SOURCE = "exchangerate-api.com"
RATE_CACHE_TTL = 3600
DEFAULT_TIMEOUT = 15.0


def rates_cache_key(base_currency: str) -> str:
    return f"exchange_rates:{base_currency}"


def fallback_rates() -> dict[str, float]:
    return {currency: 1.0 for currency in SUPPORTED_CURRENCIES}


def convert_currency(amount: float, from_currency: str, to_currency: str, rates: dict) -> float:
    """Convert through USD using rates quoted against USD"""
    if from_currency == to_currency:
        return amount

    if not rates.get(to_currency) or (from_currency != "USD" and not rates.get(from_currency)):
        logger.warning(f"⚠️ No rate to convert {from_currency} -> {to_currency}")
        return amount

    usd_amount = amount if from_currency == "USD" else amount / rates[from_currency]
    return usd_amount if to_currency == "USD" else usd_amount * rates[to_currency]


def rows_to_rates(base_currency: str, rows) -> dict[str, float]:
    rates = {base_currency: 1.0}
    for row in rows:
        rates[row.to_currency] = row.rate
    return rates


async def fetch_latest_rates(base_currency: str = "USD", api_key: Optional[str] = None) -> Optional[dict]:
    """Latest API payload for the base currency, or None on any failure"""
    api_key = api_key or EXCHANGE_RATE_API_KEY
    if not api_key:
        logger.error("❌ EXCHANGE_RATE_API_KEY is not set")
        return None

    url = f"{EXCHANGE_RATE_API_BASE}/{api_key}/latest/{base_currency}"
    try:
        async with httpx.AsyncClient(timeout=DEFAULT_TIMEOUT) as client:
            response = await client.get(url)
        response.raise_for_status()
        data = response.json()
    except httpx.HTTPStatusError as e:
        logger.error(f"❌ Exchange rate request failed for {base_currency}: HTTP {e.response.status_code}")
        return None
    except (httpx.HTTPError, ValueError) as e:
        logger.error(f"❌ Exchange rate request failed for {base_currency}: {type(e).__name__}")
        return None

    if data.get("result") != "success":
        logger.error(f"❌ Exchange rate API returned result={data.get('result')} for {base_currency}")
        return None
    return data


class ExchangeRateService:
    """Service layer for exchange rates"""

    def __init__(self, db: Session, kv: Optional[KVCache] = None):
        self.db = db
        self.kv = kv or get_kv()
        self.repo = ExchangeRateRepository()

    async def sync_rates_to_database(self, base_currency: str = "USD", today: Optional[date] = None) -> bool:
        data = await fetch_latest_rates(base_currency)
        if not data:
            return False

        today = today or datetime.utcnow().date()
        conversion_rates = data.get("conversion_rates") or {}
        rows = [
            {
                "from_currency": base_currency,
                "to_currency": currency,
                "rate": conversion_rates.get(currency) or 0,
                "date": today,
                "source": RATE_SOURCE,
            }
            for currency in SUPPORTED_CURRENCIES
            if currency != base_currency
        ]
        count = self.repo.upsert_rates(self.db, rows)
        self.kv.delete(rates_cache_key(base_currency))
        logger.info(f"✅ Synced {count} exchange rates ({base_currency} base)")
        return True

    async def sync_all(self) -> list[dict]:
        results = []
        for currency in SUPPORTED_CURRENCIES:
            logger.info(f"📊 Syncing rates for base currency: {currency}")
            success = await self.sync_rates_to_database(currency)
            results.append({"currency": currency, "success": success, "timestamp": datetime.utcnow().isoformat()})
        return results

    def get_latest_rates_from_db(self, base_currency: str = "USD") -> dict[str, float]:
        rows = self.repo.get_latest(self.db, base_currency)
        if not rows:
            return {}
        return rows_to_rates(base_currency, rows)

    def get_rates_by_date(self, rate_date: date, base_currency: str = "USD") -> Optional[dict[str, float]]:
        rows = self.repo.get_by_date(self.db, base_currency, rate_date)
        if not rows:
            logger.warning(f"⚠️ No exchange rates stored for {rate_date}")
            return None
        return rows_to_rates(base_currency, rows)

    async def get_exchange_rates(self, base_currency: str = "USD") -> dict[str, float]:
        cache_key = rates_cache_key(base_currency)
        cached = self.kv.get(cache_key)
        if cached:
            return cached

        rates = self.get_latest_rates_from_db(base_currency)
        if not rates:
            logger.info(f"🔄 No stored rates for {base_currency}, fetching from API")
            if await self.sync_rates_to_database(base_currency):
                rates = self.get_latest_rates_from_db(base_currency)

        if not rates:
            logger.warning(f"⚠️ Exchange rates unavailable for {base_currency}, using 1.0 for every currency")
            return fallback_rates()

        self.kv.set(cache_key, rates, RATE_CACHE_TTL)
        return rates

    async def convert(self, amount: float, from_currency: str, to_currency: str) -> dict:
        rates = await self.get_exchange_rates("USD")
        return {
            "amount": amount,
            "from_currency": from_currency,
            "to_currency": to_currency,
            "converted_amount": round_amount(convert_currency(amount, from_currency, to_currency, rates)),
        }
