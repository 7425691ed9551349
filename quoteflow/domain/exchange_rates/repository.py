"""Exchange rate repository"""

from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from ...models import ExchangeRate


class ExchangeRateRepository:
    """Repository for exchange rate database operations"""

    @staticmethod
    def get_latest(db: Session, base_currency: str) -> list[ExchangeRate]:
        """Rates of the most recent day synced for the base currency"""
        latest = (
            db.query(ExchangeRate.date)
            .filter(ExchangeRate.from_currency == base_currency)
            .order_by(ExchangeRate.date.desc())
            .first()
        )
        if not latest:
            return []
        return ExchangeRateRepository.get_by_date(db, base_currency, latest[0])

    @staticmethod
    def get_by_date(db: Session, base_currency: str, rate_date: date) -> list[ExchangeRate]:
        return (
            db.query(ExchangeRate)
            .filter(ExchangeRate.from_currency == base_currency, ExchangeRate.date == rate_date)
            .order_by(ExchangeRate.to_currency)
            .all()
        )

    @staticmethod
    def get_rate(db: Session, from_currency: str, to_currency: str, rate_date: date) -> Optional[ExchangeRate]:
        return (
            db.query(ExchangeRate)
            .filter(
                ExchangeRate.from_currency == from_currency,
                ExchangeRate.to_currency == to_currency,
                ExchangeRate.date == rate_date,
            )
            .first()
        )

    @staticmethod
    def upsert_rates(db: Session, rows: list[dict]) -> int:
        """Insert or update rates keyed by (from_currency, to_currency, date)"""
        for row in rows:
            existing = ExchangeRateRepository.get_rate(db, row["from_currency"], row["to_currency"], row["date"])
            if existing:
                existing.rate = row["rate"]
                existing.source = row.get("source")
            else:
                db.add(ExchangeRate(**row))
        db.commit()
        return len(rows)
