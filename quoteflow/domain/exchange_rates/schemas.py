"""Exchange rate schemas"""

import datetime as dt
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict

Currency = Literal["TWD", "USD", "EUR", "JPY", "CNY"]


class ExchangeRateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    from_currency: str
    to_currency: str
    rate: float
    date: dt.date
    source: Optional[str] = None


class SyncResult(BaseModel):
    currency: str
    success: bool
    timestamp: dt.datetime
