from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class DailyPriceCreate(BaseModel):
    dropping_point_id: int
    category: str
    price: Decimal


class DailyPriceOut(BaseModel):
    id: int
    dropping_point_id: int
    category: str
    price: Decimal
    effective_date: date
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None
    location_name: Optional[str] = None
    created_by_name: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class DailyPriceDayOut(BaseModel):
    date: date
    prices: List[DailyPriceOut]
