from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class DroppingPointBase(BaseModel):
    location_name: str = Field(min_length=1)
    address: str = ""


class DroppingPointCreate(DroppingPointBase):
    pass


class DroppingPointUpdate(BaseModel):
    location_name: Optional[str] = Field(default=None, min_length=1)
    address: Optional[str] = None


class DroppingPointOut(DroppingPointBase):
    id: int
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
