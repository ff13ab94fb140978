from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class PickupOrderCreate(BaseModel):
    vendor_id: Optional[int] = None
    dropping_point_id: int
    category: str
    quantity: int
    # Order total; computed from the current unit price when omitted.
    price: Optional[Decimal] = None
    phone_number: str
    comment: str = ""
    image: Optional[str] = None


class PickupOrderStatusUpdateIn(BaseModel):
    status: str
    assigned_to: Optional[int] = None
    expected_status: Optional[str] = None
    completion_notes: Optional[str] = None


class OrderCompletionIn(BaseModel):
    completion_notes: str = ""


class OrderCompletionOut(BaseModel):
    id: int
    order_id: int
    completed_by: int
    completion_notes: str = ""
    completed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PickupOrderOut(BaseModel):
    id: int
    order_id: Optional[str] = None
    vendor_id: int
    vendor_name: Optional[str] = None
    dropping_point_id: int
    location_name: Optional[str] = None
    category: str
    quantity: int
    price: Decimal
    phone_number: str
    comment: str = ""
    image: Optional[str] = None
    image_url: Optional[str] = None
    status: str
    assigned_to: Optional[int] = None
    assigned_to_name: Optional[str] = None
    status_updated_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class PickupOrderReconciliationOut(BaseModel):
    completion_without_status: List[PickupOrderOut] = Field(default_factory=list)
    status_without_completion: List[PickupOrderOut] = Field(default_factory=list)


class UploadOut(BaseModel):
    filename: str
    image_url: str
