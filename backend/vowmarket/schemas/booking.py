import re
from datetime import date as DateType, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, computed_field, field_validator, model_validator

from ..models.booking_status import BookingStatus
from .payment import PaymentDetails

_HHMM = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class TimeSlot(BaseModel):
    model_config = ConfigDict(frozen=True)

    start: str
    end: str

    @field_validator("start", "end")
    @classmethod
    def _hhmm(cls, v: str) -> str:
        if not _HHMM.match(v):
            raise ValueError("time must be HH:MM (24h)")
        return v

    @model_validator(mode="after")
    def _ordered(self) -> "TimeSlot":
        if self.end <= self.start:
            raise ValueError("time slot end must be after start")
        return self

    def __str__(self) -> str:
        return f"{self.start}-{self.end}"


class BookingDraft(BaseModel):
    """Validated booking request that has not been paid for or persisted."""

    model_config = ConfigDict(frozen=True)

    user_id: int
    vendor_id: int
    date: DateType
    time_slot: TimeSlot
    notes: str = ""


# Properties to receive on the booking form (step one)
class BookingDraftCreate(BaseModel):
    vendor_id: int
    date: DateType
    time_slot: TimeSlot
    notes: Optional[str] = None


# Booking form plus the payment step
class BookingCreate(BookingDraftCreate):
    payment: PaymentDetails


class BookingStatusUpdate(BaseModel):
    status: BookingStatus


class BookingResponse(BaseModel):
    id: int
    user_id: int
    vendor_id: int
    date: DateType
    slot_start: str
    slot_end: str
    notes: str
    status: BookingStatus
    transaction_id: Optional[str] = None
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    payment_method: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {
        "from_attributes": True
    }

    @computed_field  # type: ignore[misc]
    @property
    def time_slot(self) -> TimeSlot:
        return TimeSlot(start=self.slot_start, end=self.slot_end)
