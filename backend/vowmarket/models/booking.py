# backend/vowmarket/models/booking.py

from sqlalchemy import Column, Date, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from .base import BaseModel
from .booking_status import BookingStatus
from .types import CaseInsensitiveEnum

class Booking(BaseModel):
    __tablename__ = "bookings"

    id             = Column(Integer, primary_key=True, index=True)
    user_id        = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    vendor_id      = Column(Integer, ForeignKey("vendors.id"), index=True, nullable=False)
    date           = Column(Date, nullable=False, index=True)
    slot_start     = Column(String(5), nullable=False)
    slot_end       = Column(String(5), nullable=False)
    notes          = Column(String, nullable=False, default="")
    status         = Column(
        CaseInsensitiveEnum(BookingStatus, name="bookingstatus"),
        default=BookingStatus.PENDING,
        nullable=False,
        index=True,
    )
    transaction_id = Column(String, nullable=True, unique=True)
    amount         = Column(Numeric(12, 2), nullable=True)
    currency       = Column(String(3), nullable=True)
    payment_method = Column(String, nullable=True)

    # Concurrent status transitions on one booking: the second writer fails.
    version_id     = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version_id}

    # Relationships
    vendor = relationship("Vendor", back_populates="bookings")
    user   = relationship("User")
