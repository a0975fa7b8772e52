from sqlalchemy.orm import Session
from typing import List, Optional

from .. import models


class CRUDBooking:
    def get(self, db: Session, booking_id: int) -> Optional[models.Booking]:
        return db.query(models.Booking).filter(models.Booking.id == booking_id).first()

    def list_by_user(self, db: Session, user_id: int, skip: int = 0, limit: int = 100) -> List[models.Booking]:
        return (
            db.query(models.Booking)
            .filter(models.Booking.user_id == user_id)
            .order_by(models.Booking.date.desc(), models.Booking.id.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def list_by_vendor(self, db: Session, vendor_id: int, skip: int = 0, limit: int = 100) -> List[models.Booking]:
        return (
            db.query(models.Booking)
            .filter(models.Booking.vendor_id == vendor_id)
            .order_by(models.Booking.date.desc(), models.Booking.id.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def has_completed(self, db: Session, user_id: int, vendor_id: int) -> bool:
        return (
            db.query(models.Booking.id)
            .filter(
                models.Booking.user_id == user_id,
                models.Booking.vendor_id == vendor_id,
                models.Booking.status == models.BookingStatus.COMPLETED,
            )
            .first()
            is not None
        )


booking = CRUDBooking()
