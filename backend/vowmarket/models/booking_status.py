import enum

class BookingStatus(str, enum.Enum):
    """Booking lifecycle states. ``COMPLETED`` and ``CANCELLED`` are terminal."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (BookingStatus.COMPLETED, BookingStatus.CANCELLED)
