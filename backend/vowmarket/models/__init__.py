from .user import User, UserRole
from .vendor import Vendor
from .booking import Booking
from .booking_status import BookingStatus
from .review import Review
from .wishlist import WishlistItem

__all__ = [
    "User",
    "UserRole",
    "Vendor",
    "Booking",
    "BookingStatus",
    "Review",
    "WishlistItem",
]
