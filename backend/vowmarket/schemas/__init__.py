from .user import UserCreate, UserUpdate, UserResponse, Token
from .vendor import (
    PriceRange,
    VendorServiceItem,
    VendorCreate,
    VendorUpdate,
    VendorAdminUpdate,
    VendorProfile,
    VendorPage,
    normalize_vendor,
)
from .payment import PaymentMethod, PaymentMethodDetails, PaymentDetails, PaymentRequest, PaymentResult
from .booking import (
    TimeSlot,
    BookingDraft,
    BookingDraftCreate,
    BookingCreate,
    BookingStatusUpdate,
    BookingResponse,
)
from .review import ReviewCreate, ReviewAuthor, ReviewResponse
from .wishlist import WishlistResponse, WishlistMembership
