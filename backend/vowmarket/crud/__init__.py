from .crud_user import user
from .crud_vendor import vendor
from .crud_booking import booking
from .crud_review import review
from .crud_wishlist import wishlist

# Usage: `crud.vendor.get(db, vendor_id)`
