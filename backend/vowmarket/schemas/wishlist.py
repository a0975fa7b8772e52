from typing import List

from pydantic import BaseModel

from .vendor import VendorProfile


class WishlistResponse(BaseModel):
    user_id: int
    vendor_ids: List[int]
    vendors: List[VendorProfile]


class WishlistMembership(BaseModel):
    vendor_id: int
    in_wishlist: bool
