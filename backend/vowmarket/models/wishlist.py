from sqlalchemy import Column, ForeignKey, Integer, UniqueConstraint
from .base import BaseModel


class WishlistItem(BaseModel):
    __tablename__ = "wishlist_items"
    __table_args__ = (UniqueConstraint("user_id", "vendor_id", name="uq_wishlist_user_vendor"),)

    id        = Column(Integer, primary_key=True, index=True)
    user_id   = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    vendor_id = Column(Integer, ForeignKey("vendors.id"), index=True, nullable=False)
