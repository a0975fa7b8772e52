from sqlalchemy import Column, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from .base import BaseModel

class Review(BaseModel):
    __tablename__ = "reviews"

    id         = Column(Integer, primary_key=True, index=True)
    user_id    = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    vendor_id  = Column(Integer, ForeignKey("vendors.id"), index=True, nullable=False)

    rating     = Column(Integer, nullable=False)
    text       = Column(Text, nullable=False)

    # Snapshot of the author at submission time
    user_display_name = Column(String, nullable=False, default="")
    user_photo_url    = Column(String, nullable=True)

    #   Each Review belongs to exactly one Vendor
    vendor = relationship(
        "Vendor",
        back_populates="reviews"
    )
