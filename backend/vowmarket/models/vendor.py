# backend/vowmarket/models/vendor.py

from sqlalchemy import Boolean, Column, Float, ForeignKey, Integer, JSON, Numeric, String, Text
from sqlalchemy.orm import relationship

from .base import BaseModel


class Vendor(BaseModel):
    __tablename__ = "vendors"

    id            = Column(Integer, primary_key=True, index=True)
    # One profile per vendor account
    user_id       = Column(Integer, ForeignKey("users.id"), index=True, unique=True, nullable=False)
    name          = Column(String, nullable=False)
    category      = Column(String, index=True, nullable=False)
    description   = Column(Text, nullable=True)
    city          = Column(String, index=True, nullable=True)
    address       = Column(String, nullable=True)
    phone_number  = Column(String, nullable=True)
    email         = Column(String, nullable=True)
    website       = Column(String, nullable=True)
    price_min     = Column(Numeric(12, 2), nullable=False, default=0)
    price_max     = Column(Numeric(12, 2), nullable=False, default=0)
    cover_image   = Column(String, nullable=True)
    gallery_images = Column(JSON, nullable=True)
    services      = Column(JSON, nullable=True)
    is_approved   = Column(Boolean, default=False, index=True)
    is_featured   = Column(Boolean, default=False)

    # Aggregate fields. Written only by services.rating_aggregator.
    rating        = Column(Float, nullable=False, default=0.0)
    review_count  = Column(Integer, nullable=False, default=0)

    # Optimistic concurrency counter; every UPDATE checks and bumps it.
    version_id    = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version_id}

    owner    = relationship("User", back_populates="vendor_profile")
    bookings = relationship("Booking", back_populates="vendor")
    reviews  = relationship("Review", back_populates="vendor")
