# backend/vowmarket/models/user.py

from sqlalchemy import Boolean, Column, Integer, String
from sqlalchemy.orm import relationship
from .base import BaseModel
from .types import CaseInsensitiveEnum
import enum

class UserRole(str, enum.Enum):
    """Roles a caller can resolve to. ``GUEST`` is never stored."""

    GUEST = "guest"
    USER = "user"
    VENDOR = "vendor"
    ADMIN = "admin"

class User(BaseModel):
    __tablename__ = "users"

    id               = Column(Integer, primary_key=True, index=True)
    email            = Column(String, unique=True, index=True, nullable=False)
    password         = Column(String, nullable=False)
    display_name     = Column(String, nullable=False, default="")
    role             = Column(CaseInsensitiveEnum(UserRole, name="userrole"), nullable=False, default=UserRole.USER)
    phone_number     = Column(String, nullable=True)
    city             = Column(String, nullable=True)
    photo_url        = Column(String, nullable=True)
    profile_complete = Column(Boolean, default=False)
    is_active        = Column(Boolean, default=True)

    # ↔–↔ A vendor-role user owns at most one vendor profile
    vendor_profile = relationship("Vendor", back_populates="owner", uselist=False)
