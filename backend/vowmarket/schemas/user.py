from pydantic import BaseModel, ConfigDict, EmailStr, Field
from typing import Annotated, Literal, Optional

from ..models.user import UserRole


class UserCreate(BaseModel):
    email: EmailStr
    password: Annotated[str, Field(min_length=8, max_length=72)]
    display_name: Annotated[str, Field(min_length=1, max_length=80)]
    # Admin registration is gated by the ADMIN_EMAILS allowlist
    role: Literal["user", "vendor", "admin"] = "user"
    phone_number: Optional[str] = None
    city: Optional[str] = None


class UserUpdate(BaseModel):
    """Profile edits. Email and role are not editable; an empty string clears a field."""

    model_config = ConfigDict(extra="forbid")

    display_name: Optional[Annotated[str, Field(min_length=1, max_length=80)]] = None
    phone_number: Optional[Annotated[str, Field(max_length=20)]] = None
    city: Optional[Annotated[str, Field(max_length=80)]] = None
    photo_url: Optional[Annotated[str, Field(max_length=500)]] = None


class UserResponse(BaseModel):
    id: int
    email: str
    display_name: str
    role: UserRole
    photo_url: Optional[str] = None
    phone_number: Optional[str] = None
    city: Optional[str] = None
    profile_complete: bool = False

    model_config = {"from_attributes": True}


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse
