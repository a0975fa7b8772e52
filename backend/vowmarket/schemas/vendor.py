from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Annotated, Any, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class PriceRange(BaseModel):
    min: Annotated[Decimal, Field(ge=0)]
    max: Annotated[Decimal, Field(ge=0)]

    @model_validator(mode="after")
    def _ordered(self) -> "PriceRange":
        if self.max < self.min:
            raise ValueError("price_range.max must be greater than or equal to price_range.min")
        return self


class VendorServiceItem(BaseModel):
    name: Annotated[str, Field(min_length=1, max_length=120)]
    description: str = ""
    price: Annotated[Decimal, Field(ge=0)] = Decimal("0")


# Shared editable profile fields
class VendorBase(BaseModel):
    name: Annotated[str, Field(min_length=1, max_length=120)]
    category: Annotated[str, Field(min_length=1, max_length=60)]
    description: str = ""
    city: str = ""
    address: str = ""
    phone_number: str = ""
    email: str = ""
    website: Optional[str] = None
    price_range: PriceRange
    cover_image: Optional[str] = None
    gallery_images: List[str] = []
    services: List[VendorServiceItem] = []


class VendorCreate(VendorBase):
    """Profile submitted by a vendor-role user; created unapproved."""
    pass


class VendorUpdate(BaseModel):
    """Owner edits. Approval, featured and rating fields are not accepted."""

    model_config = ConfigDict(extra="forbid")

    name: Optional[Annotated[str, Field(min_length=1, max_length=120)]] = None
    category: Optional[Annotated[str, Field(min_length=1, max_length=60)]] = None
    description: Optional[str] = None
    city: Optional[str] = None
    address: Optional[str] = None
    phone_number: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    price_range: Optional[PriceRange] = None
    cover_image: Optional[str] = None
    gallery_images: Optional[List[str]] = None
    services: Optional[List[VendorServiceItem]] = None


class VendorAdminUpdate(BaseModel):
    is_approved: Optional[bool] = None
    is_featured: Optional[bool] = None


class VendorProfile(BaseModel):
    """Fully populated vendor value object returned to every consumer."""

    model_config = ConfigDict(frozen=True)

    id: int
    user_id: int
    name: str
    category: str
    description: str
    city: str
    address: str
    phone_number: str
    email: str
    website: Optional[str]
    price_range: PriceRange
    cover_image: Optional[str]
    gallery_images: List[str]
    services: List[VendorServiceItem]
    rating: float
    review_count: int
    is_approved: bool
    is_featured: bool
    created_at: Optional[datetime]
    updated_at: Optional[datetime]


class VendorPage(BaseModel):
    vendors: List[VendorProfile]
    next_cursor: Optional[int] = None


def _money(value: Any) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal("0")
    return amount if amount >= 0 else Decimal("0")


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _field(source: Any, name: str, default: Any = None) -> Any:
    if isinstance(source, Mapping):
        return source.get(name, default)
    return getattr(source, name, default)


def normalize_vendor(source: Any) -> VendorProfile:
    """Return a ``VendorProfile`` with every optional field filled in.

    ``source`` may be a ``models.Vendor`` row or a plain mapping (e.g. a
    legacy export). This is the only place fallbacks are applied; callers
    never re-implement them.
    """
    price_min = _money(_field(source, "price_min"))
    price_max = _money(_field(source, "price_max"))
    if price_max < price_min:
        price_max = price_min

    services = []
    for item in _field(source, "services") or []:
        if not isinstance(item, Mapping) or not _text(item.get("name")):
            continue
        services.append(
            VendorServiceItem(
                name=_text(item.get("name")),
                description=_text(item.get("description")),
                price=_money(item.get("price")),
            )
        )

    review_count = _field(source, "review_count") or 0
    try:
        review_count = max(0, int(review_count))
    except (TypeError, ValueError):
        review_count = 0
    rating = float(_field(source, "rating") or 0.0) if review_count else 0.0

    return VendorProfile(
        id=int(_field(source, "id")),
        user_id=int(_field(source, "user_id")),
        name=_text(_field(source, "name")) or "Unnamed vendor",
        category=_text(_field(source, "category")) or "other",
        description=_text(_field(source, "description")),
        city=_text(_field(source, "city")),
        address=_text(_field(source, "address")),
        phone_number=_text(_field(source, "phone_number")),
        email=_text(_field(source, "email")),
        website=_text(_field(source, "website")) or None,
        price_range=PriceRange(min=price_min, max=price_max),
        cover_image=_text(_field(source, "cover_image")) or None,
        gallery_images=[g for g in (_field(source, "gallery_images") or []) if isinstance(g, str) and g],
        services=services,
        rating=rating,
        review_count=review_count,
        is_approved=bool(_field(source, "is_approved", False)),
        is_featured=bool(_field(source, "is_featured", False)),
        created_at=_field(source, "created_at"),
        updated_at=_field(source, "updated_at"),
    )
