from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import List, Optional

from .. import crud
from ..database import get_db
from ..models.user import UserRole
from ..schemas.vendor import (
    VendorCreate,
    VendorPage,
    VendorProfile,
    VendorUpdate,
    normalize_vendor,
)
from ..services.identity import Principal
from ..utils import error_response
from .dependencies import get_optional_principal, require_role

router = APIRouter(tags=["vendors"])


def _profile_exists() -> HTTPException:
    return error_response(
        "You already have a vendor profile.",
        {"vendor": "exists"},
        status.HTTP_409_CONFLICT,
    )


def _can_see_unapproved(vendor, principal: Principal) -> bool:  # noqa: ANN001
    return principal.role == UserRole.ADMIN or vendor.user_id == principal.user_id


@router.get("/vendors", response_model=List[VendorProfile])
def search_vendors(
    q: Optional[str] = Query(None, max_length=100),
    category: Optional[str] = None,
    city: Optional[str] = None,
    limit: int = Query(crud.crud_vendor.PAGE_LIMIT, ge=1, le=50),
    db: Session = Depends(get_db),
):
    vendors = crud.vendor.search(db, q=q, category=category, city=city, limit=limit)
    return [normalize_vendor(v) for v in vendors]


@router.get("/vendors/featured", response_model=List[VendorProfile])
def featured_vendors(
    limit: int = Query(crud.crud_vendor.FEATURED_LIMIT, ge=1, le=50),
    db: Session = Depends(get_db),
):
    return [normalize_vendor(v) for v in crud.vendor.featured(db, limit=limit)]


@router.get("/vendors/category/{category}", response_model=VendorPage)
def vendors_by_category(
    category: str,
    after: Optional[int] = Query(None, description="Vendor id the previous page ended with"),
    limit: int = Query(crud.crud_vendor.PAGE_LIMIT, ge=1, le=50),
    db: Session = Depends(get_db),
):
    vendors, next_cursor = crud.vendor.by_category(db, category, after=after, limit=limit)
    return VendorPage(vendors=[normalize_vendor(v) for v in vendors], next_cursor=next_cursor)


@router.get("/vendors/me", response_model=VendorProfile)
def my_vendor_profile(
    principal: Principal = Depends(require_role(UserRole.VENDOR)),
    db: Session = Depends(get_db),
):
    vendor = crud.vendor.get_by_user(db, principal.user_id)
    if vendor is None:
        raise error_response(
            "Vendor profile does not exist. Please create one.",
            {"vendor": "not_found"},
            status.HTTP_404_NOT_FOUND,
        )
    return normalize_vendor(vendor)


@router.get("/vendors/{vendor_id}", response_model=VendorProfile)
def read_vendor(
    vendor_id: int,
    principal: Principal = Depends(get_optional_principal),
    db: Session = Depends(get_db),
):
    vendor = crud.vendor.get(db, vendor_id)
    # Unapproved profiles are only visible to their owner and admins
    if vendor is None or (not vendor.is_approved and not _can_see_unapproved(vendor, principal)):
        raise error_response("Vendor not found.", {"vendor_id": "not_found"}, status.HTTP_404_NOT_FOUND)
    return normalize_vendor(vendor)


@router.post("/vendors", response_model=VendorProfile, status_code=status.HTTP_201_CREATED)
def create_vendor_profile(
    vendor_in: VendorCreate,
    principal: Principal = Depends(require_role(UserRole.VENDOR)),
    db: Session = Depends(get_db),
):
    if crud.vendor.get_by_user(db, principal.user_id) is not None:
        raise _profile_exists()
    try:
        vendor = crud.vendor.create(db, principal.user_id, vendor_in)
    except IntegrityError:
        raise _profile_exists()
    return normalize_vendor(vendor)


@router.patch("/vendors/{vendor_id}", response_model=VendorProfile)
def update_vendor_profile(
    vendor_id: int,
    vendor_in: VendorUpdate,
    principal: Principal = Depends(require_role(UserRole.VENDOR)),
    db: Session = Depends(get_db),
):
    vendor = crud.vendor.get(db, vendor_id)
    if vendor is None:
        raise error_response("Vendor not found.", {"vendor_id": "not_found"}, status.HTTP_404_NOT_FOUND)
    if vendor.user_id != principal.user_id:
        raise error_response(
            "You can only edit your own vendor profile.",
            {},
            status.HTTP_403_FORBIDDEN,
        )
    return normalize_vendor(crud.vendor.update(db, vendor, vendor_in))
