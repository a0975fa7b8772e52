from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from .. import crud
from ..database import get_db
from ..schemas.vendor import normalize_vendor
from ..schemas.wishlist import WishlistMembership, WishlistResponse
from ..services.identity import Principal
from ..utils import error_response
from .dependencies import get_current_principal

router = APIRouter(tags=["wishlist"])


def _wishlist(db: Session, user_id: int) -> WishlistResponse:
    vendor_ids = crud.wishlist.vendor_ids(db, user_id)
    vendors = []
    for vendor_id in vendor_ids:
        vendor = crud.vendor.get(db, vendor_id)
        if vendor is not None:
            vendors.append(normalize_vendor(vendor))
    return WishlistResponse(user_id=user_id, vendor_ids=vendor_ids, vendors=vendors)


@router.get("", response_model=WishlistResponse)
def read_wishlist(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return _wishlist(db, principal.user_id)


@router.get("/{vendor_id}", response_model=WishlistMembership)
def wishlist_membership(
    vendor_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return WishlistMembership(
        vendor_id=vendor_id,
        in_wishlist=crud.wishlist.contains(db, principal.user_id, vendor_id),
    )


@router.put("/{vendor_id}", response_model=WishlistResponse)
def add_to_wishlist(
    vendor_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    if crud.vendor.get(db, vendor_id) is None:
        raise error_response("Vendor not found.", {"vendor_id": "not_found"}, status.HTTP_404_NOT_FOUND)
    crud.wishlist.add(db, principal.user_id, vendor_id)
    return _wishlist(db, principal.user_id)


@router.delete("/{vendor_id}", response_model=WishlistResponse)
def remove_from_wishlist(
    vendor_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    crud.wishlist.remove(db, principal.user_id, vendor_id)
    return _wishlist(db, principal.user_id)
