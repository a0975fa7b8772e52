from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Dict, List, Literal
import logging

from .. import crud
from ..database import get_db
from ..models.user import UserRole
from ..schemas.vendor import VendorAdminUpdate, VendorProfile, normalize_vendor
from ..services.identity import Principal
from ..utils import error_response
from .dependencies import require_role

logger = logging.getLogger(__name__)

router = APIRouter(tags=["admin"])

require_admin = require_role(UserRole.ADMIN)


@router.get("/dashboard", response_model=Dict[str, int])
def admin_dashboard(
    _: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return crud.vendor.dashboard_counts(db)


@router.get("/vendors", response_model=List[VendorProfile])
def admin_list_vendors(
    status_filter: Literal["pending", "approved", "all"] = Query("all", alias="status"),
    _: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return [normalize_vendor(v) for v in crud.vendor.list_for_admin(db, status_filter)]


@router.patch("/vendors/{vendor_id}", response_model=VendorProfile)
def admin_update_vendor(
    vendor_id: int,
    update_in: VendorAdminUpdate,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    vendor = crud.vendor.get(db, vendor_id)
    if vendor is None:
        raise error_response("Vendor not found.", {"vendor_id": "not_found"}, status.HTTP_404_NOT_FOUND)
    vendor = crud.vendor.set_flags(
        db,
        vendor,
        is_approved=update_in.is_approved,
        is_featured=update_in.is_featured,
    )
    logger.info(
        "admin.vendor_updated vendor_id=%s approved=%s featured=%s by=%s",
        vendor.id,
        vendor.is_approved,
        vendor.is_featured,
        principal.user_id,
    )
    return normalize_vendor(vendor)
