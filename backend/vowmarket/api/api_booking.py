from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List

from .. import crud
from ..database import get_db
from ..models.user import UserRole
from ..schemas.booking import (
    BookingCreate,
    BookingDraft,
    BookingDraftCreate,
    BookingResponse,
    BookingStatusUpdate,
)
from ..services.booking_lifecycle import BookingLifecycleManager, resolve_actor
from ..services.identity import Principal
from ..services.payment_gateway import PaymentGateway
from ..utils import error_response
from .dependencies import get_current_principal, get_payment_gateway, require_role

router = APIRouter(tags=["bookings"])


def get_booking_manager(
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
) -> BookingLifecycleManager:
    return BookingLifecycleManager(db, gateway)


@router.post("/draft", response_model=BookingDraft)
def create_booking_draft(
    draft_in: BookingDraftCreate,
    principal: Principal = Depends(get_current_principal),
    manager: BookingLifecycleManager = Depends(get_booking_manager),
):
    """Validate the booking form. Nothing is charged or stored."""
    return manager.initiate_booking(
        principal.user_id,
        draft_in.vendor_id,
        draft_in.date,
        draft_in.time_slot,
        draft_in.notes,
    )


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
def create_booking(
    booking_in: BookingCreate,
    principal: Principal = Depends(get_current_principal),
    manager: BookingLifecycleManager = Depends(get_booking_manager),
):
    """Charge the vendor's minimum price and create a pending booking."""
    draft = manager.initiate_booking(
        principal.user_id,
        booking_in.vendor_id,
        booking_in.date,
        booking_in.time_slot,
        booking_in.notes,
    )
    return manager.authorize_and_create(draft, booking_in.payment)


@router.get("/me", response_model=List[BookingResponse])
def read_my_bookings(
    principal: Principal = Depends(get_current_principal),
    manager: BookingLifecycleManager = Depends(get_booking_manager),
):
    return manager.list_for_user(principal.user_id)


@router.get("/vendor", response_model=List[BookingResponse])
def read_vendor_bookings(
    principal: Principal = Depends(require_role(UserRole.VENDOR)),
    db: Session = Depends(get_db),
    manager: BookingLifecycleManager = Depends(get_booking_manager),
):
    vendor = crud.vendor.get_by_user(db, principal.user_id)
    if vendor is None:
        raise error_response(
            "Vendor profile does not exist. Please create one.",
            {"vendor": "not_found"},
            status.HTTP_404_NOT_FOUND,
        )
    return manager.list_for_vendor(vendor.id)


@router.get("/{booking_id}", response_model=BookingResponse)
def read_booking(
    booking_id: int,
    principal: Principal = Depends(get_current_principal),
    manager: BookingLifecycleManager = Depends(get_booking_manager),
):
    booking = manager.get_booking(booking_id)
    is_party = booking.user_id == principal.user_id or (
        booking.vendor is not None and booking.vendor.user_id == principal.user_id
    )
    if not is_party and principal.role != UserRole.ADMIN:
        raise error_response(
            "You can only view your own bookings.",
            {"booking_id": "forbidden"},
            status.HTTP_403_FORBIDDEN,
        )
    return booking


@router.patch("/{booking_id}/status", response_model=BookingResponse)
def update_booking_status(
    booking_id: int,
    status_in: BookingStatusUpdate,
    principal: Principal = Depends(get_current_principal),
    manager: BookingLifecycleManager = Depends(get_booking_manager),
):
    booking = manager.get_booking(booking_id)
    actor = resolve_actor(booking, principal.user_id, principal.role)
    return manager.transition_status(booking_id, actor, status_in.status)
