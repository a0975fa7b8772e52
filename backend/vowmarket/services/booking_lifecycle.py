"""Booking lifecycle: draft → payment → pending booking → status transitions.

Payment always happens before the booking row exists. Either the charge
succeeds and exactly one ``pending`` booking is written, or no booking is
written at all. The one gap between those two steps (charge captured, write
failed) is raised as ``Inconsistency`` and handed to a
``ReconciliationReporter`` instead of being retried.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeout
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Callable, List, Optional, Protocol

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ..core.config import Settings, settings
from ..crud import crud_booking, crud_vendor
from ..models import Booking, BookingStatus, UserRole, Vendor
from ..schemas.booking import BookingDraft, TimeSlot
from ..schemas.payment import PaymentDetails, PaymentRequest, PaymentResult
from .exceptions import (
    BookingAccessDenied,
    Inconsistency,
    InvalidTransition,
    NotFound,
    PaymentFailed,
    ValidationError,
)
from .payment_gateway import PaymentGateway, PaymentGatewayError, PaymentGatewayTimeout

logger = logging.getLogger(__name__)

# Vendors do not publish their own availability yet; every vendor offers these.
PUBLISHED_TIME_SLOTS = (
    TimeSlot(start="09:00", end="11:00"),
    TimeSlot(start="11:00", end="13:00"),
    TimeSlot(start="14:00", end="16:00"),
    TimeSlot(start="16:00", end="18:00"),
)

# (actor capacity, current status, requested status)
ALLOWED_TRANSITIONS = frozenset({
    (UserRole.USER, BookingStatus.PENDING, BookingStatus.CANCELLED),
    (UserRole.USER, BookingStatus.CONFIRMED, BookingStatus.CANCELLED),
    (UserRole.VENDOR, BookingStatus.PENDING, BookingStatus.CONFIRMED),
    (UserRole.VENDOR, BookingStatus.PENDING, BookingStatus.CANCELLED),
    (UserRole.VENDOR, BookingStatus.CONFIRMED, BookingStatus.COMPLETED),
})

_payment_executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="payment")


@dataclass(frozen=True)
class Actor:
    """Who is asking, and in which capacity (customer ``USER`` or ``VENDOR``)."""

    user_id: int
    role: UserRole


def resolve_actor(booking: Booking, user_id: int, role: UserRole) -> Actor:
    """Capacity a caller acts in for one booking.

    The booking's customer acts as ``USER`` and the owner of the booked vendor
    as ``VENDOR``, whatever their account role. Anyone else keeps their account
    role and is rejected by ``transition_status``.
    """
    if role != UserRole.ADMIN:
        if booking.user_id == user_id:
            return Actor(user_id, UserRole.USER)
        if booking.vendor is not None and booking.vendor.user_id == user_id:
            return Actor(user_id, UserRole.VENDOR)
    return Actor(user_id, role)


class ReconciliationReporter(Protocol):
    def report(self, inconsistency: Inconsistency) -> None:
        ...


class LoggingReconciliationReporter:
    """Default reporter: one ERROR record per captured-but-unbooked charge."""

    def report(self, inconsistency: Inconsistency) -> None:
        logger.error(
            "booking.reconciliation_required",
            extra={
                "transaction_id": inconsistency.transaction_id,
                "amount": str(inconsistency.amount),
                "currency": inconsistency.currency,
                "user_id": inconsistency.user_id,
                "vendor_id": inconsistency.vendor_id,
                "cause": repr(inconsistency.cause) if inconsistency.cause else None,
            },
        )


class BookingLifecycleManager:
    def __init__(
        self,
        db: Session,
        gateway: PaymentGateway,
        *,
        config: Settings = settings,
        reporter: Optional[ReconciliationReporter] = None,
        today: Optional[Callable[[], date]] = None,
        time_slots: tuple = PUBLISHED_TIME_SLOTS,
    ) -> None:
        self.db = db
        self.gateway = gateway
        self.config = config
        self.reporter = reporter or LoggingReconciliationReporter()
        self._today = today or date.today
        self.time_slots = time_slots

    # ─── Step 1: draft ─────────────────────────────────────────────────────
    def initiate_booking(
        self,
        user_id: int,
        vendor_id: int,
        booking_date: date,
        time_slot: Any,
        notes: Optional[str] = None,
    ) -> BookingDraft:
        """Validate the booking form and return an unpersisted draft."""
        slot = self._coerce_slot(time_slot)
        self._check_date(booking_date)
        if slot not in self.time_slots:
            raise ValidationError(
                f"Time slot {slot} is not offered by this vendor.",
                {"time_slot": "unavailable"},
            )
        notes = (notes or "").strip()
        if len(notes) > self.config.BOOKING_NOTES_MAX_LENGTH:
            raise ValidationError(
                f"Notes must not exceed {self.config.BOOKING_NOTES_MAX_LENGTH} characters.",
                {"notes": "too_long"},
            )
        self._bookable_vendor(vendor_id)
        return BookingDraft(
            user_id=user_id,
            vendor_id=vendor_id,
            date=booking_date,
            time_slot=slot,
            notes=notes,
        )

    # ─── Step 2: pay, then persist ─────────────────────────────────────────
    def authorize_and_create(self, draft: BookingDraft, payment: PaymentDetails) -> Booking:
        """Charge the vendor's minimum price and store a ``pending`` booking.

        Raises ``PaymentFailed`` when nothing was charged and nothing stored,
        and ``Inconsistency`` when the charge went through but the booking
        write failed.
        """
        # The draft may have been created on an earlier day
        self._check_date(draft.date)
        vendor = self._bookable_vendor(draft.vendor_id)
        amount = Decimal(vendor.price_min or 0)
        currency = self.config.DEFAULT_CURRENCY

        request = PaymentRequest(
            amount=amount,
            currency=currency,
            method=payment.method,
            method_details=payment.method_details(),
            description=f"Booking for {vendor.name} on {draft.date:%d %b %Y}",
        )
        result = self._charge(request, draft)
        if not result.success:
            logger.info(
                "booking.payment_declined user_id=%s vendor_id=%s error=%s",
                draft.user_id,
                draft.vendor_id,
                result.error,
            )
            raise PaymentFailed(result.error or "Payment failed")

        booking = Booking(
            user_id=draft.user_id,
            vendor_id=draft.vendor_id,
            date=draft.date,
            slot_start=draft.time_slot.start,
            slot_end=draft.time_slot.end,
            notes=draft.notes,
            status=BookingStatus.PENDING,
            transaction_id=result.transaction_id,
            amount=amount,
            currency=currency,
            payment_method=payment.method.value,
        )
        try:
            self.db.add(booking)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            inconsistency = Inconsistency(
                transaction_id=result.transaction_id or "",
                amount=amount,
                currency=currency,
                user_id=draft.user_id,
                vendor_id=draft.vendor_id,
                cause=exc,
            )
            self.reporter.report(inconsistency)
            raise inconsistency from exc
        self.db.refresh(booking)
        logger.info(
            "booking.created id=%s user_id=%s vendor_id=%s transaction_id=%s",
            booking.id,
            booking.user_id,
            booking.vendor_id,
            booking.transaction_id,
        )
        return booking

    # ─── Step 3: status transitions ────────────────────────────────────────
    def transition_status(self, booking_id: int, actor: Actor, new_status: Any) -> Booking:
        try:
            requested = BookingStatus(new_status)
        except ValueError:
            raise ValidationError(f"Unknown booking status {new_status!r}.", {"status": "invalid"})

        booking = self.get_booking(booking_id)
        self._check_party(booking, actor)

        current = booking.status
        if current.is_terminal:
            raise InvalidTransition(
                f"Booking is {current.value} and can no longer change.",
                {"status": "terminal"},
            )
        if (actor.role, current, requested) not in ALLOWED_TRANSITIONS:
            raise InvalidTransition(
                f"A {actor.role.value} cannot move a booking from {current.value} to {requested.value}.",
                {"status": "not_allowed"},
            )

        booking.status = requested
        try:
            self.db.commit()
        except StaleDataError:
            self.db.rollback()
            raise InvalidTransition(
                "Booking was changed by someone else; reload and try again.",
                {"status": "stale"},
            )
        self.db.refresh(booking)
        return booking

    # ─── Reads ─────────────────────────────────────────────────────────────
    def get_booking(self, booking_id: int) -> Booking:
        booking = crud_booking.booking.get(self.db, booking_id)
        if booking is None:
            raise NotFound(f"Booking {booking_id} not found.", {"booking_id": "not_found"})
        return booking

    def list_for_user(self, user_id: int) -> List[Booking]:
        return crud_booking.booking.list_by_user(self.db, user_id)

    def list_for_vendor(self, vendor_id: int) -> List[Booking]:
        return crud_booking.booking.list_by_vendor(self.db, vendor_id)

    # ─── Helpers ───────────────────────────────────────────────────────────
    @staticmethod
    def _coerce_slot(time_slot: Any) -> TimeSlot:
        if isinstance(time_slot, TimeSlot):
            return time_slot
        try:
            if isinstance(time_slot, str):
                start, _, end = time_slot.partition("-")
                return TimeSlot(start=start.strip(), end=end.strip())
            return TimeSlot.model_validate(time_slot)
        except PydanticValidationError:
            raise ValidationError("Please select a valid time slot.", {"time_slot": "invalid"})

    def _check_date(self, booking_date: date) -> None:
        today = self._today()
        # Same-day bookings are not taken; the earliest date is tomorrow.
        if booking_date <= today:
            raise ValidationError("Booking date must be in the future.", {"date": "past"})
        if booking_date > today + timedelta(days=self.config.BOOKING_HORIZON_DAYS):
            raise ValidationError(
                f"Bookings can be made at most {self.config.BOOKING_HORIZON_DAYS} days ahead.",
                {"date": "too_far"},
            )

    def _bookable_vendor(self, vendor_id: int) -> Vendor:
        vendor = crud_vendor.vendor.get(self.db, vendor_id)
        if vendor is None:
            raise NotFound(f"Vendor {vendor_id} not found.", {"vendor_id": "not_found"})
        if not vendor.is_approved:
            raise ValidationError("This vendor is not accepting bookings yet.", {"vendor_id": "not_approved"})
        return vendor

    def _check_party(self, booking: Booking, actor: Actor) -> None:
        if actor.role == UserRole.USER:
            if booking.user_id != actor.user_id:
                raise BookingAccessDenied("You can only change your own bookings.", {"booking_id": "forbidden"})
        elif actor.role == UserRole.VENDOR:
            if booking.vendor is None or booking.vendor.user_id != actor.user_id:
                raise BookingAccessDenied("This booking is not for your vendor profile.", {"booking_id": "forbidden"})
        else:
            raise InvalidTransition(
                f"A {actor.role.value} cannot change booking status.",
                {"status": "not_allowed"},
            )

    def _charge(self, request: PaymentRequest, draft: BookingDraft) -> PaymentResult:
        """Run the gateway call under ``PAYMENT_TIMEOUT_SECONDS``."""
        timeout = self.config.PAYMENT_TIMEOUT_SECONDS
        future = _payment_executor.submit(self.gateway.process, request)
        try:
            return future.result(timeout=timeout)
        except FuturesTimeout:
            # A call still queued behind busy workers must never reach the gateway
            started = not future.cancel()
            if started:
                future.add_done_callback(self._late_charge_callback(request, draft))
            logger.warning(
                "booking.payment_timeout gateway=%s timeout_s=%s user_id=%s vendor_id=%s started=%s",
                self.gateway.name,
                timeout,
                draft.user_id,
                draft.vendor_id,
                started,
            )
            raise PaymentFailed("The payment did not complete in time. You have not been booked.", timed_out=True)
        except PaymentGatewayTimeout as exc:
            logger.warning("booking.payment_timeout gateway=%s error=%s", self.gateway.name, exc)
            raise PaymentFailed(str(exc), timed_out=True) from exc
        except PaymentGatewayError as exc:
            logger.warning("booking.payment_error gateway=%s error=%s", self.gateway.name, exc)
            raise PaymentFailed(str(exc)) from exc

    def _late_charge_callback(self, request: PaymentRequest, draft: BookingDraft) -> Callable[[Future], None]:
        """Report a charge that succeeded after we had already given up on it."""
        reporter = self.reporter

        def _on_done(future: Future) -> None:
            if future.cancelled() or future.exception() is not None:
                return
            result = future.result()
            if result.success:
                reporter.report(
                    Inconsistency(
                        transaction_id=result.transaction_id or "",
                        amount=request.amount,
                        currency=request.currency,
                        user_id=draft.user_id,
                        vendor_id=draft.vendor_id,
                    )
                )

        return _on_done
