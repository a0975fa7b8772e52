"""Domain errors raised by the booking and review services.

The HTTP layer maps these onto status codes in ``vowmarket.utils.errors``;
services never raise ``HTTPException`` themselves.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Dict, Optional


class MarketplaceError(Exception):
    """Base class for every error the core services raise."""

    def __init__(self, message: str, field_errors: Optional[Dict[str, str]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.field_errors: Dict[str, str] = dict(field_errors or {})


class ValidationError(MarketplaceError):
    """Malformed input rejected before any I/O; nothing was persisted."""


class NotFound(MarketplaceError):
    """A referenced vendor, booking or review does not exist."""


class InvalidTransition(MarketplaceError):
    """Requested status change is not allowed; the booking is unchanged."""


class BookingAccessDenied(InvalidTransition):
    """The actor is neither the booking's customer nor its vendor."""


class PaymentFailed(MarketplaceError):
    """The gateway declined, errored or timed out. No booking was created."""

    def __init__(self, message: str, *, timed_out: bool = False) -> None:
        super().__init__(message, {"payment": "timeout" if timed_out else "declined"})
        self.timed_out = timed_out


class AggregateConflict(MarketplaceError):
    """Concurrent writers kept invalidating a vendor aggregate update."""

    def __init__(self, vendor_id: int, attempts: int) -> None:
        super().__init__(
            f"Vendor {vendor_id} rating is being updated concurrently; retry later.",
            {"vendor_id": "conflict"},
        )
        self.vendor_id = vendor_id
        self.attempts = attempts


class Inconsistency(MarketplaceError):
    """Payment was captured but the booking row could not be written.

    Carries what an operator needs to reconcile by hand. Never retried
    automatically since a retry would charge the customer again.
    """

    def __init__(
        self,
        transaction_id: str,
        amount: Decimal,
        currency: str,
        user_id: int,
        vendor_id: int,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(
            "Payment was captured but the booking could not be saved. "
            f"Quote transaction {transaction_id} when contacting support.",
            {"transaction_id": transaction_id},
        )
        self.transaction_id = transaction_id
        self.amount = amount
        self.currency = currency
        self.user_id = user_id
        self.vendor_id = vendor_id
        self.cause = cause


class AuthenticationFailed(MarketplaceError):
    """Credentials or token did not resolve to a known identity."""
