"""Payment gateway adapters.

``BookingLifecycleManager`` talks to a ``PaymentGateway`` and nothing else;
which implementation it gets is decided by ``PAYMENT_GATEWAY``:

- ``mock``: in-process simulator, the default for local development.
- ``http``: JSON gateway reached with httpx under ``PAYMENT_TIMEOUT_SECONDS``.
"""

from __future__ import annotations

import abc
import logging
import random
import string
import time
from decimal import Decimal
from typing import Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from ..core.config import Settings, settings
from ..schemas.payment import PaymentMethod, PaymentRequest, PaymentResult

logger = logging.getLogger(__name__)


class PaymentGatewayError(Exception):
    """The gateway could not give a usable answer."""


class PaymentGatewayTimeout(PaymentGatewayError):
    """The gateway did not answer in time."""


class PaymentGateway(abc.ABC):
    name = "abstract"

    @abc.abstractmethod
    def process(self, request: PaymentRequest) -> PaymentResult:
        """Charge ``request.amount``; return the outcome or raise ``PaymentGatewayError``."""


_MISSING_DETAILS_ERRORS = {
    PaymentMethod.CREDIT_CARD: "Missing card details",
    PaymentMethod.DEBIT_CARD: "Missing card details",
    PaymentMethod.UPI: "Missing UPI ID",
    PaymentMethod.NET_BANKING: "Missing bank account details",
    PaymentMethod.WALLET: "Missing wallet provider",
}

_TXN_ALPHABET = string.ascii_lowercase + string.digits


class MockPaymentGateway(PaymentGateway):
    """Simulated processor: validates the request, then succeeds at ``success_rate``."""

    name = "mock"

    def __init__(
        self,
        success_rate: float = 0.9,
        delay_seconds: float = 0.0,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.success_rate = success_rate
        self.delay_seconds = delay_seconds
        self._rng = rng or random.Random()

    def _transaction_id(self) -> str:
        token = "".join(self._rng.choice(_TXN_ALPHABET) for _ in range(13))
        return f"TXN_{token}_{int(time.time() * 1000)}"

    def process(self, request: PaymentRequest) -> PaymentResult:
        if self.delay_seconds:
            time.sleep(self.delay_seconds)

        if request.amount <= 0:
            return PaymentResult(success=False, error="Invalid payment amount")

        if request.method_details.missing_for(request.method):
            return PaymentResult(success=False, error=_MISSING_DETAILS_ERRORS[request.method])

        if self._rng.random() < self.success_rate:
            return PaymentResult(success=True, transaction_id=self._transaction_id())
        return PaymentResult(success=False, error="Payment failed. Please try again.")


class HttpPaymentGateway(PaymentGateway):
    """Gateway behind a JSON endpoint: ``POST {base_url}/payments``.

    The endpoint answers ``{"success": bool, "transaction_id": str?, "error": str?}``.
    Card data is forwarded as given; tokenisation is the gateway's job.
    """

    name = "http"

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    def _headers(self) -> dict:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def process(self, request: PaymentRequest) -> PaymentResult:
        payload = request.model_dump(mode="json")
        # Gateways expect minor units
        payload["amount"] = int((request.amount * Decimal(100)).to_integral_value())
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                resp = client.post(f"{self.base_url}/payments", json=payload, headers=self._headers())
        except httpx.TimeoutException as exc:
            raise PaymentGatewayTimeout(f"Payment gateway timed out after {self.timeout}s") from exc
        except httpx.HTTPError as exc:
            raise PaymentGatewayError(f"Payment gateway unreachable: {exc}") from exc

        if resp.status_code >= 500:
            raise PaymentGatewayError(f"Payment gateway error (HTTP {resp.status_code})")
        try:
            result = PaymentResult.model_validate(resp.json())
        except (ValueError, PydanticValidationError) as exc:
            raise PaymentGatewayError("Payment gateway returned an unreadable response") from exc
        if result.success and not result.transaction_id:
            raise PaymentGatewayError("Payment gateway reported success without a transaction id")
        return result


def build_payment_gateway(config: Settings = settings) -> PaymentGateway:
    if config.PAYMENT_GATEWAY == "http":
        return HttpPaymentGateway(
            config.PAYMENT_GATEWAY_URL,
            api_key=config.PAYMENT_GATEWAY_API_KEY,
            timeout=config.PAYMENT_TIMEOUT_SECONDS,
        )
    if config.PAYMENT_GATEWAY != "mock":
        logger.warning("Unknown PAYMENT_GATEWAY %r; using mock gateway", config.PAYMENT_GATEWAY)
    return MockPaymentGateway(success_rate=config.MOCK_PAYMENT_SUCCESS_RATE)
