import enum
from decimal import Decimal
from typing import Annotated, Optional

from pydantic import BaseModel, Field, model_validator


class PaymentMethod(str, enum.Enum):
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    UPI = "upi"
    NET_BANKING = "net_banking"
    WALLET = "wallet"


# Method -> fields that must be present for that method
REQUIRED_METHOD_FIELDS = {
    PaymentMethod.CREDIT_CARD: ("card_number", "card_expiry", "card_cvc"),
    PaymentMethod.DEBIT_CARD: ("card_number", "card_expiry", "card_cvc"),
    PaymentMethod.UPI: ("upi_id",),
    PaymentMethod.NET_BANKING: ("bank_account",),
    PaymentMethod.WALLET: ("wallet_provider",),
}


class PaymentMethodDetails(BaseModel):
    card_number: Optional[str] = None
    card_expiry: Optional[str] = None
    card_cvc: Optional[str] = None
    upi_id: Optional[str] = None
    bank_account: Optional[str] = None
    wallet_provider: Optional[str] = None

    def missing_for(self, method: PaymentMethod) -> list[str]:
        return [name for name in REQUIRED_METHOD_FIELDS[method] if not (getattr(self, name) or "").strip()]


class PaymentDetails(PaymentMethodDetails):
    """What the customer chose on the payment step."""

    method: PaymentMethod = PaymentMethod.CREDIT_CARD

    @model_validator(mode="after")
    def _require_method_fields(self) -> "PaymentDetails":
        missing = self.missing_for(self.method)
        if missing:
            raise ValueError(f"Missing payment details for {self.method.value}: {', '.join(missing)}")
        return self

    def method_details(self) -> PaymentMethodDetails:
        return PaymentMethodDetails(**self.model_dump(exclude={"method"}))


class PaymentRequest(BaseModel):
    amount: Annotated[Decimal, Field()]
    currency: Annotated[str, Field(min_length=3, max_length=3)]
    method: PaymentMethod
    method_details: PaymentMethodDetails
    description: str = ""


class PaymentResult(BaseModel):
    success: bool
    transaction_id: Optional[str] = None
    error: Optional[str] = None
