"""Gateway-neutral checkout session types."""

from dataclasses import dataclass, field
from enum import Enum

from src.sm_money.domain.models import MoneyRequest


@dataclass(frozen=True)
class LineItem:
    name: str
    unit_amount: int            # cents
    quantity: int = 1
    description: str | None = None


@dataclass(frozen=True)
class CheckoutSession:
    id: str
    url: str


@dataclass(frozen=True)
class GatewaySession:
    id: str
    payment_status: str | None = None           # "paid" | "unpaid" | "no_payment_required"
    session_status: str | None = None           # "open" | "complete" | "expired"
    payment_intent_status: str | None = None    # "succeeded" | "processing" | ...
    payment_intent_id: str | None = None
    amount_total: int | None = None             # cents
    customer_ref: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)

    @property
    def is_paid(self) -> bool:
        """Any one gateway signal is enough; they do not all flip at the same time."""
        return (
            self.payment_status == "paid"
            or self.session_status == "complete"
            or self.payment_intent_status == "succeeded"
        )

    @property
    def money_request_id(self) -> str | None:
        return self.metadata.get("money_request_id") or None


class ConfirmationSource(str, Enum):
    RETURN = "return"       # customer redirected back from checkout
    WEBHOOK = "webhook"     # gateway-initiated event


class ReconcileOutcome(str, Enum):
    PAID = "paid"
    ALREADY_PAID = "already_paid"
    NOT_PAID = "not_paid"
    MANUAL_REVIEW = "manual_review"
    FAILED = "failed"


@dataclass
class ReconcileResult:
    outcome: ReconcileOutcome
    money_request: MoneyRequest
    credit_applied: bool = False
    notified: bool = False

    @property
    def money_request_id(self) -> str:
        return self.money_request.id
