"""Domain models for sm_money — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime

from src.sm_common.enums import ActorRole, MoneyRequestStatus, PaymentDetailsStatus
from src.sm_pricing.domain.models import CommissionResult

TERMINAL_STATUSES = frozenset({MoneyRequestStatus.PAID, MoneyRequestStatus.CANCELLED})
ACTIVE_STATUSES = frozenset(
    {
        MoneyRequestStatus.PENDING,
        MoneyRequestStatus.ACCEPTED,
        MoneyRequestStatus.PAID,
        MoneyRequestStatus.DISPUTED,
    }
)


@dataclass
class PaymentDetails:
    checkout_session_id: str
    session_created_at: datetime
    status: PaymentDetailsStatus
    transaction_id: str | None = None
    payment_intent_id: str | None = None
    gateway_customer_ref: str | None = None
    amount_received: int | None = None      # cents, as reported by the gateway
    paid_at: datetime | None = None
    canceled_at: datetime | None = None
    failed_at: datetime | None = None
    confirmed_via: str | None = None        # "return" | "webhook"


@dataclass
class DisputeDetails:
    reason: str
    raised_by: str
    raised_by_role: ActorRole
    raised_at: datetime
    description: str | None = None
    resolved_at: datetime | None = None
    resolution: str | None = None
    resolved_by: str | None = None


@dataclass
class MoneyRequest:
    id: str
    provider_id: str
    customer_id: str
    amount: int                     # cents, base amount after any bundle discount
    tip_amount: int                 # cents
    total_amount: int               # cents, amount + tip_amount
    commission: CommissionResult
    status: MoneyRequestStatus
    due_date: datetime
    service_request_id: str | None = None
    bundle_id: str | None = None
    description: str | None = None
    original_amount: int | None = None   # cents, provider's requested amount before discount
    discount_bps: int = 0
    payment_details: PaymentDetails | None = None
    dispute_details: DisputeDetails | None = None
    version: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_bundle(self) -> bool:
        return self.bundle_id is not None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def origin_ref(self) -> str:
        return f"bundle:{self.bundle_id}" if self.bundle_id else f"service_request:{self.service_request_id}"


@dataclass
class MoneyRequestEvent:
    money_request_id: str
    status: MoneyRequestStatus
    note: str
    changed_by: str
    changed_by_role: ActorRole
    created_at: datetime
    id: int | None = None


@dataclass(frozen=True)
class StatusStat:
    status: str
    count: int
    total_amount: int       # cents
