"""Pydantic schemas and cursor utilities for sm_money API.

Cursor format: Base64 JSON {"ts": "<created_at ISO>", "id": "<money_request_id>"}.
"""

import base64
import json
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, model_validator

from src.sm_common.cents import bps_to_percent_display, cents_to_display
from src.sm_money.domain.models import (
    MoneyRequest,
    MoneyRequestEvent,
    PaymentDetails,
    StatusStat,
)


def cursor_encode(last: MoneyRequest) -> str:
    payload = {"ts": last.created_at.isoformat() if last.created_at else None, "id": last.id}
    return base64.b64encode(json.dumps(payload).encode()).decode()


def cursor_decode(cursor: str | None) -> tuple[str | None, str | None]:
    if cursor is None:
        return None, None
    try:
        data = json.loads(base64.b64decode(cursor.encode()).decode())
        return data["ts"], data["id"]
    except Exception:
        return None, None


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class CreateMoneyRequestRequest(BaseModel):
    service_request_id: str | None = None
    bundle_id: str | None = None
    customer_id: str | None = None
    amount: int = Field(..., gt=0, description="Requested amount in cents, before any bundle discount")
    description: str | None = Field(None, max_length=1000)
    due_date: datetime | None = None

    @model_validator(mode="after")
    def _exactly_one_origin(self) -> "CreateMoneyRequestRequest":
        if (self.service_request_id is None) == (self.bundle_id is None):
            raise ValueError("Exactly one of service_request_id or bundle_id is required")
        return self


class AcceptMoneyRequestRequest(BaseModel):
    tip_amount: int = Field(0, ge=0)


class SetAmountRequest(BaseModel):
    amount: int = Field(..., gt=0)
    tip_amount: int = Field(0, ge=0)


class DisputeRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(None, max_length=2000)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class CommissionOut(BaseModel):
    rate_bps: int
    rate_display: str
    commission_amount_cents: int
    provider_amount_cents: int


class PaymentDetailsOut(BaseModel):
    checkout_session_id: str
    status: str
    transaction_id: str | None
    amount_received_cents: int | None
    paid_at: str | None
    confirmed_via: str | None

    @classmethod
    def from_domain(cls, d: PaymentDetails) -> "PaymentDetailsOut":
        return cls(
            checkout_session_id=d.checkout_session_id,
            status=d.status.value,
            transaction_id=d.transaction_id,
            amount_received_cents=d.amount_received,
            paid_at=d.paid_at.isoformat() if d.paid_at else None,
            confirmed_via=d.confirmed_via,
        )


class DisputeOut(BaseModel):
    reason: str
    description: str | None
    raised_by: str
    raised_by_role: str
    raised_at: str
    resolved_at: str | None
    resolution: str | None


class MoneyRequestEventOut(BaseModel):
    status: str
    note: str
    changed_by: str
    changed_by_role: str
    created_at: str

    @classmethod
    def from_domain(cls, e: MoneyRequestEvent) -> "MoneyRequestEventOut":
        return cls(
            status=e.status.value,
            note=e.note,
            changed_by=e.changed_by,
            changed_by_role=e.changed_by_role.value,
            created_at=e.created_at.isoformat(),
        )


class MoneyRequestDetail(BaseModel):
    id: str
    provider_id: str
    customer_id: str
    service_request_id: str | None
    bundle_id: str | None
    description: str | None
    amount_cents: int
    tip_amount_cents: int
    total_amount_cents: int
    total_display: str
    original_amount_cents: int | None
    discount_bps: int
    commission: CommissionOut
    status: str
    due_date: str
    payment_details: PaymentDetailsOut | None
    dispute_details: DisputeOut | None
    status_history: list[MoneyRequestEventOut] = []
    created_at: str | None
    updated_at: str | None

    @classmethod
    def from_domain(
        cls, mr: MoneyRequest, events: list[MoneyRequestEvent] | None = None
    ) -> "MoneyRequestDetail":
        dispute = mr.dispute_details
        return cls(
            id=mr.id,
            provider_id=mr.provider_id,
            customer_id=mr.customer_id,
            service_request_id=mr.service_request_id,
            bundle_id=mr.bundle_id,
            description=mr.description,
            amount_cents=mr.amount,
            tip_amount_cents=mr.tip_amount,
            total_amount_cents=mr.total_amount,
            total_display=cents_to_display(mr.total_amount),
            original_amount_cents=mr.original_amount,
            discount_bps=mr.discount_bps,
            commission=CommissionOut(
                rate_bps=mr.commission.rate_bps,
                rate_display=bps_to_percent_display(mr.commission.rate_bps),
                commission_amount_cents=mr.commission.commission_amount,
                provider_amount_cents=mr.commission.provider_amount,
            ),
            status=mr.status.value,
            due_date=mr.due_date.isoformat(),
            payment_details=(
                PaymentDetailsOut.from_domain(mr.payment_details) if mr.payment_details else None
            ),
            dispute_details=(
                DisputeOut(
                    reason=dispute.reason,
                    description=dispute.description,
                    raised_by=dispute.raised_by,
                    raised_by_role=dispute.raised_by_role.value,
                    raised_at=dispute.raised_at.isoformat(),
                    resolved_at=dispute.resolved_at.isoformat() if dispute.resolved_at else None,
                    resolution=dispute.resolution,
                )
                if dispute
                else None
            ),
            status_history=[MoneyRequestEventOut.from_domain(e) for e in events or []],
            created_at=mr.created_at.isoformat() if mr.created_at else None,
            updated_at=mr.updated_at.isoformat() if mr.updated_at else None,
        )


class MoneyRequestCreateResponse(BaseModel):
    items: list[MoneyRequestDetail]


class MoneyRequestListResponse(BaseModel):
    items: list[MoneyRequestDetail]
    next_cursor: str | None
    has_more: bool


class StatusStatOut(BaseModel):
    status: str
    count: int
    total_amount_cents: int


class MoneyRequestStatsResponse(BaseModel):
    by_status: list[StatusStatOut]
    total_count: int

    @classmethod
    def from_stats(cls, stats: list[StatusStat]) -> "MoneyRequestStatsResponse":
        return cls(
            by_status=[
                StatusStatOut(status=s.status, count=s.count, total_amount_cents=s.total_amount)
                for s in stats
            ],
            total_count=sum(s.count for s in stats),
        )


class PaymentInitiationResponse(BaseModel):
    """Accepted and settling: the money request is not paid until reconciliation runs."""

    money_request: MoneyRequestDetail
    session_id: str
    redirect_url: str
    payment_status: Literal["checkout_pending"] = "checkout_pending"
