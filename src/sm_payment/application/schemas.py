"""Pydantic schemas for sm_payment API."""

from pydantic import BaseModel

from src.sm_money.application.schemas import MoneyRequestDetail
from src.sm_payment.domain.models import ReconcileResult


class ReconcileResponse(BaseModel):
    outcome: str
    money_request: MoneyRequestDetail
    credit_applied: bool
    notified: bool

    @classmethod
    def from_result(cls, result: ReconcileResult) -> "ReconcileResponse":
        return cls(
            outcome=result.outcome.value,
            money_request=MoneyRequestDetail.from_domain(result.money_request),
            credit_applied=result.credit_applied,
            notified=result.notified,
        )


class WebhookAck(BaseModel):
    received: bool = True
    event_type: str
    outcome: str | None = None
