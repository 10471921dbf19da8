"""Pydantic schemas and cursor utilities for sm_earnings API."""

import base64
import json

from pydantic import BaseModel

from src.sm_common.cents import cents_to_display
from src.sm_earnings.domain.models import EarningEntry, ProviderAccount


def cursor_encode(last_id: int) -> str:
    """Encode a BIGINT primary key into an opaque Base64 cursor string."""
    return base64.b64encode(json.dumps({"id": last_id}).encode()).decode()


def cursor_decode(cursor: str | None) -> int | None:
    if cursor is None:
        return None
    try:
        payload = json.loads(base64.b64decode(cursor.encode()).decode())
        return int(payload["id"])
    except Exception:
        return None


class EarningsBalanceResponse(BaseModel):
    provider_id: str
    available_balance_cents: int
    available_balance_display: str
    total_earnings_cents: int
    total_earnings_display: str
    completed_requests: int

    @classmethod
    def from_account(cls, provider_id: str, account: ProviderAccount | None) -> "EarningsBalanceResponse":
        available = account.available_balance if account else 0
        total = account.total_earnings if account else 0
        return cls(
            provider_id=provider_id,
            available_balance_cents=available,
            available_balance_display=cents_to_display(available),
            total_earnings_cents=total,
            total_earnings_display=cents_to_display(total),
            completed_requests=account.completed_requests if account else 0,
        )


class EarningEntryItem(BaseModel):
    id: int
    entry_type: str
    amount_cents: int
    amount_display: str
    balance_after_cents: int
    reference_type: str | None
    reference_id: str | None
    description: str | None
    created_at: str

    @classmethod
    def from_domain(cls, e: EarningEntry) -> "EarningEntryItem":
        return cls(
            id=e.id,
            entry_type=e.entry_type,
            amount_cents=e.amount,
            amount_display=cents_to_display(e.amount),
            balance_after_cents=e.balance_after,
            reference_type=e.reference_type,
            reference_id=e.reference_id,
            description=e.description,
            created_at=e.created_at.isoformat() if e.created_at else "",
        )


class EarningsLedgerResponse(BaseModel):
    items: list[EarningEntryItem]
    next_cursor: str | None
    has_more: bool
