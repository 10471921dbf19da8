"""Domain models for sm_earnings — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class ProviderAccount:
    provider_id: str
    available_balance: int      # cents
    total_earnings: int         # cents, lifetime credits
    completed_requests: int
    version: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class EarningEntry:
    id: int                          # BIGSERIAL
    provider_id: str
    entry_type: str                  # EarningEntryType value
    amount: int                      # cents, positive=credit negative=debit
    balance_after: int               # cents, available_balance snapshot after op
    reference_type: str | None = None
    reference_id: str | None = None
    description: str | None = None
    created_at: datetime | None = None
