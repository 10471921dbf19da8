"""Domain models for sm_bundle — pure dataclasses, no SQLAlchemy dependency.

Bundle is the current-state aggregate. Its audit trail lives separately as
BundleEvent rows (append-only), written in the same transaction.
"""

from dataclasses import dataclass, field
from datetime import date, datetime

from src.sm_common.enums import (
    ActorRole,
    BundleStatus,
    OfferStatus,
    ParticipantStatus,
)
from src.sm_directory.domain.models import Address
from src.sm_pricing.domain.models import PricingSnapshot, ServiceLine

TERMINAL_STATUSES = frozenset(
    {BundleStatus.COMPLETED, BundleStatus.CANCELLED, BundleStatus.EXPIRED}
)


@dataclass
class Participant:
    customer_id: str
    address: Address
    status: ParticipantStatus
    joined_at: datetime


@dataclass
class ProviderOffer:
    provider_id: str
    message: str | None
    status: OfferStatus
    submitted_at: datetime


@dataclass
class Bundle:
    id: str
    creator_id: str
    title: str
    category: str
    zip_code: str
    address: Address
    services: list[ServiceLine]
    discount_bps: int
    pricing: PricingSnapshot
    max_participants: int
    current_participants: int
    status: BundleStatus
    share_token: str
    expires_at: datetime
    provider_id: str | None = None
    description: str | None = None
    category_type_name: str | None = None
    service_date: date | None = None
    service_time_start: str | None = None   # "HH:MM"
    service_time_end: str | None = None
    participants: list[Participant] = field(default_factory=list)
    provider_offers: list[ProviderOffer] = field(default_factory=list)
    completed_at: datetime | None = None
    cancelled_by: str | None = None
    cancellation_reason: str | None = None
    version: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def available_spots(self) -> int:
        return max(self.max_participants - self.current_participants, 0)

    def is_past_deadline(self, now: datetime) -> bool:
        return not self.is_terminal and now >= self.expires_at

    def active_participants(self) -> list[Participant]:
        return [p for p in self.participants if p.status == ParticipantStatus.ACTIVE]

    def has_active_participant(self, customer_id: str) -> bool:
        return any(p.customer_id == customer_id for p in self.active_participants())

    def offer_by(self, provider_id: str) -> ProviderOffer | None:
        for offer in self.provider_offers:
            if offer.provider_id == provider_id:
                return offer
        return None


@dataclass
class BundleEvent:
    bundle_id: str
    status: BundleStatus
    note: str
    changed_by: str
    changed_by_role: ActorRole
    created_at: datetime
    id: int | None = None    # BIGSERIAL, assigned on insert
