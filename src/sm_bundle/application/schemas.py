"""Pydantic schemas and cursor utilities for sm_bundle API.

Cursor format for bundles (VARCHAR PK, not sequential):
  {"ts": "<created_at ISO>", "id": "<bundle_id>"}
  Encoded as Base64 JSON string.
"""

import base64
import json
from datetime import date
from typing import Literal

from pydantic import BaseModel, Field

from src.sm_bundle.domain.lifecycle import calculate_customer_price
from src.sm_bundle.domain.models import Bundle, BundleEvent
from src.sm_common.cents import cents_to_display
from src.sm_directory.domain.models import Address
from src.sm_pricing.domain.models import PricingSnapshot

# ---------------------------------------------------------------------------
# Cursor utilities
# ---------------------------------------------------------------------------


def cursor_encode(last_bundle: Bundle) -> str:
    payload = {
        "ts": last_bundle.created_at.isoformat() if last_bundle.created_at else None,
        "id": last_bundle.id,
    }
    return base64.b64encode(json.dumps(payload).encode()).decode()


def cursor_decode(cursor: str | None) -> tuple[str | None, str | None]:
    """Decode composite cursor -> (ts_iso, bundle_id), or (None, None) on error."""
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


class AddressIn(BaseModel):
    street: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str = Field(..., min_length=3, max_length=10)

    def to_domain(self) -> Address:
        return Address(
            street=self.street, city=self.city, state=self.state, zip_code=self.zip_code
        )


class BundleServiceIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    estimated_hours: int | None = Field(None, ge=1, le=24)


class CreateBundleRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(None, max_length=2000)
    category: str = Field(..., min_length=1, max_length=64)
    category_type_name: str | None = None
    services: list[BundleServiceIn] = Field(..., min_length=1)
    service_date: date | None = None
    service_time_start: str | None = Field(None, pattern=r"^\d{2}:\d{2}$")
    service_time_end: str | None = Field(None, pattern=r"^\d{2}:\d{2}$")
    zip_code: str | None = Field(None, min_length=3, max_length=10)
    address: AddressIn | None = None
    max_participants: int | None = Field(None, ge=2, le=10)


class JoinBundleRequest(BaseModel):
    address: AddressIn | None = None


class OfferRequest(BaseModel):
    message: str | None = Field(None, max_length=1000)


class AcceptOfferRequest(BaseModel):
    provider_id: str


class StatusUpdateRequest(BaseModel):
    status: Literal["in_progress", "completed", "cancelled"]
    note: str | None = Field(None, max_length=500)
    cancellation_reason: str | None = Field(None, max_length=500)


class CancelBundleRequest(BaseModel):
    reason: str | None = Field(None, max_length=500)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class PricingOut(BaseModel):
    original_price_cents: int
    discount_amount_cents: int
    final_price_cents: int
    discount_bps: int
    final_price_display: str

    @classmethod
    def from_snapshot(cls, p: PricingSnapshot) -> "PricingOut":
        return cls(
            original_price_cents=p.original_price,
            discount_amount_cents=p.discount_amount,
            final_price_cents=p.final_price,
            discount_bps=p.discount_bps,
            final_price_display=cents_to_display(p.final_price),
        )


class ServiceLineOut(BaseModel):
    name: str
    hourly_rate_cents: int
    estimated_hours: int


class ParticipantOut(BaseModel):
    customer_id: str
    zip_code: str | None
    status: str
    joined_at: str


class OfferOut(BaseModel):
    provider_id: str
    message: str | None
    status: str
    submitted_at: str


class BundleEventOut(BaseModel):
    status: str
    note: str
    changed_by: str
    changed_by_role: str
    created_at: str

    @classmethod
    def from_domain(cls, e: BundleEvent) -> "BundleEventOut":
        return cls(
            status=e.status.value,
            note=e.note,
            changed_by=e.changed_by,
            changed_by_role=e.changed_by_role.value,
            created_at=e.created_at.isoformat(),
        )


class BundleDetail(BaseModel):
    id: str
    creator_id: str
    provider_id: str | None
    title: str
    description: str | None
    category: str
    category_type_name: str | None
    service_date: str | None
    service_time_start: str | None
    service_time_end: str | None
    zip_code: str
    status: str
    max_participants: int
    current_participants: int
    available_spots: int
    services: list[ServiceLineOut]
    pricing: PricingOut             # stored snapshot, the bill of record
    customer_price: PricingOut      # live quote from the current service list
    participants: list[ParticipantOut]
    provider_offers: list[OfferOut]
    share_token: str
    expires_at: str
    completed_at: str | None
    cancelled_by: str | None
    cancellation_reason: str | None
    status_history: list[BundleEventOut] = []
    created_at: str | None

    @classmethod
    def from_domain(cls, b: Bundle, events: list[BundleEvent] | None = None) -> "BundleDetail":
        return cls(
            id=b.id,
            creator_id=b.creator_id,
            provider_id=b.provider_id,
            title=b.title,
            description=b.description,
            category=b.category,
            category_type_name=b.category_type_name,
            service_date=b.service_date.isoformat() if b.service_date else None,
            service_time_start=b.service_time_start,
            service_time_end=b.service_time_end,
            zip_code=b.zip_code,
            status=b.status.value,
            max_participants=b.max_participants,
            current_participants=b.current_participants,
            available_spots=b.available_spots,
            services=[
                ServiceLineOut(
                    name=s.name,
                    hourly_rate_cents=s.hourly_rate,
                    estimated_hours=s.estimated_hours,
                )
                for s in b.services
            ],
            pricing=PricingOut.from_snapshot(b.pricing),
            customer_price=PricingOut.from_snapshot(calculate_customer_price(b)),
            participants=[
                ParticipantOut(
                    customer_id=p.customer_id,
                    zip_code=p.address.zip_code,
                    status=p.status.value,
                    joined_at=p.joined_at.isoformat(),
                )
                for p in b.participants
            ],
            provider_offers=[
                OfferOut(
                    provider_id=o.provider_id,
                    message=o.message,
                    status=o.status.value,
                    submitted_at=o.submitted_at.isoformat(),
                )
                for o in b.provider_offers
            ],
            share_token=b.share_token,
            expires_at=b.expires_at.isoformat(),
            completed_at=b.completed_at.isoformat() if b.completed_at else None,
            cancelled_by=b.cancelled_by,
            cancellation_reason=b.cancellation_reason,
            status_history=[BundleEventOut.from_domain(e) for e in events or []],
            created_at=b.created_at.isoformat() if b.created_at else None,
        )


class BundleListResponse(BaseModel):
    items: list[BundleDetail]
    next_cursor: str | None
    has_more: bool
