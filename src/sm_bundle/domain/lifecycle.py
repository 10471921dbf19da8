"""Bundle lifecycle rules — pure functions over a Bundle.

Each function checks its preconditions against the bundle as read, mutates it
in place and returns the audit events to append. Nothing here touches the
database; the application service persists the result with a version check,
so a stale read can never be written back.
"""

from datetime import date, datetime, timedelta

from config.settings import settings
from src.sm_bundle.domain.models import Bundle, BundleEvent, Participant, ProviderOffer
from src.sm_bundle.domain.state_machine import (
    ACCEPTABLE_STATUSES,
    JOINABLE_STATUSES,
    PROVIDER_STATUS_TARGETS,
    ensure_transition,
)
from src.sm_common.enums import ActorRole, BundleStatus, OfferStatus, ParticipantStatus
from src.sm_common.errors import (
    AlreadyParticipantError,
    AuthorizationError,
    BundleExpiredError,
    BundleNotOpenError,
    CapacityExceededError,
    ConflictError,
    DuplicateOfferError,
    OfferNotFoundError,
    ProviderAlreadyAssignedError,
    ServiceAreaMismatchError,
    ValidationError,
    ZipCodeMismatchError,
)
from src.sm_directory.domain.models import Address, ProviderProfile
from src.sm_pricing.domain.calculator import price_bundle
from src.sm_pricing.domain.models import PricingConfig, PricingSnapshot, ServiceLine

MIN_PARTICIPANTS = 2
MAX_PARTICIPANTS = 10


def clamp_capacity(requested: int | None, default: int) -> int:
    value = requested if requested is not None else default
    return min(max(value, MIN_PARTICIPANTS), MAX_PARTICIPANTS)


def calculate_customer_price(bundle: Bundle) -> PricingSnapshot:
    """Live quote from the current service list. Never reads the stored snapshot."""
    return price_bundle(bundle.services, bundle.discount_bps)


def _event(
    bundle: Bundle, note: str, actor_id: str, role: ActorRole, now: datetime
) -> BundleEvent:
    return BundleEvent(
        bundle_id=bundle.id,
        status=bundle.status,
        note=note,
        changed_by=actor_id,
        changed_by_role=role,
        created_at=now,
    )


def _move(bundle: Bundle, target: BundleStatus) -> None:
    if bundle.status != target:
        ensure_transition(bundle.status, target)
        bundle.status = target


def ensure_not_expired(bundle: Bundle, now: datetime) -> None:
    if bundle.is_past_deadline(now):
        raise BundleExpiredError(bundle.id)


def create_bundle(
    *,
    bundle_id: str,
    creator_id: str,
    creator_address: Address,
    title: str,
    category: str,
    zip_code: str,
    services: list[ServiceLine],
    config: PricingConfig,
    share_token: str,
    now: datetime,
    max_participants: int | None = None,
    description: str | None = None,
    category_type_name: str | None = None,
    service_date: date | None = None,
    service_time_start: str | None = None,
    service_time_end: str | None = None,
) -> tuple[Bundle, BundleEvent]:
    if not services:
        raise ValidationError("At least one service is required")
    bundle = Bundle(
        id=bundle_id,
        creator_id=creator_id,
        title=title,
        description=description,
        category=category,
        category_type_name=category_type_name,
        service_date=service_date,
        service_time_start=service_time_start,
        service_time_end=service_time_end,
        zip_code=zip_code,
        address=creator_address,
        services=list(services),
        discount_bps=config.bundle_discount_bps,
        pricing=price_bundle(services, config.bundle_discount_bps),
        max_participants=clamp_capacity(max_participants, config.max_bundle_size),
        current_participants=1,
        status=BundleStatus.PENDING,
        share_token=share_token,
        expires_at=now + timedelta(hours=config.bundle_expiry_hours),
        participants=[
            Participant(
                customer_id=creator_id,
                address=creator_address,
                status=ParticipantStatus.ACTIVE,
                joined_at=now,
            )
        ],
        created_at=now,
        updated_at=now,
    )
    return bundle, _event(bundle, "Bundle created", creator_id, ActorRole.CUSTOMER, now)


def join(bundle: Bundle, customer_id: str, address: Address, now: datetime) -> list[BundleEvent]:
    ensure_not_expired(bundle, now)
    if bundle.status not in JOINABLE_STATUSES:
        if bundle.status == BundleStatus.FULL:
            raise CapacityExceededError(bundle.id, bundle.max_participants)
        raise BundleNotOpenError(bundle.id, bundle.status.value, "joining")
    if bundle.has_active_participant(customer_id):
        raise AlreadyParticipantError(bundle.id)
    if address.zip_code != bundle.zip_code:
        raise ZipCodeMismatchError(bundle.zip_code, address.zip_code)
    if bundle.current_participants >= bundle.max_participants:
        raise CapacityExceededError(bundle.id, bundle.max_participants)

    bundle.participants.append(
        Participant(
            customer_id=customer_id,
            address=address,
            status=ParticipantStatus.ACTIVE,
            joined_at=now,
        )
    )
    bundle.current_participants += 1
    events = [_event(bundle, f"Customer {customer_id} joined", customer_id, ActorRole.CUSTOMER, now)]
    if bundle.current_participants == bundle.max_participants:
        _move(bundle, BundleStatus.FULL)
        events.append(_event(bundle, "Bundle is full", customer_id, ActorRole.SYSTEM, now))
    return events


def submit_offer(
    bundle: Bundle, provider: ProviderProfile, message: str | None, now: datetime
) -> list[BundleEvent]:
    ensure_not_expired(bundle, now)
    if bundle.status not in ACCEPTABLE_STATUSES:
        raise BundleNotOpenError(bundle.id, bundle.status.value, "offers")
    if bundle.provider_id is not None:
        raise ProviderAlreadyAssignedError(bundle.id)
    if not provider.serves_zip(bundle.zip_code):
        raise ServiceAreaMismatchError(bundle.zip_code)
    if bundle.offer_by(provider.id) is not None:
        raise DuplicateOfferError(bundle.id)
    bundle.provider_offers.append(
        ProviderOffer(
            provider_id=provider.id,
            message=message,
            status=OfferStatus.PENDING,
            submitted_at=now,
        )
    )
    return [_event(bundle, f"Offer from provider {provider.id}", provider.id, ActorRole.PROVIDER, now)]


def provider_accept(
    bundle: Bundle,
    provider: ProviderProfile,
    now: datetime,
    actor_id: str,
    actor_role: ActorRole,
) -> list[BundleEvent]:
    """Assign the provider and re-price. Capacity, rates, pricing snapshot,
    status and offers change together on the same object, so a single
    versioned write carries all of them."""
    ensure_not_expired(bundle, now)
    if bundle.provider_id is not None and bundle.provider_id != provider.id:
        raise ProviderAlreadyAssignedError(bundle.id)
    if bundle.status not in ACCEPTABLE_STATUSES:
        raise BundleNotOpenError(bundle.id, bundle.status.value, "provider acceptance")
    if not provider.serves_zip(bundle.zip_code):
        raise ServiceAreaMismatchError(bundle.zip_code)

    # 1. capacity
    capacity = clamp_capacity(provider.max_bundle_capacity, settings.DEFAULT_MAX_BUNDLE_SIZE)
    bundle.max_participants = capacity

    # 2. provider-specific rates, keeping the prior rate for unlisted services
    repriced: list[ServiceLine] = []
    for line in bundle.services:
        rate = provider.rate_for(line.name)
        repriced.append(
            ServiceLine(
                name=line.name,
                hourly_rate=rate if rate is not None else line.hourly_rate,
                estimated_hours=line.estimated_hours,
            )
        )
    bundle.services = repriced

    # 3. pricing snapshot from the new service list
    bundle.pricing = price_bundle(bundle.services, bundle.discount_bps)

    # 4. status; at or over the new capacity means full
    bundle.provider_id = provider.id
    target = (
        BundleStatus.FULL
        if bundle.current_participants >= capacity
        else BundleStatus.ACCEPTED
    )
    _move(bundle, target)

    offer = bundle.offer_by(provider.id)
    if offer is None:
        bundle.provider_offers.append(
            ProviderOffer(
                provider_id=provider.id,
                message=None,
                status=OfferStatus.ACCEPTED,
                submitted_at=now,
            )
        )
    else:
        offer.status = OfferStatus.ACCEPTED
    for other in bundle.provider_offers:
        if other.provider_id != provider.id and other.status == OfferStatus.PENDING:
            other.status = OfferStatus.REJECTED

    # 5. audit
    note = (
        f"Accepted by provider {provider.id}: capacity {capacity}, "
        f"final price {bundle.pricing.final_price} cents"
    )
    return [_event(bundle, note, actor_id, actor_role, now)]


def accept_offer(
    bundle: Bundle, creator_id: str, provider: ProviderProfile, now: datetime
) -> list[BundleEvent]:
    """Creator picks one of the pending offers; same effect as provider_accept."""
    if bundle.creator_id != creator_id:
        raise AuthorizationError("Only the bundle creator can accept offers")
    offer = bundle.offer_by(provider.id)
    if offer is None or offer.status != OfferStatus.PENDING:
        raise OfferNotFoundError(bundle.id, provider.id)
    return provider_accept(bundle, provider, now, creator_id, ActorRole.CUSTOMER)


def decline(
    bundle: Bundle, provider_id: str, message: str | None, now: datetime
) -> list[BundleEvent]:
    ensure_not_expired(bundle, now)
    if bundle.is_terminal:
        raise BundleNotOpenError(bundle.id, bundle.status.value, "declining")
    if bundle.provider_id == provider_id:
        raise ConflictError(
            f"Assigned provider must cancel bundle {bundle.id} through a status update"
        )
    offer = bundle.offer_by(provider_id)
    if offer is None:
        bundle.provider_offers.append(
            ProviderOffer(
                provider_id=provider_id,
                message=message,
                status=OfferStatus.REJECTED,
                submitted_at=now,
            )
        )
    else:
        offer.status = OfferStatus.REJECTED
        if message:
            offer.message = message
    return [_event(bundle, f"Declined by provider {provider_id}", provider_id, ActorRole.PROVIDER, now)]


def update_status(
    bundle: Bundle,
    provider_id: str,
    target: BundleStatus,
    now: datetime,
    note: str | None = None,
    cancellation_reason: str | None = None,
) -> list[BundleEvent]:
    if bundle.provider_id != provider_id:
        raise AuthorizationError("Only the assigned provider can update this bundle")
    if target not in PROVIDER_STATUS_TARGETS:
        raise ValidationError(f"Status {target.value} cannot be set by a provider")
    _move(bundle, target)
    if target == BundleStatus.COMPLETED:
        # pricing is now the bill of record; the bundle is terminal and never re-priced
        bundle.completed_at = now
    elif target == BundleStatus.CANCELLED:
        bundle.cancelled_by = provider_id
        bundle.cancellation_reason = cancellation_reason
    return [_event(bundle, note or f"Status updated to {target.value}", provider_id, ActorRole.PROVIDER, now)]


def cancel_by_creator(
    bundle: Bundle, customer_id: str, reason: str | None, now: datetime
) -> list[BundleEvent]:
    if bundle.creator_id != customer_id:
        raise AuthorizationError("Only the bundle creator can cancel it")
    ensure_not_expired(bundle, now)
    if bundle.provider_id is not None:
        raise ProviderAlreadyAssignedError(bundle.id)
    _move(bundle, BundleStatus.CANCELLED)
    bundle.cancelled_by = customer_id
    bundle.cancellation_reason = reason
    return [_event(bundle, reason or "Cancelled by creator", customer_id, ActorRole.CUSTOMER, now)]


def expire(bundle: Bundle, now: datetime) -> list[BundleEvent]:
    _move(bundle, BundleStatus.EXPIRED)
    return [_event(bundle, "Bundle expired", "system", ActorRole.SYSTEM, now)]
