"""Money request rules — pure functions that mutate a MoneyRequest in place
and return the audit events to append.

total_amount and the commission snapshot are only ever written through
reprice(), so a tip or amount change can never leave a stale commission.
"""

from datetime import datetime
from typing import assert_never

from src.sm_common.enums import ActorRole, MoneyRequestStatus, PaymentDetailsStatus
from src.sm_common.errors import (
    AuthorizationError,
    ConflictError,
    IllegalTransitionError,
    InvalidAmountError,
    ValidationError,
)
from src.sm_common.principal import (
    AdminPrincipal,
    CustomerPrincipal,
    Principal,
    ProviderPrincipal,
)
from src.sm_money.domain.models import (
    DisputeDetails,
    MoneyRequest,
    MoneyRequestEvent,
    PaymentDetails,
)
from src.sm_money.domain.state_machine import (
    ADMIN_RESOLUTION_TARGETS,
    GATEWAY_PAYABLE_STATUSES,
    ensure_transition,
)
from src.sm_pricing.domain.calculator import compute_commission


def _event(
    mr: MoneyRequest, note: str, actor_id: str, role: ActorRole, now: datetime
) -> MoneyRequestEvent:
    return MoneyRequestEvent(
        money_request_id=mr.id,
        status=mr.status,
        note=note,
        changed_by=actor_id,
        changed_by_role=role,
        created_at=now,
    )


def _ensure_customer(mr: MoneyRequest, customer_id: str) -> None:
    if mr.customer_id != customer_id:
        raise AuthorizationError("Not the customer of this money request")


def _validate_amounts(amount: int, tip_amount: int) -> None:
    if amount <= 0:
        raise InvalidAmountError(f"amount must be positive, got {amount}")
    if tip_amount < 0:
        raise InvalidAmountError(f"tip must not be negative, got {tip_amount}")


def reprice(mr: MoneyRequest, amount: int, tip_amount: int, rate_bps: int) -> None:
    _validate_amounts(amount, tip_amount)
    mr.amount = amount
    mr.tip_amount = tip_amount
    mr.total_amount = amount + tip_amount
    mr.commission = compute_commission(mr.total_amount, rate_bps)


def new_money_request(
    *,
    money_request_id: str,
    provider_id: str,
    customer_id: str,
    amount: int,
    rate_bps: int,
    due_date: datetime,
    now: datetime,
    service_request_id: str | None = None,
    bundle_id: str | None = None,
    description: str | None = None,
    original_amount: int | None = None,
    discount_bps: int = 0,
) -> tuple[MoneyRequest, MoneyRequestEvent]:
    if (service_request_id is None) == (bundle_id is None):
        raise ValidationError("Exactly one of service_request_id or bundle_id is required")
    _validate_amounts(amount, 0)
    mr = MoneyRequest(
        id=money_request_id,
        provider_id=provider_id,
        customer_id=customer_id,
        service_request_id=service_request_id,
        bundle_id=bundle_id,
        description=description,
        amount=amount,
        tip_amount=0,
        total_amount=amount,
        commission=compute_commission(amount, rate_bps),
        original_amount=original_amount if original_amount is not None else amount,
        discount_bps=discount_bps,
        status=MoneyRequestStatus.PENDING,
        due_date=due_date,
        created_at=now,
        updated_at=now,
    )
    return mr, _event(mr, "Money request created", provider_id, ActorRole.PROVIDER, now)


def accept(
    mr: MoneyRequest, customer_id: str, tip_amount: int, rate_bps: int, now: datetime
) -> list[MoneyRequestEvent]:
    _ensure_customer(mr, customer_id)
    if mr.status != MoneyRequestStatus.PENDING:
        raise IllegalTransitionError("Money request", mr.status.value, "accepted")
    reprice(mr, mr.amount, tip_amount, rate_bps)
    ensure_transition(mr.status, MoneyRequestStatus.ACCEPTED)
    mr.status = MoneyRequestStatus.ACCEPTED
    note = f"Accepted with tip {tip_amount} cents" if tip_amount else "Accepted"
    return [_event(mr, note, customer_id, ActorRole.CUSTOMER, now)]


def accept_as_is(
    mr: MoneyRequest, customer_id: str, rate_bps: int, now: datetime
) -> list[MoneyRequestEvent]:
    """Status flip without touching amounts; commission re-derived from the same total."""
    _ensure_customer(mr, customer_id)
    if mr.status != MoneyRequestStatus.PENDING:
        raise IllegalTransitionError("Money request", mr.status.value, "accepted")
    mr.commission = compute_commission(mr.total_amount, rate_bps)
    mr.status = MoneyRequestStatus.ACCEPTED
    return [_event(mr, "Accepted without tip", customer_id, ActorRole.CUSTOMER, now)]


def set_amount(
    mr: MoneyRequest,
    customer_id: str,
    amount: int,
    tip_amount: int,
    rate_bps: int,
    now: datetime,
) -> list[MoneyRequestEvent]:
    _ensure_customer(mr, customer_id)
    if mr.status not in (MoneyRequestStatus.PENDING, MoneyRequestStatus.ACCEPTED):
        raise IllegalTransitionError("Money request", mr.status.value, "accepted")
    reprice(mr, amount, tip_amount, rate_bps)
    ensure_transition(mr.status, MoneyRequestStatus.ACCEPTED)
    mr.status = MoneyRequestStatus.ACCEPTED
    note = f"Amount set to {amount} cents, tip {tip_amount} cents"
    return [_event(mr, note, customer_id, ActorRole.CUSTOMER, now)]


def ensure_payable(mr: MoneyRequest, customer_id: str) -> None:
    _ensure_customer(mr, customer_id)
    if mr.status != MoneyRequestStatus.ACCEPTED:
        raise IllegalTransitionError("Money request", mr.status.value, "payment")


def record_checkout_session(
    mr: MoneyRequest, session_id: str, charged_total: int, now: datetime
) -> list[MoneyRequestEvent]:
    """A newer session supersedes any earlier checkout_pending one."""
    if mr.status != MoneyRequestStatus.ACCEPTED:
        raise IllegalTransitionError("Money request", mr.status.value, "checkout")
    if mr.total_amount != charged_total:
        raise ConflictError(
            f"Amount changed to {mr.total_amount} cents while checkout opened for "
            f"{charged_total} cents, start payment again"
        )
    mr.payment_details = PaymentDetails(
        checkout_session_id=session_id,
        session_created_at=now,
        status=PaymentDetailsStatus.CHECKOUT_PENDING,
    )
    return [_event(mr, f"Checkout session {session_id} created", mr.customer_id, ActorRole.CUSTOMER, now)]


def cancel_checkout(mr: MoneyRequest, now: datetime) -> list[MoneyRequestEvent]:
    """Customer left the hosted checkout; status is unchanged."""
    details = mr.payment_details
    if details is None or details.status != PaymentDetailsStatus.CHECKOUT_PENDING:
        return []
    details.status = PaymentDetailsStatus.CHECKOUT_CANCELED
    details.canceled_at = now
    return [_event(mr, "Checkout canceled by customer", mr.customer_id, ActorRole.CUSTOMER, now)]


def cancel(mr: MoneyRequest, customer_id: str, now: datetime) -> list[MoneyRequestEvent]:
    _ensure_customer(mr, customer_id)
    if mr.status != MoneyRequestStatus.PENDING:
        raise IllegalTransitionError("Money request", mr.status.value, "cancelled")
    mr.status = MoneyRequestStatus.CANCELLED
    return [_event(mr, "Cancelled by customer", customer_id, ActorRole.CUSTOMER, now)]


def dispute(
    mr: MoneyRequest,
    principal: Principal,
    reason: str,
    description: str | None,
    now: datetime,
) -> list[MoneyRequestEvent]:
    match principal:
        case CustomerPrincipal(id=actor_id):
            if mr.customer_id != actor_id:
                raise AuthorizationError("Not the customer of this money request")
            role = ActorRole.CUSTOMER
        case ProviderPrincipal(id=actor_id):
            if mr.provider_id != actor_id:
                raise AuthorizationError("Not the provider of this money request")
            role = ActorRole.PROVIDER
        case AdminPrincipal():
            raise AuthorizationError("Admins resolve disputes, they do not raise them")
        case _:
            assert_never(principal)
    if not reason.strip():
        raise ValidationError("Dispute reason is required")
    ensure_transition(mr.status, MoneyRequestStatus.DISPUTED)
    mr.status = MoneyRequestStatus.DISPUTED
    mr.dispute_details = DisputeDetails(
        reason=reason,
        raised_by=actor_id,
        raised_by_role=role,
        raised_at=now,
        description=description,
    )
    return [_event(mr, f"Dispute raised: {reason}", actor_id, role, now)]


def mark_paid(
    mr: MoneyRequest,
    *,
    session_id: str,
    payment_intent_id: str | None,
    customer_ref: str | None,
    amount_received: int | None,
    confirmed_via: str,
    now: datetime,
) -> list[MoneyRequestEvent]:
    if mr.status not in GATEWAY_PAYABLE_STATUSES:
        raise IllegalTransitionError("Money request", mr.status.value, "paid")
    previous = mr.payment_details
    mr.status = MoneyRequestStatus.PAID
    mr.payment_details = PaymentDetails(
        checkout_session_id=session_id,
        session_created_at=previous.session_created_at if previous else now,
        status=PaymentDetailsStatus.COMPLETED,
        transaction_id=session_id,
        payment_intent_id=payment_intent_id,
        gateway_customer_ref=customer_ref,
        amount_received=amount_received,
        paid_at=now,
        confirmed_via=confirmed_via,
    )
    return [_event(mr, f"Payment confirmed via {confirmed_via}", "system", ActorRole.SYSTEM, now)]


def mark_failed(mr: MoneyRequest, session_id: str, now: datetime) -> list[MoneyRequestEvent]:
    if mr.status != MoneyRequestStatus.ACCEPTED:
        return []
    details = mr.payment_details
    if details is None or details.checkout_session_id != session_id:
        # a superseded session failing says nothing about the current one
        return []
    ensure_transition(mr.status, MoneyRequestStatus.FAILED)
    mr.status = MoneyRequestStatus.FAILED
    details.status = PaymentDetailsStatus.FAILED
    details.failed_at = now
    return [_event(mr, f"Async payment failed for session {session_id}", "system", ActorRole.SYSTEM, now)]


def resolve_dispute(
    mr: MoneyRequest,
    admin_id: str,
    resolution: str,
    target: MoneyRequestStatus,
    rate_bps: int,
    now: datetime,
    new_amount: int | None = None,
) -> list[MoneyRequestEvent]:
    if mr.status != MoneyRequestStatus.DISPUTED:
        raise IllegalTransitionError("Money request", mr.status.value, target.value)
    if target not in ADMIN_RESOLUTION_TARGETS:
        raise ValidationError(f"Cannot resolve a dispute to {target.value}")
    if not resolution.strip():
        raise ValidationError("Resolution is required")
    if new_amount is not None:
        reprice(mr, new_amount, mr.tip_amount, rate_bps)
    mr.status = target
    if mr.dispute_details is not None:
        mr.dispute_details.resolved_at = now
        mr.dispute_details.resolution = resolution
        mr.dispute_details.resolved_by = admin_id
    note = f"Dispute resolved to {target.value}: {resolution}"
    if new_amount is not None:
        note += f" (amount {new_amount} cents)"
    return [_event(mr, note, admin_id, ActorRole.ADMIN, now)]
