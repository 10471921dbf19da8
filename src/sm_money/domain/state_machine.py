"""Money request status transitions.

    pending  → accepted, cancelled, disputed
    accepted → accepted (amount re-set), paid, disputed, failed
    disputed → any status an admin selects (resolve_dispute)
    failed   → no customer or provider exits
    paid, cancelled: terminal

accepted → paid is driven only by the reconciliation engine. A gateway
confirmation also lands a failed request as paid: the money really moved.
"""

from src.sm_common.enums import MoneyRequestStatus
from src.sm_common.errors import IllegalTransitionError

_TRANSITIONS: dict[MoneyRequestStatus, frozenset[MoneyRequestStatus]] = {
    MoneyRequestStatus.PENDING: frozenset(
        {MoneyRequestStatus.ACCEPTED, MoneyRequestStatus.CANCELLED, MoneyRequestStatus.DISPUTED}
    ),
    MoneyRequestStatus.ACCEPTED: frozenset(
        {
            MoneyRequestStatus.ACCEPTED,
            MoneyRequestStatus.PAID,
            MoneyRequestStatus.DISPUTED,
            MoneyRequestStatus.FAILED,
        }
    ),
    MoneyRequestStatus.DISPUTED: frozenset(),
    MoneyRequestStatus.FAILED: frozenset(),
    MoneyRequestStatus.PAID: frozenset(),
    MoneyRequestStatus.CANCELLED: frozenset(),
}

# statuses a gateway-confirmed payment may land on paid from
GATEWAY_PAYABLE_STATUSES = frozenset({MoneyRequestStatus.ACCEPTED, MoneyRequestStatus.FAILED})

ADMIN_RESOLUTION_TARGETS = frozenset(s for s in MoneyRequestStatus if s != MoneyRequestStatus.DISPUTED)


def can_transition(current: MoneyRequestStatus, target: MoneyRequestStatus) -> bool:
    return target in _TRANSITIONS[current]


def ensure_transition(current: MoneyRequestStatus, target: MoneyRequestStatus) -> None:
    if not can_transition(current, target):
        raise IllegalTransitionError("Money request", current.value, target.value)
