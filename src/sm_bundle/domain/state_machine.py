"""Bundle status transitions.

    pending     → full, accepted, cancelled, expired
    accepted    → full, in_progress, cancelled
    full        → accepted, in_progress, cancelled
    in_progress → completed, cancelled
    completed, cancelled, expired: terminal

full → accepted only happens when a provider acceptance raises capacity
above the current participant count.
"""

from src.sm_common.enums import BundleStatus
from src.sm_common.errors import IllegalTransitionError

_TRANSITIONS: dict[BundleStatus, frozenset[BundleStatus]] = {
    BundleStatus.PENDING: frozenset(
        {BundleStatus.FULL, BundleStatus.ACCEPTED, BundleStatus.CANCELLED, BundleStatus.EXPIRED}
    ),
    BundleStatus.ACCEPTED: frozenset(
        {BundleStatus.FULL, BundleStatus.IN_PROGRESS, BundleStatus.CANCELLED}
    ),
    BundleStatus.FULL: frozenset(
        {BundleStatus.ACCEPTED, BundleStatus.IN_PROGRESS, BundleStatus.CANCELLED}
    ),
    BundleStatus.IN_PROGRESS: frozenset({BundleStatus.COMPLETED, BundleStatus.CANCELLED}),
    BundleStatus.COMPLETED: frozenset(),
    BundleStatus.CANCELLED: frozenset(),
    BundleStatus.EXPIRED: frozenset(),
}

JOINABLE_STATUSES = frozenset({BundleStatus.PENDING, BundleStatus.ACCEPTED})
ACCEPTABLE_STATUSES = frozenset({BundleStatus.PENDING, BundleStatus.FULL, BundleStatus.ACCEPTED})
PROVIDER_STATUS_TARGETS = frozenset(
    {BundleStatus.IN_PROGRESS, BundleStatus.COMPLETED, BundleStatus.CANCELLED}
)


def can_transition(current: BundleStatus, target: BundleStatus) -> bool:
    return target in _TRANSITIONS[current]


def ensure_transition(current: BundleStatus, target: BundleStatus) -> None:
    if not can_transition(current, target):
        raise IllegalTransitionError("Bundle", current.value, target.value)
