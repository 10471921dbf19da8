"""Global enums — must match DB CHECK constraints exactly."""

from enum import Enum


class BundleStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    FULL = "full"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class ParticipantStatus(str, Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"


class OfferStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class MoneyRequestStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    PAID = "paid"
    CANCELLED = "cancelled"
    DISPUTED = "disputed"
    FAILED = "failed"


class PaymentDetailsStatus(str, Enum):
    """Checkout progress recorded on a money request, independent of its status."""
    CHECKOUT_PENDING = "checkout_pending"
    CHECKOUT_CANCELED = "checkout_canceled"
    COMPLETED = "completed"
    FAILED = "failed"


class ActorRole(str, Enum):
    """Who caused an audited transition."""
    CUSTOMER = "customer"
    PROVIDER = "provider"
    ADMIN = "admin"
    SYSTEM = "system"


class EarningEntryType(str, Enum):
    PAYMENT_CREDIT = "PAYMENT_CREDIT"
    WITHDRAWAL = "WITHDRAWAL"


class ServiceRequestStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
