"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Validation (malformed or missing input)
  2xxx: Not found
  3xxx: Conflict (capacity, duplicates, illegal transitions, expiry)
  4xxx: Authorization
  5xxx: Payment gateway
  6xxx: Reconciliation
  9xxx: System
"""


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


# --- 1xxx: Validation ---

class ValidationError(AppError):
    def __init__(self, message: str, code: int = 1001) -> None:
        super().__init__(code, message, 422)


class InvalidServicesError(ValidationError):
    def __init__(self, names: list[str]) -> None:
        super().__init__(f"Invalid services: {', '.join(names)}", 1002)


class InvalidAmountError(ValidationError):
    def __init__(self, detail: str) -> None:
        super().__init__(f"Invalid amount: {detail}", 1003)


class ZipCodeMismatchError(ValidationError):
    def __init__(self, bundle_zip: str, customer_zip: str | None) -> None:
        super().__init__(
            f"Customer zip code {customer_zip or '<none>'} does not match bundle zip code {bundle_zip}",
            1004,
        )


class ServiceAreaMismatchError(ValidationError):
    def __init__(self, zip_code: str) -> None:
        super().__init__(f"Provider does not service zip code {zip_code}", 1005)


# --- 2xxx: Not found ---

class NotFoundError(AppError):
    def __init__(self, message: str, code: int = 2001) -> None:
        super().__init__(code, message, 404)


class BundleNotFoundError(NotFoundError):
    def __init__(self, bundle_id: str) -> None:
        super().__init__(f"Bundle not found: {bundle_id}", 2001)


class MoneyRequestNotFoundError(NotFoundError):
    def __init__(self, money_request_id: str) -> None:
        super().__init__(f"Money request not found: {money_request_id}", 2002)


class ProviderNotFoundError(NotFoundError):
    def __init__(self, provider_id: str) -> None:
        super().__init__(f"Provider not found: {provider_id}", 2003)


class CustomerNotFoundError(NotFoundError):
    def __init__(self, customer_id: str) -> None:
        super().__init__(f"Customer not found: {customer_id}", 2004)


class ServiceRequestNotFoundError(NotFoundError):
    def __init__(self, service_request_id: str) -> None:
        super().__init__(f"Service request not found: {service_request_id}", 2005)


class OfferNotFoundError(NotFoundError):
    def __init__(self, bundle_id: str, provider_id: str) -> None:
        super().__init__(f"No pending offer from provider {provider_id} on bundle {bundle_id}", 2006)


# --- 3xxx: Conflict ---

class ConflictError(AppError):
    def __init__(self, message: str, code: int = 3001) -> None:
        super().__init__(code, message, 409)


class CapacityExceededError(ConflictError):
    def __init__(self, bundle_id: str, max_participants: int) -> None:
        super().__init__(f"Bundle {bundle_id} is full ({max_participants} participants)", 3001)


class AlreadyParticipantError(ConflictError):
    def __init__(self, bundle_id: str) -> None:
        super().__init__(f"Already an active participant of bundle {bundle_id}", 3002)


class IllegalTransitionError(ConflictError):
    def __init__(self, entity: str, current: str, target: str) -> None:
        super().__init__(f"{entity} cannot move from {current} to {target}", 3003)


class BundleExpiredError(ConflictError):
    def __init__(self, bundle_id: str) -> None:
        super().__init__(f"Bundle {bundle_id} has expired", 3004)


class DuplicateOfferError(ConflictError):
    def __init__(self, bundle_id: str) -> None:
        super().__init__(f"Provider already submitted an offer for bundle {bundle_id}", 3005)


class DuplicateMoneyRequestError(ConflictError):
    def __init__(self, detail: str) -> None:
        super().__init__(f"An active money request already exists: {detail}", 3006)


class ProviderAlreadyAssignedError(ConflictError):
    def __init__(self, bundle_id: str) -> None:
        super().__init__(f"Bundle {bundle_id} already has a provider", 3007)


class BundleNotOpenError(ConflictError):
    def __init__(self, bundle_id: str, status: str, action: str) -> None:
        super().__init__(f"Bundle {bundle_id} in status {status} does not allow {action}", 3009)


class ConcurrentModificationError(ConflictError):
    def __init__(self, entity: str, entity_id: str) -> None:
        super().__init__(f"{entity} {entity_id} was modified concurrently, retry", 3008)


# --- 4xxx: Authorization ---

class AuthorizationError(AppError):
    def __init__(self, message: str = "Not authorized for this operation", code: int = 4001) -> None:
        super().__init__(code, message, 403)


class InvalidCredentialsError(AppError):
    def __init__(self) -> None:
        super().__init__(4002, "Invalid or expired token", 401)


# --- 5xxx: Payment gateway ---

class ExternalGatewayError(AppError):
    """Gateway timeout or error. Retriable by the caller, never treated as success."""

    def __init__(self, detail: str) -> None:
        super().__init__(5001, f"Payment gateway unavailable, try again: {detail}", 502)


class PaymentNotCompletedError(AppError):
    def __init__(self, payment_status: str | None, session_status: str | None) -> None:
        super().__init__(
            5002,
            f"Payment not completed yet (payment_status={payment_status}, session_status={session_status})",
            400,
        )


class InvalidWebhookError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(5003, f"Invalid webhook: {detail}", 400)


# --- 6xxx: Reconciliation ---

class ReconciliationConflict(AppError):
    """Convergence paths kept racing past the retry bound without either landing paid."""

    def __init__(self, money_request_id: str) -> None:
        super().__init__(6001, f"Reconciliation conflict on money request {money_request_id}", 409)


# --- 9xxx: System ---

class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)
