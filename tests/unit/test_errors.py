"""Tests for sm_common.errors and sm_common.response."""

from src.sm_common.errors import (
    AppError,
    AuthorizationError,
    BundleExpiredError,
    CapacityExceededError,
    ConflictError,
    DuplicateMoneyRequestError,
    ExternalGatewayError,
    InvalidServicesError,
    InvalidWebhookError,
    MoneyRequestNotFoundError,
    PaymentNotCompletedError,
    ReconciliationConflict,
    ValidationError,
)
from src.sm_common.response import ApiResponse, error_response, success_response


class TestAppError:
    def test_base_error(self) -> None:
        err = AppError(code=9002, message="Internal error")
        assert err.code == 9002
        assert err.message == "Internal error"
        assert err.http_status == 500

    def test_is_exception(self) -> None:
        assert isinstance(AppError(code=1001, message="test"), Exception)


class TestSpecificErrors:
    def test_invalid_services_lists_names(self) -> None:
        err = InvalidServicesError(["Snow Removal", "Pool Cleaning"])
        assert err.code == 1002
        assert err.http_status == 422
        assert "Snow Removal, Pool Cleaning" in err.message
        assert isinstance(err, ValidationError)

    def test_money_request_not_found(self) -> None:
        err = MoneyRequestNotFoundError("mr_abc")
        assert err.code == 2002
        assert err.http_status == 404

    def test_capacity_is_a_conflict(self) -> None:
        err = CapacityExceededError("bdl_1", 5)
        assert err.http_status == 409
        assert isinstance(err, ConflictError)
        assert "5" in err.message

    def test_expired(self) -> None:
        assert BundleExpiredError("bdl_1").code == 3004

    def test_duplicate_money_request(self) -> None:
        err = DuplicateMoneyRequestError("service_request:sr-1")
        assert err.code == 3006
        assert "sr-1" in err.message

    def test_authorization(self) -> None:
        err = AuthorizationError()
        assert err.code == 4001
        assert err.http_status == 403

    def test_gateway_errors(self) -> None:
        assert ExternalGatewayError("timeout").http_status == 502
        assert PaymentNotCompletedError("unpaid", "open").code == 5002
        assert InvalidWebhookError("invalid signature").http_status == 400

    def test_reconciliation_conflict(self) -> None:
        err = ReconciliationConflict("mr_1")
        assert err.code == 6001
        assert err.http_status == 409


class TestApiResponse:
    def test_success_response(self) -> None:
        resp = success_response(data={"id": "bdl_1"})
        assert resp.code == 0
        assert resp.message == "success"
        assert resp.data == {"id": "bdl_1"}
        assert resp.request_id.startswith("req_")

    def test_error_response(self) -> None:
        resp = error_response(3001, "Bundle is full")
        assert resp.code == 3001
        assert resp.data is None

    def test_serializes(self) -> None:
        dumped = ApiResponse(data=[1, 2]).model_dump()
        assert set(dumped) == {"code", "message", "data", "timestamp", "request_id"}
