"""Tests for PaymentSessionService — hosted checkout creation and cancel."""

import pytest
from fakes import NOW, FakeCustomers, FakeGateway, make_customer, make_money_request

from src.sm_common.enums import MoneyRequestStatus, PaymentDetailsStatus
from src.sm_common.errors import AuthorizationError, ConflictError, IllegalTransitionError
from src.sm_common.principal import CustomerPrincipal
from src.sm_money.domain import lifecycle
from src.sm_payment.application.session_service import (
    PaymentSessionService,
    build_line_items,
    build_return_urls,
)

CUSTOMER = CustomerPrincipal("cust-1")


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def sessions(writer, gateway) -> PaymentSessionService:
    return PaymentSessionService(
        writer=writer, gateway=gateway, customers=FakeCustomers(make_customer("cust-1"))
    )


class TestReturnUrls:
    def test_service_request_conversation(self) -> None:
        success, cancel = build_return_urls(make_money_request(), "https://app.test/")
        assert success == (
            "https://app.test/conversation/request-sr-1"
            "?paymentSuccess=1&moneyRequestId=mr_1&session_id={CHECKOUT_SESSION_ID}"
        )
        assert cancel == "https://app.test/conversation/request-sr-1?paymentCancelled=1&moneyRequestId=mr_1"

    def test_bundle_conversation(self) -> None:
        success, _ = build_return_urls(make_money_request(bundle_id="bdl_7"), "https://app.test")
        assert success.startswith("https://app.test/conversation/bundle-bdl_7?")

    def test_line_item_charges_total_with_tip(self) -> None:
        items = build_line_items(make_money_request(amount=10000, tip_amount=2000))
        assert items[0].unit_amount == 12000
        assert items[0].description is not None


class TestCreateSession:
    async def test_records_checkout_pending(self, sessions, money_repo, gateway, db) -> None:
        money_repo.seed(make_money_request(status=MoneyRequestStatus.ACCEPTED))

        resp = await sessions.create_session(db, "mr_1", CUSTOMER)

        assert resp.payment_status == "checkout_pending"
        assert resp.redirect_url == "https://checkout.test/cs_test_1"
        assert gateway.created[0]["metadata"]["money_request_id"] == "mr_1"
        assert gateway.created[0]["customer_email"] == "cust-1@example.com"
        stored = money_repo.stored("mr_1")
        assert stored.status == MoneyRequestStatus.ACCEPTED
        assert stored.payment_details.status == PaymentDetailsStatus.CHECKOUT_PENDING  # type: ignore[union-attr]

    async def test_pending_request_not_payable(self, sessions, money_repo, gateway, db) -> None:
        money_repo.seed(make_money_request())

        with pytest.raises(IllegalTransitionError):
            await sessions.create_session(db, "mr_1", CUSTOMER)
        assert gateway.created == []

    async def test_other_customer_cannot_pay(self, sessions, money_repo, db) -> None:
        money_repo.seed(make_money_request(status=MoneyRequestStatus.ACCEPTED))
        with pytest.raises(AuthorizationError):
            await sessions.create_session(db, "mr_1", CustomerPrincipal("cust-2"))

    async def test_total_changed_during_gateway_call(self, writer, money_repo, db) -> None:
        money_repo.seed(make_money_request(status=MoneyRequestStatus.ACCEPTED))

        class RepricingGateway(FakeGateway):
            async def create_checkout_session(self, **kwargs):  # type: ignore[no-untyped-def]
                row = money_repo.stored("mr_1")
                lifecycle.set_amount(row, "cust-1", 20000, 0, 500, NOW)
                row.version += 1
                return await super().create_checkout_session(**kwargs)

        sessions = PaymentSessionService(
            writer=writer, gateway=RepricingGateway(), customers=FakeCustomers()
        )

        with pytest.raises(ConflictError):
            await sessions.create_session(db, "mr_1", CUSTOMER)
        assert money_repo.stored("mr_1").payment_details is None


class TestCancelCheckout:
    async def test_cancel_keeps_request_payable(self, sessions, money_repo, db) -> None:
        mr = make_money_request(status=MoneyRequestStatus.ACCEPTED)
        lifecycle.record_checkout_session(mr, "cs_test_1", mr.total_amount, NOW)
        money_repo.seed(mr)

        detail = await sessions.cancel_checkout(db, "mr_1", CUSTOMER)

        assert detail.status == "accepted"
        assert detail.payment_details is not None
        assert detail.payment_details.status == "checkout_canceled"

    async def test_cancel_without_session_writes_nothing(self, sessions, money_repo, db) -> None:
        money_repo.seed(make_money_request(status=MoneyRequestStatus.ACCEPTED))

        await sessions.cancel_checkout(db, "mr_1", CUSTOMER)

        assert money_repo.writes == 0
