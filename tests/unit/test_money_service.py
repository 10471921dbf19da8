"""Unit tests for MoneyRequestService with in-memory collaborators."""

import pytest
from fakes import (
    FakeCustomers,
    FakeGateway,
    FakeServiceRequests,
    make_bundle,
    make_customer,
    make_money_request,
)

from src.sm_common.enums import BundleStatus, MoneyRequestStatus
from src.sm_common.errors import (
    AuthorizationError,
    BundleNotOpenError,
    DuplicateMoneyRequestError,
    ValidationError,
)
from src.sm_common.principal import AdminPrincipal, CustomerPrincipal, ProviderPrincipal
from src.sm_directory.domain.models import ServiceRequestRef
from src.sm_money.application.schemas import CreateMoneyRequestRequest
from src.sm_money.application.service import MoneyRequestService
from src.sm_payment.application.session_service import PaymentSessionService

PROVIDER = ProviderPrincipal("prov-1")
CUSTOMER = CustomerPrincipal("cust-1")


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def svc(writer, bundle_repo, pricing, notifier, gateway) -> MoneyRequestService:
    return MoneyRequestService(
        writer=writer,
        bundles=bundle_repo,
        service_requests=FakeServiceRequests(
            ServiceRequestRef(id="sr-1", customer_id="cust-1", provider_id="prov-1", status="completed"),
            ServiceRequestRef(id="sr-2", customer_id="cust-2", provider_id="prov-1", status="in_progress"),
            ServiceRequestRef(id="sr-3", customer_id="cust-3", provider_id="prov-9", status="completed"),
        ),
        pricing=pricing,
        sessions=PaymentSessionService(
            writer=writer, gateway=gateway, customers=FakeCustomers(make_customer("cust-1"))
        ),
        notifier=notifier,
    )


class TestCreateForServiceRequest:
    async def test_creates_pending_request(self, svc, money_repo, notifier, db) -> None:
        resp = await svc.create(
            db, PROVIDER, CreateMoneyRequestRequest(service_request_id="sr-1", amount=10000)
        )

        assert len(resp.items) == 1
        item = resp.items[0]
        assert item.status == "pending"
        assert item.customer_id == "cust-1"
        assert item.total_amount_cents == 10000
        assert item.commission.commission_amount_cents == 500
        assert item.commission.provider_amount_cents == 9500
        assert len(money_repo.rows) == 1
        assert notifier.titles_for("cust-1") == ["Payment requested"]

    async def test_service_request_must_be_completed(self, svc, db) -> None:
        with pytest.raises(ValidationError, match="completed"):
            await svc.create(
                db, PROVIDER, CreateMoneyRequestRequest(service_request_id="sr-2", amount=5000)
            )

    async def test_only_assigned_provider(self, svc, db) -> None:
        with pytest.raises(AuthorizationError):
            await svc.create(
                db, PROVIDER, CreateMoneyRequestRequest(service_request_id="sr-3", amount=5000)
            )

    async def test_second_active_request_rejected(self, svc, money_repo, db) -> None:
        body = CreateMoneyRequestRequest(service_request_id="sr-1", amount=10000)
        await svc.create(db, PROVIDER, body)

        with pytest.raises(DuplicateMoneyRequestError):
            await svc.create(db, PROVIDER, body)
        assert len(money_repo.rows) == 1

    async def test_new_request_allowed_after_cancel(self, svc, money_repo, db) -> None:
        money_repo.seed(make_money_request(status=MoneyRequestStatus.CANCELLED))

        resp = await svc.create(
            db, PROVIDER, CreateMoneyRequestRequest(service_request_id="sr-1", amount=10000)
        )

        assert len(resp.items) == 1


class TestCreateForBundle:
    async def test_all_participants_get_discounted_request(self, svc, bundle_repo, db) -> None:
        bundle_repo.seed(
            make_bundle(
                status=BundleStatus.COMPLETED,
                participants=("cust-1", "cust-2", "cust-3"),
                provider_id="prov-1",
            )
        )

        resp = await svc.create(
            db, PROVIDER, CreateMoneyRequestRequest(bundle_id="bdl_1", amount=10000)
        )

        assert sorted(i.customer_id for i in resp.items) == ["cust-1", "cust-2", "cust-3"]
        for item in resp.items:
            assert item.amount_cents == 9000
            assert item.original_amount_cents == 10000
            assert item.discount_bps == 1000
            assert item.commission.commission_amount_cents == 450

    async def test_all_participants_requires_completed(self, svc, bundle_repo, db) -> None:
        bundle_repo.seed(make_bundle(status=BundleStatus.IN_PROGRESS, provider_id="prov-1"))
        with pytest.raises(BundleNotOpenError):
            await svc.create(
                db, PROVIDER, CreateMoneyRequestRequest(bundle_id="bdl_1", amount=10000)
            )

    async def test_single_participant_while_in_progress(self, svc, bundle_repo, db) -> None:
        bundle_repo.seed(
            make_bundle(
                status=BundleStatus.IN_PROGRESS,
                participants=("cust-1", "cust-2"),
                provider_id="prov-1",
            )
        )

        resp = await svc.create(
            db,
            PROVIDER,
            CreateMoneyRequestRequest(bundle_id="bdl_1", customer_id="cust-2", amount=5000),
        )

        assert [i.customer_id for i in resp.items] == ["cust-2"]
        assert resp.items[0].amount_cents == 4500

    async def test_non_participant_rejected(self, svc, bundle_repo, db) -> None:
        bundle_repo.seed(make_bundle(status=BundleStatus.COMPLETED, provider_id="prov-1"))
        with pytest.raises(ValidationError):
            await svc.create(
                db,
                PROVIDER,
                CreateMoneyRequestRequest(bundle_id="bdl_1", customer_id="cust-9", amount=5000),
            )

    async def test_other_provider_rejected(self, svc, bundle_repo, db) -> None:
        bundle_repo.seed(make_bundle(status=BundleStatus.COMPLETED, provider_id="prov-2"))
        with pytest.raises(AuthorizationError):
            await svc.create(
                db, PROVIDER, CreateMoneyRequestRequest(bundle_id="bdl_1", amount=5000)
            )


class TestCustomerCommands:
    async def test_accept_with_tip_notifies_provider(self, svc, money_repo, notifier, db) -> None:
        money_repo.seed(make_money_request())

        detail = await svc.accept(db, "mr_1", CUSTOMER, 2000)

        assert detail.status == "accepted"
        assert detail.total_amount_cents == 12000
        assert detail.commission.commission_amount_cents == 600
        assert detail.commission.provider_amount_cents == 11400
        assert notifier.titles_for("prov-1") == ["Payment request accepted"]

    async def test_set_amount_and_pay_is_checkout_pending(
        self, svc, money_repo, gateway, db
    ) -> None:
        money_repo.seed(make_money_request())

        resp = await svc.set_amount_and_pay(db, "mr_1", CUSTOMER, 8000, 500)

        assert resp.payment_status == "checkout_pending"
        assert resp.session_id == "cs_test_1"
        assert resp.money_request.status == "accepted"
        assert resp.money_request.total_amount_cents == 8500
        assert gateway.created[0]["line_items"][0].unit_amount == 8500
        stored = money_repo.stored("mr_1")
        assert stored.status == MoneyRequestStatus.ACCEPTED
        assert stored.payment_details is not None
        assert stored.payment_details.checkout_session_id == "cs_test_1"

    async def test_cancel_pending(self, svc, money_repo, notifier, db) -> None:
        money_repo.seed(make_money_request())

        detail = await svc.cancel(db, "mr_1", CUSTOMER)

        assert detail.status == "cancelled"
        assert notifier.titles_for("prov-1") == ["Payment request cancelled"]

    async def test_provider_dispute_notifies_customer(self, svc, money_repo, notifier, db) -> None:
        money_repo.seed(make_money_request(status=MoneyRequestStatus.ACCEPTED))

        detail = await svc.dispute(db, "mr_1", PROVIDER, "Customer unreachable", None)

        assert detail.status == "disputed"
        assert detail.dispute_details is not None
        assert detail.dispute_details.raised_by_role == "provider"
        assert notifier.titles_for("cust-1") == ["Payment disputed"]


class TestQueries:
    async def test_other_customer_cannot_read(self, svc, money_repo, db) -> None:
        money_repo.seed(make_money_request())
        with pytest.raises(AuthorizationError):
            await svc.get(db, "mr_1", CustomerPrincipal("cust-2"))

    async def test_admin_reads_with_history(self, svc, money_repo, db) -> None:
        money_repo.seed(make_money_request())
        await svc.accept(db, "mr_1", CUSTOMER, 0)

        detail = await svc.get(db, "mr_1", AdminPrincipal("adm-1"))

        assert [h.status for h in detail.status_history] == ["accepted"]

    async def test_list_pages_with_cursor(self, svc, money_repo, db) -> None:
        money_repo.seed(make_money_request("mr_1"))
        money_repo.seed(make_money_request("mr_2", service_request_id="sr-2"))

        page = await svc.list_for(db, CUSTOMER, None, None, None, 1)

        assert len(page.items) == 1
        assert page.has_more
        assert page.next_cursor is not None

    async def test_stats_per_status(self, svc, money_repo, db) -> None:
        money_repo.seed(make_money_request("mr_1"))
        money_repo.seed(make_money_request("mr_2", status=MoneyRequestStatus.PAID, amount=3000))

        stats = await svc.stats(db, PROVIDER)

        assert stats.total_count == 2
        by_status = {s.status: s for s in stats.by_status}
        assert by_status["paid"].total_amount_cents == 3000
        assert by_status["pending"].count == 1
