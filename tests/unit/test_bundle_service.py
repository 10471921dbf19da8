"""Unit tests for BundleLifecycleService with in-memory collaborators."""

import asyncio
from datetime import UTC, datetime, timedelta

import pytest
from fakes import (
    HOME,
    FakeCatalog,
    FakeCustomers,
    FakePricing,
    FakeProviders,
    InMemoryBundleRepository,
    RecordingNotifier,
    make_bundle,
    make_customer,
    make_db,
    make_provider,
)

from src.sm_bundle.application.schemas import BundleServiceIn, CreateBundleRequest, StatusUpdateRequest
from src.sm_bundle.application.service import BundleLifecycleService
from src.sm_common.aggregate_lock import AggregateLockRegistry
from src.sm_common.enums import BundleStatus
from src.sm_common.errors import (
    AppError,
    AuthorizationError,
    BundleExpiredError,
    CapacityExceededError,
    ConcurrentModificationError,
    InvalidServicesError,
)
from src.sm_common.principal import CustomerPrincipal, ProviderPrincipal
from src.sm_directory.domain.models import CatalogService


def _service(
    repo: InMemoryBundleRepository,
    notifier: RecordingNotifier | None = None,
    locks: AggregateLockRegistry | None = None,
) -> BundleLifecycleService:
    return BundleLifecycleService(
        repo=repo,
        catalog=FakeCatalog(
            [
                CatalogService(name="Lawn Mowing", is_active=True, default_hourly_rate=5000),
                CatalogService(name="Snow Removal", is_active=False, default_hourly_rate=7000),
            ]
        ),
        providers=FakeProviders(make_provider()),
        customers=FakeCustomers(*(make_customer(f"cust-{i}") for i in range(1, 8))),
        pricing=FakePricing(),  # type: ignore[arg-type]
        notifier=notifier or RecordingNotifier(),
        locks=locks or AggregateLockRegistry("bundle-test"),
    )


class _StaleRepository(InMemoryBundleRepository):
    """Every compare-and-swap loses."""

    async def update(self, db, bundle, expected_version):  # type: ignore[no-untyped-def]
        return False


class TestCreate:
    async def test_creates_pending_bundle_with_catalog_rates(self) -> None:
        repo = InMemoryBundleRepository()
        svc = _service(repo)
        body = CreateBundleRequest(
            title="Lawn day",
            category="lawn",
            services=[BundleServiceIn(name="Lawn Mowing", estimated_hours=3)],
        )

        detail = await svc.create(make_db(), CustomerPrincipal("cust-1"), body)

        assert detail.status == "pending"
        assert detail.zip_code == "62701"
        assert detail.current_participants == 1
        assert detail.pricing.original_price_cents == 15000
        assert detail.pricing.final_price_cents == 13500
        assert detail.id in repo.rows
        assert len(repo.events) == 1

    async def test_inactive_service_rejected(self) -> None:
        svc = _service(InMemoryBundleRepository())
        body = CreateBundleRequest(
            title="Winter",
            category="snow",
            services=[BundleServiceIn(name="Snow Removal"), BundleServiceIn(name="Unknown")],
        )
        with pytest.raises(InvalidServicesError, match="Snow Removal, Unknown"):
            await svc.create(make_db(), CustomerPrincipal("cust-1"), body)


class TestJoinConcurrency:
    async def test_parallel_joins_never_exceed_capacity(self) -> None:
        repo = InMemoryBundleRepository(yield_on_read=True)
        repo.seed(make_bundle(max_participants=3))
        svc = _service(repo)

        results = await asyncio.gather(
            *(
                svc.join(make_db(), "bdl_1", CustomerPrincipal(f"cust-{i}"), HOME)
                for i in range(2, 7)
            ),
            return_exceptions=True,
        )

        successes = [r for r in results if not isinstance(r, Exception)]
        failures = [r for r in results if isinstance(r, Exception)]
        assert len(successes) == 2
        assert all(isinstance(f, CapacityExceededError) for f in failures)
        stored = repo.stored("bdl_1")
        assert stored.current_participants == 3
        assert stored.status == BundleStatus.FULL
        assert len(stored.active_participants()) == 3

    async def test_lost_version_check_rereads_fresh_state(self) -> None:
        # two writers with separate locks stand in for two processes
        repo = InMemoryBundleRepository(yield_on_read=True)
        repo.seed(make_bundle(max_participants=2))
        first = _service(repo, locks=AggregateLockRegistry("p1"))
        second = _service(repo, locks=AggregateLockRegistry("p2"))

        results = await asyncio.gather(
            first.join(make_db(), "bdl_1", CustomerPrincipal("cust-2"), HOME),
            second.join(make_db(), "bdl_1", CustomerPrincipal("cust-3"), HOME),
            return_exceptions=True,
        )

        assert sum(1 for r in results if isinstance(r, CapacityExceededError)) == 1
        stored = repo.stored("bdl_1")
        assert stored.current_participants == 2
        assert stored.status == BundleStatus.FULL

    async def test_retries_exhausted_raise_concurrent_modification(self) -> None:
        repo = _StaleRepository()
        repo.seed(make_bundle())
        svc = _service(repo)
        db = make_db()

        with pytest.raises(ConcurrentModificationError):
            await svc.join(db, "bdl_1", CustomerPrincipal("cust-2"), HOME)
        assert db.rollback.await_count >= 3


class TestExpiry:
    async def test_join_on_lapsed_pending_bundle_persists_expired(self) -> None:
        repo = InMemoryBundleRepository()
        repo.seed(make_bundle(expires_at=datetime.now(UTC) - timedelta(minutes=1)))
        svc = _service(repo)

        with pytest.raises(BundleExpiredError):
            await svc.join(make_db(), "bdl_1", CustomerPrincipal("cust-2"), HOME)

        assert repo.stored("bdl_1").status == BundleStatus.EXPIRED
        assert repo.events[-1].status == BundleStatus.EXPIRED

    async def test_lapsed_accepted_bundle_blocks_but_keeps_status(self) -> None:
        repo = InMemoryBundleRepository()
        repo.seed(
            make_bundle(
                status=BundleStatus.ACCEPTED,
                provider_id="prov-1",
                expires_at=datetime.now(UTC) - timedelta(minutes=1),
            )
        )
        svc = _service(repo)

        with pytest.raises(BundleExpiredError):
            await svc.join(make_db(), "bdl_1", CustomerPrincipal("cust-2"), HOME)
        assert repo.stored("bdl_1").status == BundleStatus.ACCEPTED

    async def test_provider_can_progress_after_deadline(self) -> None:
        repo = InMemoryBundleRepository()
        repo.seed(
            make_bundle(
                status=BundleStatus.ACCEPTED,
                provider_id="prov-1",
                expires_at=datetime.now(UTC) - timedelta(hours=2),
            )
        )
        svc = _service(repo)

        detail = await svc.update_status(
            make_db(), "bdl_1", ProviderPrincipal("prov-1"), StatusUpdateRequest(status="in_progress")
        )
        assert detail.status == "in_progress"

    async def test_read_projects_expiry_without_writing(self) -> None:
        repo = InMemoryBundleRepository()
        repo.seed(make_bundle(expires_at=datetime.now(UTC) - timedelta(minutes=1)))
        svc = _service(repo)

        detail = await svc.get(make_db(), "bdl_1", CustomerPrincipal("cust-1"))

        assert detail.status == "expired"
        assert repo.stored("bdl_1").status == BundleStatus.PENDING
        assert repo.writes == 0


class TestProviderFlow:
    async def test_accept_notifies_participants(self) -> None:
        repo = InMemoryBundleRepository()
        repo.seed(make_bundle(participants=("cust-1", "cust-2")))
        notifier = RecordingNotifier()
        svc = _service(repo, notifier)

        detail = await svc.provider_accept(make_db(), "bdl_1", ProviderPrincipal("prov-1"))

        assert detail.status == "accepted"
        assert detail.max_participants == 3
        assert notifier.titles_for("cust-1") == ["Bundle accepted"]
        assert notifier.titles_for("cust-2") == ["Bundle accepted"]

    async def test_failed_notification_does_not_fail_command(self) -> None:
        repo = InMemoryBundleRepository()
        repo.seed(make_bundle())
        svc = _service(repo, RecordingNotifier(deliver=False))

        detail = await svc.submit_offer(make_db(), "bdl_1", ProviderPrincipal("prov-1"), "Hi")

        assert detail.provider_offers[0].status == "pending"

    async def test_outsider_cannot_read_terminal_bundle(self) -> None:
        repo = InMemoryBundleRepository()
        repo.seed(make_bundle(status=BundleStatus.CANCELLED))
        svc = _service(repo)
        with pytest.raises(AuthorizationError):
            await svc.get(make_db(), "bdl_1", CustomerPrincipal("cust-9"))

    async def test_join_via_share_token(self) -> None:
        repo = InMemoryBundleRepository()
        repo.seed(make_bundle())
        svc = _service(repo)

        detail = await svc.join_via_share_token(make_db(), "share-bdl_1", CustomerPrincipal("cust-2"))

        assert detail.current_participants == 2

    async def test_unknown_bundle_is_not_found(self) -> None:
        svc = _service(InMemoryBundleRepository())
        with pytest.raises(AppError) as exc_info:
            await svc.join(make_db(), "bdl_missing", CustomerPrincipal("cust-2"), HOME)
        assert exc_info.value.http_status == 404
