"""Tests for PricingConfigService — commission earnings report."""

from collections.abc import AsyncGenerator, Iterator
from datetime import UTC, datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from fakes import make_db

from src.main import app
from src.sm_common.database import get_db_session
from src.sm_common.errors import ValidationError
from src.sm_gateway.auth.jwt_handler import create_access_token
from src.sm_pricing.api import router as pricing_router
from src.sm_pricing.application.service import PricingConfigService
from src.sm_pricing.domain.models import CommissionEarnings, PricingConfig
from src.sm_pricing.infrastructure.persistence import PricingConfigRepository

EARNINGS_URL = "/api/v1/admin/settings/commission/earnings"


class StaticPricingRepository:
    def __init__(self, config: PricingConfig | None, earnings: CommissionEarnings) -> None:
        self.config = config
        self.earnings = earnings
        self.ranges: list[tuple[datetime | None, datetime | None]] = []

    async def load(self, db):  # type: ignore[no-untyped-def]
        return self.config

    async def commission_earnings(self, db, start, end):  # type: ignore[no-untyped-def]
        self.ranges.append((start, end))
        return self.earnings


def _config(service_bps: int = 500, bundle_bps: int = 300) -> PricingConfig:
    return PricingConfig(
        service_commission_bps=service_bps,
        bundle_commission_bps=bundle_bps,
        bundle_discount_bps=1000,
        bundle_expiry_hours=24,
        max_bundle_size=5,
    )


@pytest.fixture
def repo() -> StaticPricingRepository:
    return StaticPricingRepository(
        _config(),
        CommissionEarnings(
            service_commission=1250, service_requests=3, bundle_commission=480, bundle_requests=2
        ),
    )


class TestCommissionEarnings:
    async def test_split_by_origin_with_current_rates(self, repo, db) -> None:
        report = await PricingConfigService(repo=repo).commission_earnings(db)

        assert report.service_requests.commission_cents == 1250
        assert report.service_requests.paid_requests == 3
        assert report.service_requests.current_rate_bps == 500
        assert report.bundles.commission_cents == 480
        assert report.bundles.current_rate_bps == 300
        assert report.total_commission_cents == 1730
        assert report.total_commission_display == "$17.30"
        assert repo.ranges == [(None, None)]

    async def test_naive_range_read_as_utc(self, repo, db) -> None:
        await PricingConfigService(repo=repo).commission_earnings(
            db, datetime(2026, 9, 1), datetime(2026, 10, 1)
        )

        start, end = repo.ranges[0]
        assert start == datetime(2026, 9, 1, tzinfo=UTC)
        assert end == datetime(2026, 10, 1, tzinfo=UTC)

    async def test_inverted_range_rejected(self, repo, db) -> None:
        with pytest.raises(ValidationError):
            await PricingConfigService(repo=repo).commission_earnings(
                db, datetime(2026, 10, 1, tzinfo=UTC), datetime(2026, 9, 1, tzinfo=UTC)
            )
        assert repo.ranges == []

    async def test_missing_settings_report_fallback_rates(self, repo, db) -> None:
        repo.config = None

        report = await PricingConfigService(repo=repo).commission_earnings(db)

        fallback = PricingConfig.fallback()
        assert report.service_requests.current_rate_bps == fallback.service_commission_bps
        assert report.bundles.current_rate_bps == fallback.bundle_commission_bps


class TestCommissionEarningsQuery:
    async def test_rows_grouped_by_origin(self) -> None:
        db = make_db()
        result = MagicMock()
        result.fetchall.return_value = [
            SimpleNamespace(is_bundle=True, commission=480, requests=2),
            SimpleNamespace(is_bundle=False, commission=1250, requests=3),
        ]
        db.execute.return_value = result

        earnings = await PricingConfigRepository().commission_earnings(db, None, None)

        assert earnings == CommissionEarnings(
            service_commission=1250, service_requests=3, bundle_commission=480, bundle_requests=2
        )

    async def test_no_paid_requests(self) -> None:
        db = make_db()
        result = MagicMock()
        result.fetchall.return_value = []
        db.execute.return_value = result

        earnings = await PricingConfigRepository().commission_earnings(db, None, None)

        assert earnings.total_commission == 0
        assert earnings.bundle_requests == 0


class TestCommissionEarningsRoute:
    @pytest.fixture(autouse=True)
    def _stub(self, repo, monkeypatch) -> Iterator[None]:
        async def override() -> AsyncGenerator[AsyncMock, None]:
            yield make_db()

        monkeypatch.setattr(pricing_router, "_service", PricingConfigService(repo=repo))
        app.dependency_overrides[get_db_session] = override
        yield
        app.dependency_overrides.pop(get_db_session, None)

    async def test_admin_reads_report(self, client) -> None:
        token = create_access_token("adm-1", "admin")

        resp = await client.get(
            EARNINGS_URL,
            params={"start_date": "2026-09-01T00:00:00Z"},
            headers={"Authorization": f"Bearer {token}"},
        )

        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["total_commission_cents"] == 1730
        assert data["bundles"]["paid_requests"] == 2
        assert data["start_date"].startswith("2026-09-01T00:00:00")
        assert data["end_date"] is None

    async def test_provider_forbidden(self, client) -> None:
        token = create_access_token("prov-1", "provider")

        resp = await client.get(EARNINGS_URL, headers={"Authorization": f"Bearer {token}"})

        assert resp.status_code == 403
