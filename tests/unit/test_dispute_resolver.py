"""Tests for DisputeResolverService."""

from dataclasses import replace

import pytest
from fakes import NOW, make_money_request

from src.sm_admin.application.service import DisputeResolverService
from src.sm_common.enums import MoneyRequestStatus
from src.sm_common.errors import IllegalTransitionError, MoneyRequestNotFoundError
from src.sm_common.principal import AdminPrincipal, CustomerPrincipal
from src.sm_money.domain import lifecycle

ADMIN = AdminPrincipal("adm-1")


def _disputed(**kwargs):  # type: ignore[no-untyped-def]
    mr = make_money_request(status=MoneyRequestStatus.ACCEPTED, **kwargs)
    lifecycle.dispute(mr, CustomerPrincipal("cust-1"), "Job unfinished", None, NOW)
    return mr


@pytest.fixture
def resolver(writer, pricing, notifier) -> DisputeResolverService:
    return DisputeResolverService(writer=writer, pricing=pricing, notifier=notifier)


class TestResolveDispute:
    async def test_back_to_accepted_with_new_amount(
        self, resolver, money_repo, notifier, db
    ) -> None:
        money_repo.seed(_disputed(tip_amount=500))

        detail = await resolver.resolve_dispute(
            db, ADMIN, "mr_1", "Half the yard was done", MoneyRequestStatus.ACCEPTED, 6000
        )

        assert detail.status == "accepted"
        assert detail.amount_cents == 6000
        assert detail.total_amount_cents == 6500
        assert detail.commission.commission_amount_cents == 325
        assert detail.dispute_details is not None
        assert detail.dispute_details.resolution == "Half the yard was done"
        assert detail.status_history[-1].changed_by_role == "admin"
        assert notifier.titles_for("cust-1") == ["Dispute resolved"]
        assert notifier.titles_for("prov-1") == ["Dispute resolved"]

    async def test_cancel_keeps_amounts(self, resolver, money_repo, db) -> None:
        money_repo.seed(_disputed())

        detail = await resolver.resolve_dispute(
            db, ADMIN, "mr_1", "Customer refunded offline", MoneyRequestStatus.CANCELLED
        )

        assert detail.status == "cancelled"
        assert detail.total_amount_cents == 10000

    async def test_bundle_request_uses_bundle_rate(self, resolver, money_repo, pricing, db) -> None:
        pricing.config = replace(pricing.config, bundle_commission_bps=300)
        money_repo.seed(_disputed(bundle_id="bdl_1"))

        detail = await resolver.resolve_dispute(
            db, ADMIN, "mr_1", "Agreed", MoneyRequestStatus.ACCEPTED, 10000
        )

        assert detail.commission.rate_bps == 300
        assert detail.commission.commission_amount_cents == 300

    async def test_only_disputed_requests(self, resolver, money_repo, db) -> None:
        money_repo.seed(make_money_request(status=MoneyRequestStatus.ACCEPTED))
        with pytest.raises(IllegalTransitionError):
            await resolver.resolve_dispute(db, ADMIN, "mr_1", "x", MoneyRequestStatus.CANCELLED)
        assert money_repo.writes == 0

    async def test_unknown_request(self, resolver, db) -> None:
        with pytest.raises(MoneyRequestNotFoundError):
            await resolver.resolve_dispute(db, ADMIN, "mr_9", "x", MoneyRequestStatus.CANCELLED)
