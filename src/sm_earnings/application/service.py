"""EarningsService — provider balance reads and the reconciliation credit.

credit_payment() is the only path that raises a provider balance. It does
not commit: the reconciliation engine calls it inside a savepoint of the
transaction that marks the money request paid.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.sm_earnings.application.schemas import (
    EarningEntryItem,
    EarningsBalanceResponse,
    EarningsLedgerResponse,
    cursor_decode,
    cursor_encode,
)
from src.sm_earnings.domain.repository import EarningsRepositoryProtocol
from src.sm_earnings.infrastructure.persistence import EarningsRepository

logger = logging.getLogger(__name__)


class EarningsService:
    def __init__(self, repo: EarningsRepositoryProtocol | None = None) -> None:
        self._repo: EarningsRepositoryProtocol = repo or EarningsRepository()

    async def credit_payment(
        self, db: AsyncSession, provider_id: str, amount: int, money_request_id: str
    ) -> bool:
        """Returns False when this money request was already credited."""
        if await self._repo.has_credit(db, money_request_id):
            logger.info("Money request %s already credited, skipping", money_request_id)
            return False
        account, entry = await self._repo.credit_payment(
            db,
            provider_id,
            amount,
            money_request_id,
            f"Payment received for money request {money_request_id}",
        )
        logger.info(
            "Credited provider %s with %d cents for %s (balance %d, entry %d)",
            provider_id,
            amount,
            money_request_id,
            account.available_balance,
            entry.id,
        )
        return True

    async def get_balance(self, db: AsyncSession, provider_id: str) -> EarningsBalanceResponse:
        account = await self._repo.get_account(db, provider_id)
        return EarningsBalanceResponse.from_account(provider_id, account)

    async def list_ledger(
        self,
        db: AsyncSession,
        provider_id: str,
        cursor: str | None,
        limit: int,
        entry_type: str | None,
    ) -> EarningsLedgerResponse:
        cursor_id = cursor_decode(cursor)
        # Fetch limit+1 to detect has_more without a COUNT(*) query
        entries = await self._repo.list_entries(db, provider_id, cursor_id, limit + 1, entry_type)
        has_more = len(entries) > limit
        page = entries[:limit]
        next_cursor = cursor_encode(page[-1].id) if has_more and page else None
        return EarningsLedgerResponse(
            items=[EarningEntryItem.from_domain(e) for e in page],
            next_cursor=next_cursor,
            has_more=has_more,
        )
