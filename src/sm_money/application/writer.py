"""MoneyRequestWriter — the single write path for money requests.

Every mutation (customer commands, checkout bookkeeping, reconciliation,
dispute resolution) goes through apply():

    lock(id) → read → rule → versioned UPDATE + events [+ hook] → commit

A rule that returns no events means "nothing to write" and the writer leaves
the row alone. A lost version check rolls back, re-reads and re-runs the rule
against the fresh row, so a second confirmation path sees ``paid`` and
becomes a no-op.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.sm_common.aggregate_lock import AggregateLockRegistry, money_request_locks
from src.sm_common.datetime_utils import utc_now
from src.sm_common.errors import ConcurrentModificationError, MoneyRequestNotFoundError
from src.sm_money.domain.models import MoneyRequest, MoneyRequestEvent
from src.sm_money.domain.repository import MoneyRequestRepositoryProtocol
from src.sm_money.infrastructure.persistence import MoneyRequestRepository

logger = logging.getLogger(__name__)

Mutation = Callable[[MoneyRequest, datetime], list[MoneyRequestEvent] | None]
BeforeCommit = Callable[[AsyncSession, MoneyRequest], Awaitable[None]]


@dataclass
class WriteResult:
    money_request: MoneyRequest
    written: bool


class MoneyRequestWriter:
    def __init__(
        self,
        repo: MoneyRequestRepositoryProtocol | None = None,
        locks: AggregateLockRegistry | None = None,
    ) -> None:
        self.repo: MoneyRequestRepositoryProtocol = repo or MoneyRequestRepository()
        self._locks = locks or money_request_locks

    async def load(self, db: AsyncSession, money_request_id: str) -> MoneyRequest:
        mr = await self.repo.get(db, money_request_id)
        if mr is None:
            raise MoneyRequestNotFoundError(money_request_id)
        return mr

    async def apply(
        self,
        db: AsyncSession,
        money_request_id: str,
        mutate: Mutation,
        before_commit: BeforeCommit | None = None,
    ) -> WriteResult:
        async with self._locks.hold(money_request_id):
            for attempt in range(settings.AGGREGATE_WRITE_RETRIES):
                mr = await self.load(db, money_request_id)
                expected_version = mr.version
                events = mutate(mr, utc_now())
                if not events:
                    return WriteResult(mr, written=False)
                try:
                    if not await self.repo.update(db, mr, expected_version):
                        await db.rollback()
                        logger.info(
                            "Money request %s version %d changed underneath, retrying (attempt %d)",
                            money_request_id,
                            expected_version,
                            attempt + 1,
                        )
                        continue
                    await self.repo.append_events(db, events)
                    if before_commit is not None:
                        await before_commit(db, mr)
                    await db.commit()
                except Exception:
                    await db.rollback()
                    raise
                return WriteResult(mr, written=True)
        raise ConcurrentModificationError("Money request", money_request_id)
