"""Repository Protocol — dependency inversion for testability."""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.sm_money.domain.models import MoneyRequest, MoneyRequestEvent, StatusStat


class MoneyRequestRepositoryProtocol(Protocol):
    async def get(self, db: AsyncSession, money_request_id: str) -> MoneyRequest | None: ...

    async def insert(self, db: AsyncSession, mr: MoneyRequest) -> MoneyRequest: ...

    async def update(self, db: AsyncSession, mr: MoneyRequest, expected_version: int) -> bool: ...

    async def append_events(self, db: AsyncSession, events: list[MoneyRequestEvent]) -> None: ...

    async def list_events(
        self, db: AsyncSession, money_request_id: str
    ) -> list[MoneyRequestEvent]: ...

    async def find_active_customers(
        self,
        db: AsyncSession,
        customer_ids: list[str],
        bundle_id: str | None,
        service_request_id: str | None,
    ) -> list[str]:
        """Return which of ``customer_ids`` already hold an active request for the origin."""
        ...

    async def list_for(
        self,
        db: AsyncSession,
        customer_id: str | None,
        provider_id: str | None,
        status: str | None,
        origin: str | None,
        cursor_ts: str | None,
        cursor_id: str | None,
        limit: int,
    ) -> list[MoneyRequest]: ...

    async def stats(
        self, db: AsyncSession, customer_id: str | None, provider_id: str | None
    ) -> list[StatusStat]: ...
