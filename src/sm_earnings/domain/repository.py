"""Repository Protocol — dependency inversion for testability."""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.sm_earnings.domain.models import EarningEntry, ProviderAccount


class EarningsRepositoryProtocol(Protocol):
    async def get_account(self, db: AsyncSession, provider_id: str) -> ProviderAccount | None: ...

    async def has_credit(self, db: AsyncSession, reference_id: str) -> bool: ...

    async def credit_payment(
        self,
        db: AsyncSession,
        provider_id: str,
        amount: int,
        reference_id: str,
        description: str,
    ) -> tuple[ProviderAccount, EarningEntry]: ...

    async def list_entries(
        self,
        db: AsyncSession,
        provider_id: str,
        cursor_id: int | None,
        limit: int,
        entry_type: str | None,
    ) -> list[EarningEntry]: ...
