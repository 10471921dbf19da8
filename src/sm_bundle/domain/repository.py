"""Repository Protocol — dependency inversion for testability.

update() is a compare-and-swap on ``version``: it returns False when another
writer got there first, and the caller re-reads and re-applies.
"""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.sm_bundle.domain.models import Bundle, BundleEvent


class BundleRepositoryProtocol(Protocol):
    async def get(self, db: AsyncSession, bundle_id: str) -> Bundle | None: ...

    async def get_by_share_token(self, db: AsyncSession, share_token: str) -> Bundle | None: ...

    async def insert(self, db: AsyncSession, bundle: Bundle) -> Bundle: ...

    async def update(self, db: AsyncSession, bundle: Bundle, expected_version: int) -> bool: ...

    async def append_events(self, db: AsyncSession, events: list[BundleEvent]) -> None: ...

    async def list_events(self, db: AsyncSession, bundle_id: str) -> list[BundleEvent]: ...

    async def list_open(
        self,
        db: AsyncSession,
        zip_code: str,
        category: str | None,
        cursor_ts: str | None,
        cursor_id: str | None,
        limit: int,
    ) -> list[Bundle]: ...

    async def list_for_member(
        self,
        db: AsyncSession,
        customer_id: str | None,
        provider_id: str | None,
        status: str | None,
        cursor_ts: str | None,
        cursor_id: str | None,
        limit: int,
    ) -> list[Bundle]: ...
