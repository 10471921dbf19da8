"""Read-only collaborator lookups, as Protocols.

Unit tests inject fakes that conform to these Protocols.
"""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.sm_directory.domain.models import (
    CatalogService,
    CustomerProfile,
    ProviderProfile,
    ServiceRequestRef,
)


class ServiceCatalogProtocol(Protocol):
    async def find_services_by_name(
        self, db: AsyncSession, names: list[str]
    ) -> list[CatalogService]: ...


class ProviderDirectoryProtocol(Protocol):
    async def get_provider(self, db: AsyncSession, provider_id: str) -> ProviderProfile | None: ...


class CustomerDirectoryProtocol(Protocol):
    async def get_customer(self, db: AsyncSession, customer_id: str) -> CustomerProfile | None: ...


class ServiceRequestLookupProtocol(Protocol):
    async def get_service_request(
        self, db: AsyncSession, service_request_id: str
    ) -> ServiceRequestRef | None: ...
