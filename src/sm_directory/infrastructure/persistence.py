"""Raw-SQL lookups over collaborator-owned tables.

asyncpg NULL/array pattern: CAST(:names AS TEXT[]) for list parameters.
"""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.sm_common.database import load_json
from src.sm_directory.domain.models import (
    Address,
    CatalogService,
    CustomerProfile,
    ProviderProfile,
    ProviderService,
    ServiceArea,
    ServiceRequestRef,
)

_FIND_SERVICES_SQL = text("""
    SELECT name, is_active, default_hourly_rate_cents
    FROM catalog_services
    WHERE name = ANY(CAST(:names AS TEXT[]))
""")

_GET_PROVIDER_SQL = text("""
    SELECT id, business_name, max_bundle_capacity, services_provided, service_areas
    FROM providers
    WHERE id = :provider_id
""")

_GET_CUSTOMER_SQL = text("""
    SELECT id, email, name, address
    FROM customers
    WHERE id = :customer_id
""")

_GET_SERVICE_REQUEST_SQL = text("""
    SELECT id, customer_id, provider_id, status
    FROM service_requests
    WHERE id = :service_request_id
""")


def _row_to_provider(row: object) -> ProviderProfile:
    services = load_json(row.services_provided, [])  # type: ignore[attr-defined]
    areas = load_json(row.service_areas, [])  # type: ignore[attr-defined]
    return ProviderProfile(
        id=row.id,  # type: ignore[attr-defined]
        business_name=row.business_name,  # type: ignore[attr-defined]
        max_bundle_capacity=row.max_bundle_capacity,  # type: ignore[attr-defined]
        services_provided=[
            ProviderService(name=s["name"], hourly_rate=int(s["hourly_rate_cents"]))
            for s in services
        ],
        service_areas=[
            ServiceArea(zip_code=a["zip_code"], is_active=a.get("is_active", True))
            for a in areas
        ],
    )


class ServiceCatalogRepository:
    async def find_services_by_name(
        self, db: AsyncSession, names: list[str]
    ) -> list[CatalogService]:
        result = await db.execute(_FIND_SERVICES_SQL, {"names": names})
        return [
            CatalogService(
                name=row.name,
                is_active=row.is_active,
                default_hourly_rate=row.default_hourly_rate_cents,
            )
            for row in result.fetchall()
        ]


class ProviderDirectoryRepository:
    async def get_provider(self, db: AsyncSession, provider_id: str) -> ProviderProfile | None:
        row = (await db.execute(_GET_PROVIDER_SQL, {"provider_id": provider_id})).fetchone()
        return _row_to_provider(row) if row else None


class CustomerDirectoryRepository:
    async def get_customer(self, db: AsyncSession, customer_id: str) -> CustomerProfile | None:
        row = (await db.execute(_GET_CUSTOMER_SQL, {"customer_id": customer_id})).fetchone()
        if row is None:
            return None
        return CustomerProfile(
            id=row.id,
            email=row.email,
            name=row.name,
            address=Address.from_dict(load_json(row.address, {})),
        )


class ServiceRequestLookupRepository:
    async def get_service_request(
        self, db: AsyncSession, service_request_id: str
    ) -> ServiceRequestRef | None:
        row = (
            await db.execute(_GET_SERVICE_REQUEST_SQL, {"service_request_id": service_request_id})
        ).fetchone()
        if row is None:
            return None
        return ServiceRequestRef(
            id=row.id,
            customer_id=row.customer_id,
            provider_id=row.provider_id,
            status=row.status,
        )
