"""Read-only views of collaborator-owned records (catalog, providers, customers,
service requests). The core never writes these."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class CatalogService:
    name: str
    is_active: bool
    default_hourly_rate: int | None = None   # cents


@dataclass(frozen=True)
class ProviderService:
    name: str
    hourly_rate: int                          # cents


@dataclass(frozen=True)
class ServiceArea:
    zip_code: str
    is_active: bool = True


@dataclass(frozen=True)
class Address:
    street: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None

    def to_dict(self) -> dict[str, str | None]:
        return {
            "street": self.street,
            "city": self.city,
            "state": self.state,
            "zip_code": self.zip_code,
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> "Address":
        data = data or {}
        return cls(
            street=data.get("street"),
            city=data.get("city"),
            state=data.get("state"),
            zip_code=data.get("zip_code"),
        )


@dataclass(frozen=True)
class ProviderProfile:
    id: str
    business_name: str | None
    max_bundle_capacity: int | None
    services_provided: list[ProviderService] = field(default_factory=list)
    service_areas: list[ServiceArea] = field(default_factory=list)

    def serves_zip(self, zip_code: str) -> bool:
        """Exact string match against an active service area. No radius logic."""
        return any(a.is_active and a.zip_code == zip_code for a in self.service_areas)

    def rate_for(self, service_name: str) -> int | None:
        for s in self.services_provided:
            if s.name == service_name:
                return s.hourly_rate
        return None


@dataclass(frozen=True)
class CustomerProfile:
    id: str
    email: str | None
    name: str | None = None
    address: Address = field(default_factory=Address)


@dataclass(frozen=True)
class ServiceRequestRef:
    id: str
    customer_id: str
    provider_id: str | None
    status: str
