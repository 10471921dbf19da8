"""BundleRepository — concrete implementation of BundleRepositoryProtocol.

All queries use raw text() SQL (no ORM). Roster, services and offers are JSONB
columns on the bundles row so that one versioned UPDATE carries rates,
pricing snapshot, capacity and status together.

asyncpg NULL parameter pattern: CAST(:param AS TYPE) IS NULL required for None values.
"""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.sm_bundle.domain.models import Bundle, BundleEvent, Participant, ProviderOffer
from src.sm_common.database import dump_json, load_json
from src.sm_common.datetime_utils import from_iso, to_iso
from src.sm_common.enums import ActorRole, BundleStatus, OfferStatus, ParticipantStatus
from src.sm_common.errors import InternalError
from src.sm_directory.domain.models import Address
from src.sm_pricing.domain.models import PricingSnapshot, ServiceLine

# ---------------------------------------------------------------------------
# SQL
# ---------------------------------------------------------------------------

_COLUMNS = """
    id, creator_id, provider_id, title, description, category, category_type_name,
    service_date, service_time_start, service_time_end, zip_code, address,
    services, discount_bps,
    original_price, discount_amount, final_price, pricing_discount_bps,
    max_participants, current_participants, status,
    participants, provider_offers, share_token, expires_at,
    completed_at, cancelled_by, cancellation_reason,
    version, created_at, updated_at
"""

_GET_BUNDLE_SQL = text(f"SELECT {_COLUMNS} FROM bundles WHERE id = :bundle_id")

_GET_BY_SHARE_TOKEN_SQL = text(f"SELECT {_COLUMNS} FROM bundles WHERE share_token = :share_token")

_INSERT_BUNDLE_SQL = text(f"""
    INSERT INTO bundles (
        id, creator_id, provider_id, title, description, category, category_type_name,
        service_date, service_time_start, service_time_end, zip_code, address,
        services, discount_bps,
        original_price, discount_amount, final_price, pricing_discount_bps,
        max_participants, current_participants, status,
        participants, provider_offers, share_token, expires_at, version
    ) VALUES (
        :id, :creator_id, :provider_id, :title, :description, :category, :category_type_name,
        :service_date, :service_time_start, :service_time_end, :zip_code,
        CAST(:address AS JSONB),
        CAST(:services AS JSONB), :discount_bps,
        :original_price, :discount_amount, :final_price, :pricing_discount_bps,
        :max_participants, :current_participants, :status,
        CAST(:participants AS JSONB), CAST(:provider_offers AS JSONB),
        :share_token, :expires_at, 0
    )
    RETURNING {_COLUMNS}
""")

# Version check closes the read-modify-write window: 0 rows = lost race.
_UPDATE_BUNDLE_SQL = text("""
    UPDATE bundles
    SET provider_id          = :provider_id,
        services             = CAST(:services AS JSONB),
        discount_bps         = :discount_bps,
        original_price       = :original_price,
        discount_amount      = :discount_amount,
        final_price          = :final_price,
        pricing_discount_bps = :pricing_discount_bps,
        max_participants     = :max_participants,
        current_participants = :current_participants,
        status               = :status,
        participants         = CAST(:participants AS JSONB),
        provider_offers      = CAST(:provider_offers AS JSONB),
        completed_at         = :completed_at,
        cancelled_by         = :cancelled_by,
        cancellation_reason  = :cancellation_reason,
        version              = version + 1
    WHERE id = :id AND version = :expected_version
    RETURNING version, updated_at
""")

_INSERT_EVENT_SQL = text("""
    INSERT INTO bundle_events (bundle_id, status, note, changed_by, changed_by_role, created_at)
    VALUES (:bundle_id, :status, :note, :changed_by, :changed_by_role, :created_at)
""")

_LIST_EVENTS_SQL = text("""
    SELECT id, bundle_id, status, note, changed_by, changed_by_role, created_at
    FROM bundle_events
    WHERE bundle_id = :bundle_id
    ORDER BY id ASC
""")

_LIST_OPEN_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM bundles
    WHERE zip_code = :zip_code
      AND status IN ('pending', 'accepted')
      AND expires_at > NOW()
      AND (CAST(:category AS TEXT) IS NULL OR category = CAST(:category AS TEXT))
      AND (
          CAST(:cursor_ts AS TIMESTAMPTZ) IS NULL
          OR created_at < CAST(:cursor_ts AS TIMESTAMPTZ)
          OR (
              created_at = CAST(:cursor_ts AS TIMESTAMPTZ)
              AND id < CAST(:cursor_id AS TEXT)
          )
      )
    ORDER BY created_at DESC, id DESC
    LIMIT :limit
""")

_LIST_FOR_MEMBER_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM bundles
    WHERE
        (CAST(:member AS JSONB) IS NULL OR participants @> CAST(:member AS JSONB))
        AND (CAST(:provider_id AS TEXT) IS NULL OR provider_id = CAST(:provider_id AS TEXT))
        AND (CAST(:status AS TEXT) IS NULL OR status = CAST(:status AS TEXT))
        AND (
            CAST(:cursor_ts AS TIMESTAMPTZ) IS NULL
            OR created_at < CAST(:cursor_ts AS TIMESTAMPTZ)
            OR (
                created_at = CAST(:cursor_ts AS TIMESTAMPTZ)
                AND id < CAST(:cursor_id AS TEXT)
            )
        )
    ORDER BY created_at DESC, id DESC
    LIMIT :limit
""")

# ---------------------------------------------------------------------------
# JSONB (de)serialization
# ---------------------------------------------------------------------------


def _services_to_json(services: list[ServiceLine]) -> str:
    return dump_json(
        [
            {
                "name": s.name,
                "hourly_rate": s.hourly_rate,
                "estimated_hours": s.estimated_hours,
            }
            for s in services
        ]
    )


def _participants_to_json(participants: list[Participant]) -> str:
    return dump_json(
        [
            {
                "customer_id": p.customer_id,
                "address": p.address.to_dict(),
                "status": p.status.value,
                "joined_at": to_iso(p.joined_at),
            }
            for p in participants
        ]
    )


def _offers_to_json(offers: list[ProviderOffer]) -> str:
    return dump_json(
        [
            {
                "provider_id": o.provider_id,
                "message": o.message,
                "status": o.status.value,
                "submitted_at": to_iso(o.submitted_at),
            }
            for o in offers
        ]
    )


def _row_to_bundle(row: object) -> Bundle:
    services = load_json(row.services, [])  # type: ignore[attr-defined]
    participants = load_json(row.participants, [])  # type: ignore[attr-defined]
    offers = load_json(row.provider_offers, [])  # type: ignore[attr-defined]
    return Bundle(
        id=row.id,  # type: ignore[attr-defined]
        creator_id=row.creator_id,  # type: ignore[attr-defined]
        provider_id=row.provider_id,  # type: ignore[attr-defined]
        title=row.title,  # type: ignore[attr-defined]
        description=row.description,  # type: ignore[attr-defined]
        category=row.category,  # type: ignore[attr-defined]
        category_type_name=row.category_type_name,  # type: ignore[attr-defined]
        service_date=row.service_date,  # type: ignore[attr-defined]
        service_time_start=row.service_time_start,  # type: ignore[attr-defined]
        service_time_end=row.service_time_end,  # type: ignore[attr-defined]
        zip_code=row.zip_code,  # type: ignore[attr-defined]
        address=Address.from_dict(load_json(row.address, {})),  # type: ignore[attr-defined]
        services=[
            ServiceLine(
                name=s["name"],
                hourly_rate=int(s["hourly_rate"]),
                estimated_hours=int(s["estimated_hours"]),
            )
            for s in services
        ],
        discount_bps=row.discount_bps,  # type: ignore[attr-defined]
        pricing=PricingSnapshot(
            original_price=row.original_price,  # type: ignore[attr-defined]
            discount_amount=row.discount_amount,  # type: ignore[attr-defined]
            final_price=row.final_price,  # type: ignore[attr-defined]
            discount_bps=row.pricing_discount_bps,  # type: ignore[attr-defined]
        ),
        max_participants=row.max_participants,  # type: ignore[attr-defined]
        current_participants=row.current_participants,  # type: ignore[attr-defined]
        status=BundleStatus(row.status),  # type: ignore[attr-defined]
        participants=[
            Participant(
                customer_id=p["customer_id"],
                address=Address.from_dict(p.get("address")),
                status=ParticipantStatus(p["status"]),
                joined_at=from_iso(p["joined_at"]),  # type: ignore[arg-type]
            )
            for p in participants
        ],
        provider_offers=[
            ProviderOffer(
                provider_id=o["provider_id"],
                message=o.get("message"),
                status=OfferStatus(o["status"]),
                submitted_at=from_iso(o["submitted_at"]),  # type: ignore[arg-type]
            )
            for o in offers
        ],
        share_token=row.share_token,  # type: ignore[attr-defined]
        expires_at=row.expires_at,  # type: ignore[attr-defined]
        completed_at=row.completed_at,  # type: ignore[attr-defined]
        cancelled_by=row.cancelled_by,  # type: ignore[attr-defined]
        cancellation_reason=row.cancellation_reason,  # type: ignore[attr-defined]
        version=row.version,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


def _row_to_event(row: object) -> BundleEvent:
    return BundleEvent(
        id=row.id,  # type: ignore[attr-defined]
        bundle_id=row.bundle_id,  # type: ignore[attr-defined]
        status=BundleStatus(row.status),  # type: ignore[attr-defined]
        note=row.note,  # type: ignore[attr-defined]
        changed_by=row.changed_by,  # type: ignore[attr-defined]
        changed_by_role=ActorRole(row.changed_by_role),  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


def _mutable_params(bundle: Bundle) -> dict[str, object]:
    return {
        "provider_id": bundle.provider_id,
        "services": _services_to_json(bundle.services),
        "discount_bps": bundle.discount_bps,
        "original_price": bundle.pricing.original_price,
        "discount_amount": bundle.pricing.discount_amount,
        "final_price": bundle.pricing.final_price,
        "pricing_discount_bps": bundle.pricing.discount_bps,
        "max_participants": bundle.max_participants,
        "current_participants": bundle.current_participants,
        "status": bundle.status.value,
        "participants": _participants_to_json(bundle.participants),
        "provider_offers": _offers_to_json(bundle.provider_offers),
    }


class BundleRepository:
    async def get(self, db: AsyncSession, bundle_id: str) -> Bundle | None:
        row = (await db.execute(_GET_BUNDLE_SQL, {"bundle_id": bundle_id})).fetchone()
        return _row_to_bundle(row) if row else None

    async def get_by_share_token(self, db: AsyncSession, share_token: str) -> Bundle | None:
        row = (
            await db.execute(_GET_BY_SHARE_TOKEN_SQL, {"share_token": share_token})
        ).fetchone()
        return _row_to_bundle(row) if row else None

    async def insert(self, db: AsyncSession, bundle: Bundle) -> Bundle:
        params = _mutable_params(bundle)
        params.update(
            {
                "id": bundle.id,
                "creator_id": bundle.creator_id,
                "title": bundle.title,
                "description": bundle.description,
                "category": bundle.category,
                "category_type_name": bundle.category_type_name,
                "service_date": bundle.service_date,
                "service_time_start": bundle.service_time_start,
                "service_time_end": bundle.service_time_end,
                "zip_code": bundle.zip_code,
                "address": dump_json(bundle.address.to_dict()),
                "share_token": bundle.share_token,
                "expires_at": bundle.expires_at,
            }
        )
        row = (await db.execute(_INSERT_BUNDLE_SQL, params)).fetchone()
        if row is None:
            raise InternalError("Bundle insert returned no rows — this should never happen")
        return _row_to_bundle(row)

    async def update(self, db: AsyncSession, bundle: Bundle, expected_version: int) -> bool:
        params = _mutable_params(bundle)
        params.update(
            {
                "id": bundle.id,
                "expected_version": expected_version,
                "completed_at": bundle.completed_at,
                "cancelled_by": bundle.cancelled_by,
                "cancellation_reason": bundle.cancellation_reason,
            }
        )
        row = (await db.execute(_UPDATE_BUNDLE_SQL, params)).fetchone()
        if row is None:
            return False
        bundle.version = row.version
        bundle.updated_at = row.updated_at
        return True

    async def append_events(self, db: AsyncSession, events: list[BundleEvent]) -> None:
        for event in events:
            await db.execute(
                _INSERT_EVENT_SQL,
                {
                    "bundle_id": event.bundle_id,
                    "status": event.status.value,
                    "note": event.note,
                    "changed_by": event.changed_by,
                    "changed_by_role": event.changed_by_role.value,
                    "created_at": event.created_at,
                },
            )

    async def list_events(self, db: AsyncSession, bundle_id: str) -> list[BundleEvent]:
        result = await db.execute(_LIST_EVENTS_SQL, {"bundle_id": bundle_id})
        return [_row_to_event(row) for row in result.fetchall()]

    async def list_open(
        self,
        db: AsyncSession,
        zip_code: str,
        category: str | None,
        cursor_ts: str | None,
        cursor_id: str | None,
        limit: int,
    ) -> list[Bundle]:
        result = await db.execute(
            _LIST_OPEN_SQL,
            {
                "zip_code": zip_code,
                "category": category,
                "cursor_ts": cursor_ts,
                "cursor_id": cursor_id,
                "limit": limit,
            },
        )
        return [_row_to_bundle(row) for row in result.fetchall()]

    async def list_for_member(
        self,
        db: AsyncSession,
        customer_id: str | None,
        provider_id: str | None,
        status: str | None,
        cursor_ts: str | None,
        cursor_id: str | None,
        limit: int,
    ) -> list[Bundle]:
        member = (
            dump_json([{"customer_id": customer_id, "status": ParticipantStatus.ACTIVE.value}])
            if customer_id
            else None
        )
        result = await db.execute(
            _LIST_FOR_MEMBER_SQL,
            {
                "member": member,
                "provider_id": provider_id,
                "status": status,
                "cursor_ts": cursor_ts,
                "cursor_id": cursor_id,
                "limit": limit,
            },
        )
        return [_row_to_bundle(row) for row in result.fetchall()]

