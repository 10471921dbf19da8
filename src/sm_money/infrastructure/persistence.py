"""MoneyRequestRepository — concrete implementation of MoneyRequestRepositoryProtocol.

Raw text() SQL only. The commission snapshot is stored as three columns so
the CHECK constraints (total = amount + tip, commission + provider = total)
hold on every row; payment and dispute details are JSONB sub-documents.

The active-request uniqueness is a pair of partial unique indexes; the insert
uses ON CONFLICT DO NOTHING so a racing duplicate surfaces as "no row
returned" instead of an aborted transaction.
"""

from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.sm_common.database import dump_json, load_json
from src.sm_common.datetime_utils import from_iso, to_iso
from src.sm_common.enums import ActorRole, MoneyRequestStatus, PaymentDetailsStatus
from src.sm_common.errors import DuplicateMoneyRequestError
from src.sm_money.domain.models import (
    DisputeDetails,
    MoneyRequest,
    MoneyRequestEvent,
    PaymentDetails,
    StatusStat,
)
from src.sm_pricing.domain.models import CommissionResult

# ---------------------------------------------------------------------------
# SQL
# ---------------------------------------------------------------------------

_COLUMNS = """
    id, provider_id, customer_id, service_request_id, bundle_id, description,
    amount, tip_amount, total_amount,
    commission_rate_bps, commission_amount, provider_amount,
    original_amount, discount_bps, status, due_date,
    payment_details, dispute_details,
    version, created_at, updated_at
"""

_GET_SQL = text(f"SELECT {_COLUMNS} FROM money_requests WHERE id = :id")

_INSERT_SQL = text(f"""
    INSERT INTO money_requests (
        id, provider_id, customer_id, service_request_id, bundle_id, description,
        amount, tip_amount, total_amount,
        commission_rate_bps, commission_amount, provider_amount,
        original_amount, discount_bps, status, due_date,
        payment_details, dispute_details, version
    ) VALUES (
        :id, :provider_id, :customer_id, :service_request_id, :bundle_id, :description,
        :amount, :tip_amount, :total_amount,
        :commission_rate_bps, :commission_amount, :provider_amount,
        :original_amount, :discount_bps, :status, :due_date,
        CAST(:payment_details AS JSONB), CAST(:dispute_details AS JSONB), 0
    )
    ON CONFLICT DO NOTHING
    RETURNING {_COLUMNS}
""")

_UPDATE_SQL = text("""
    UPDATE money_requests
    SET amount              = :amount,
        tip_amount          = :tip_amount,
        total_amount        = :total_amount,
        commission_rate_bps = :commission_rate_bps,
        commission_amount   = :commission_amount,
        provider_amount     = :provider_amount,
        status              = :status,
        payment_details     = CAST(:payment_details AS JSONB),
        dispute_details     = CAST(:dispute_details AS JSONB),
        version             = version + 1
    WHERE id = :id AND version = :expected_version
    RETURNING version, updated_at
""")

_INSERT_EVENT_SQL = text("""
    INSERT INTO money_request_events
        (money_request_id, status, note, changed_by, changed_by_role, created_at)
    VALUES (:money_request_id, :status, :note, :changed_by, :changed_by_role, :created_at)
""")

_LIST_EVENTS_SQL = text("""
    SELECT id, money_request_id, status, note, changed_by, changed_by_role, created_at
    FROM money_request_events
    WHERE money_request_id = :money_request_id
    ORDER BY id ASC
""")

_FIND_ACTIVE_SQL = text("""
    SELECT customer_id
    FROM money_requests
    WHERE customer_id = ANY(CAST(:customer_ids AS TEXT[]))
      AND status IN ('pending', 'accepted', 'paid', 'disputed')
      AND (
          (CAST(:bundle_id AS TEXT) IS NOT NULL AND bundle_id = CAST(:bundle_id AS TEXT))
          OR (
              CAST(:service_request_id AS TEXT) IS NOT NULL
              AND service_request_id = CAST(:service_request_id AS TEXT)
          )
      )
""")

_LIST_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM money_requests
    WHERE
        (CAST(:customer_id AS TEXT) IS NULL OR customer_id = CAST(:customer_id AS TEXT))
        AND (CAST(:provider_id AS TEXT) IS NULL OR provider_id = CAST(:provider_id AS TEXT))
        AND (CAST(:status AS TEXT) IS NULL OR status = CAST(:status AS TEXT))
        AND (
            CAST(:origin AS TEXT) IS NULL
            OR (CAST(:origin AS TEXT) = 'bundle' AND bundle_id IS NOT NULL)
            OR (CAST(:origin AS TEXT) = 'service_request' AND service_request_id IS NOT NULL)
        )
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

_STATS_SQL = text("""
    SELECT status, COUNT(*) AS count, COALESCE(SUM(total_amount), 0) AS total_amount
    FROM money_requests
    WHERE
        (CAST(:customer_id AS TEXT) IS NULL OR customer_id = CAST(:customer_id AS TEXT))
        AND (CAST(:provider_id AS TEXT) IS NULL OR provider_id = CAST(:provider_id AS TEXT))
    GROUP BY status
    ORDER BY status
""")

# ---------------------------------------------------------------------------
# JSONB (de)serialization
# ---------------------------------------------------------------------------


def _payment_to_json(details: PaymentDetails | None) -> str | None:
    if details is None:
        return None
    return dump_json(
        {
            "checkout_session_id": details.checkout_session_id,
            "session_created_at": to_iso(details.session_created_at),
            "status": details.status.value,
            "transaction_id": details.transaction_id,
            "payment_intent_id": details.payment_intent_id,
            "gateway_customer_ref": details.gateway_customer_ref,
            "amount_received": details.amount_received,
            "paid_at": to_iso(details.paid_at),
            "canceled_at": to_iso(details.canceled_at),
            "failed_at": to_iso(details.failed_at),
            "confirmed_via": details.confirmed_via,
        }
    )


def _payment_from_json(raw: Any) -> PaymentDetails | None:
    data = load_json(raw, None)
    if not data:
        return None
    return PaymentDetails(
        checkout_session_id=data["checkout_session_id"],
        session_created_at=from_iso(data["session_created_at"]),  # type: ignore[arg-type]
        status=PaymentDetailsStatus(data["status"]),
        transaction_id=data.get("transaction_id"),
        payment_intent_id=data.get("payment_intent_id"),
        gateway_customer_ref=data.get("gateway_customer_ref"),
        amount_received=data.get("amount_received"),
        paid_at=from_iso(data.get("paid_at")),
        canceled_at=from_iso(data.get("canceled_at")),
        failed_at=from_iso(data.get("failed_at")),
        confirmed_via=data.get("confirmed_via"),
    )


def _dispute_to_json(details: DisputeDetails | None) -> str | None:
    if details is None:
        return None
    return dump_json(
        {
            "reason": details.reason,
            "raised_by": details.raised_by,
            "raised_by_role": details.raised_by_role.value,
            "raised_at": to_iso(details.raised_at),
            "description": details.description,
            "resolved_at": to_iso(details.resolved_at),
            "resolution": details.resolution,
            "resolved_by": details.resolved_by,
        }
    )


def _dispute_from_json(raw: Any) -> DisputeDetails | None:
    data = load_json(raw, None)
    if not data:
        return None
    return DisputeDetails(
        reason=data["reason"],
        raised_by=data["raised_by"],
        raised_by_role=ActorRole(data["raised_by_role"]),
        raised_at=from_iso(data["raised_at"]),  # type: ignore[arg-type]
        description=data.get("description"),
        resolved_at=from_iso(data.get("resolved_at")),
        resolution=data.get("resolution"),
        resolved_by=data.get("resolved_by"),
    )


def _row_to_money_request(row: object) -> MoneyRequest:
    return MoneyRequest(
        id=row.id,  # type: ignore[attr-defined]
        provider_id=row.provider_id,  # type: ignore[attr-defined]
        customer_id=row.customer_id,  # type: ignore[attr-defined]
        service_request_id=row.service_request_id,  # type: ignore[attr-defined]
        bundle_id=row.bundle_id,  # type: ignore[attr-defined]
        description=row.description,  # type: ignore[attr-defined]
        amount=row.amount,  # type: ignore[attr-defined]
        tip_amount=row.tip_amount,  # type: ignore[attr-defined]
        total_amount=row.total_amount,  # type: ignore[attr-defined]
        commission=CommissionResult(
            rate_bps=row.commission_rate_bps,  # type: ignore[attr-defined]
            commission_amount=row.commission_amount,  # type: ignore[attr-defined]
            provider_amount=row.provider_amount,  # type: ignore[attr-defined]
        ),
        original_amount=row.original_amount,  # type: ignore[attr-defined]
        discount_bps=row.discount_bps,  # type: ignore[attr-defined]
        status=MoneyRequestStatus(row.status),  # type: ignore[attr-defined]
        due_date=row.due_date,  # type: ignore[attr-defined]
        payment_details=_payment_from_json(row.payment_details),  # type: ignore[attr-defined]
        dispute_details=_dispute_from_json(row.dispute_details),  # type: ignore[attr-defined]
        version=row.version,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


def _row_to_event(row: object) -> MoneyRequestEvent:
    return MoneyRequestEvent(
        id=row.id,  # type: ignore[attr-defined]
        money_request_id=row.money_request_id,  # type: ignore[attr-defined]
        status=MoneyRequestStatus(row.status),  # type: ignore[attr-defined]
        note=row.note,  # type: ignore[attr-defined]
        changed_by=row.changed_by,  # type: ignore[attr-defined]
        changed_by_role=ActorRole(row.changed_by_role),  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


def _mutable_params(mr: MoneyRequest) -> dict[str, object]:
    return {
        "amount": mr.amount,
        "tip_amount": mr.tip_amount,
        "total_amount": mr.total_amount,
        "commission_rate_bps": mr.commission.rate_bps,
        "commission_amount": mr.commission.commission_amount,
        "provider_amount": mr.commission.provider_amount,
        "status": mr.status.value,
        "payment_details": _payment_to_json(mr.payment_details),
        "dispute_details": _dispute_to_json(mr.dispute_details),
    }


class MoneyRequestRepository:
    async def get(self, db: AsyncSession, money_request_id: str) -> MoneyRequest | None:
        row = (await db.execute(_GET_SQL, {"id": money_request_id})).fetchone()
        return _row_to_money_request(row) if row else None

    async def insert(self, db: AsyncSession, mr: MoneyRequest) -> MoneyRequest:
        params = _mutable_params(mr)
        params.update(
            {
                "id": mr.id,
                "provider_id": mr.provider_id,
                "customer_id": mr.customer_id,
                "service_request_id": mr.service_request_id,
                "bundle_id": mr.bundle_id,
                "description": mr.description,
                "original_amount": mr.original_amount,
                "discount_bps": mr.discount_bps,
                "due_date": mr.due_date,
            }
        )
        row = (await db.execute(_INSERT_SQL, params)).fetchone()
        if row is None:
            raise DuplicateMoneyRequestError(f"customer {mr.customer_id} on {mr.origin_ref}")
        return _row_to_money_request(row)

    async def update(self, db: AsyncSession, mr: MoneyRequest, expected_version: int) -> bool:
        params = _mutable_params(mr)
        params.update({"id": mr.id, "expected_version": expected_version})
        row = (await db.execute(_UPDATE_SQL, params)).fetchone()
        if row is None:
            return False
        mr.version = row.version
        mr.updated_at = row.updated_at
        return True

    async def append_events(self, db: AsyncSession, events: list[MoneyRequestEvent]) -> None:
        for event in events:
            await db.execute(
                _INSERT_EVENT_SQL,
                {
                    "money_request_id": event.money_request_id,
                    "status": event.status.value,
                    "note": event.note,
                    "changed_by": event.changed_by,
                    "changed_by_role": event.changed_by_role.value,
                    "created_at": event.created_at,
                },
            )

    async def list_events(
        self, db: AsyncSession, money_request_id: str
    ) -> list[MoneyRequestEvent]:
        result = await db.execute(_LIST_EVENTS_SQL, {"money_request_id": money_request_id})
        return [_row_to_event(row) for row in result.fetchall()]

    async def find_active_customers(
        self,
        db: AsyncSession,
        customer_ids: list[str],
        bundle_id: str | None,
        service_request_id: str | None,
    ) -> list[str]:
        result = await db.execute(
            _FIND_ACTIVE_SQL,
            {
                "customer_ids": customer_ids,
                "bundle_id": bundle_id,
                "service_request_id": service_request_id,
            },
        )
        return [row.customer_id for row in result.fetchall()]

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
    ) -> list[MoneyRequest]:
        result = await db.execute(
            _LIST_SQL,
            {
                "customer_id": customer_id,
                "provider_id": provider_id,
                "status": status,
                "origin": origin,
                "cursor_ts": cursor_ts,
                "cursor_id": cursor_id,
                "limit": limit,
            },
        )
        return [_row_to_money_request(row) for row in result.fetchall()]

    async def stats(
        self, db: AsyncSession, customer_id: str | None, provider_id: str | None
    ) -> list[StatusStat]:
        result = await db.execute(
            _STATS_SQL, {"customer_id": customer_id, "provider_id": provider_id}
        )
        return [
            StatusStat(status=row.status, count=row.count, total_amount=int(row.total_amount))
            for row in result.fetchall()
        ]
