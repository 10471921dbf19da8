"""EarningsRepository — provider balances and the append-only earnings ledger.

Balance changes are atomic PostgreSQL UPDATE ... RETURNING; each one writes a
ledger row with the balance snapshot. (entry_type, reference_id) is unique,
so a money request can be credited at most once even if a caller slips past
has_credit().

Transaction ownership: the caller commits. The reconciliation engine runs
credit_payment inside a SAVEPOINT of its own transaction.
"""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.sm_common.enums import EarningEntryType
from src.sm_common.errors import InternalError
from src.sm_earnings.domain.models import EarningEntry, ProviderAccount

_ENSURE_ACCOUNT_SQL = text("""
    INSERT INTO provider_accounts (provider_id)
    VALUES (:provider_id)
    ON CONFLICT (provider_id) DO NOTHING
""")

_CREDIT_SQL = text("""
    UPDATE provider_accounts
    SET available_balance  = available_balance + :amount,
        total_earnings     = total_earnings + :amount,
        completed_requests = completed_requests + 1,
        version = version + 1,
        updated_at = NOW()
    WHERE provider_id = :provider_id
    RETURNING provider_id, available_balance, total_earnings, completed_requests,
              version, created_at, updated_at
""")

_GET_ACCOUNT_SQL = text("""
    SELECT provider_id, available_balance, total_earnings, completed_requests,
           version, created_at, updated_at
    FROM provider_accounts
    WHERE provider_id = :provider_id
""")

_HAS_CREDIT_SQL = text("""
    SELECT 1 FROM earning_entries
    WHERE entry_type = :entry_type AND reference_id = :reference_id
""")

_INSERT_ENTRY_SQL = text("""
    INSERT INTO earning_entries
        (provider_id, entry_type, amount, balance_after,
         reference_type, reference_id, description)
    VALUES
        (:provider_id, :entry_type, :amount, :balance_after,
         :reference_type, :reference_id, :description)
    RETURNING id, provider_id, entry_type, amount, balance_after,
              reference_type, reference_id, description, created_at
""")

_LIST_ENTRIES_SQL = text("""
    SELECT id, provider_id, entry_type, amount, balance_after,
           reference_type, reference_id, description, created_at
    FROM earning_entries
    WHERE provider_id = :provider_id
      AND (CAST(:cursor_id AS BIGINT) IS NULL OR id < CAST(:cursor_id AS BIGINT))
      AND (CAST(:entry_type AS TEXT) IS NULL OR entry_type = CAST(:entry_type AS TEXT))
    ORDER BY id DESC
    LIMIT :limit
""")


def _row_to_account(row: object) -> ProviderAccount:
    return ProviderAccount(
        provider_id=row.provider_id,  # type: ignore[attr-defined]
        available_balance=row.available_balance,  # type: ignore[attr-defined]
        total_earnings=row.total_earnings,  # type: ignore[attr-defined]
        completed_requests=row.completed_requests,  # type: ignore[attr-defined]
        version=row.version,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


def _row_to_entry(row: object) -> EarningEntry:
    return EarningEntry(
        id=row.id,  # type: ignore[attr-defined]
        provider_id=row.provider_id,  # type: ignore[attr-defined]
        entry_type=row.entry_type,  # type: ignore[attr-defined]
        amount=row.amount,  # type: ignore[attr-defined]
        balance_after=row.balance_after,  # type: ignore[attr-defined]
        reference_type=row.reference_type,  # type: ignore[attr-defined]
        reference_id=row.reference_id,  # type: ignore[attr-defined]
        description=row.description,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


class EarningsRepository:
    async def get_account(self, db: AsyncSession, provider_id: str) -> ProviderAccount | None:
        row = (await db.execute(_GET_ACCOUNT_SQL, {"provider_id": provider_id})).fetchone()
        return _row_to_account(row) if row else None

    async def has_credit(self, db: AsyncSession, reference_id: str) -> bool:
        result = await db.execute(
            _HAS_CREDIT_SQL,
            {"entry_type": EarningEntryType.PAYMENT_CREDIT.value, "reference_id": reference_id},
        )
        return result.fetchone() is not None

    async def credit_payment(
        self,
        db: AsyncSession,
        provider_id: str,
        amount: int,
        reference_id: str,
        description: str,
    ) -> tuple[ProviderAccount, EarningEntry]:
        await db.execute(_ENSURE_ACCOUNT_SQL, {"provider_id": provider_id})
        row = (
            await db.execute(_CREDIT_SQL, {"provider_id": provider_id, "amount": amount})
        ).fetchone()
        if row is None:
            raise InternalError(f"Provider account missing after upsert: {provider_id}")
        account = _row_to_account(row)
        entry_row = (
            await db.execute(
                _INSERT_ENTRY_SQL,
                {
                    "provider_id": provider_id,
                    "entry_type": EarningEntryType.PAYMENT_CREDIT.value,
                    "amount": amount,
                    "balance_after": account.available_balance,
                    "reference_type": "MONEY_REQUEST",
                    "reference_id": reference_id,
                    "description": description,
                },
            )
        ).fetchone()
        if entry_row is None:
            raise InternalError("Earning entry insert returned no rows — this should never happen")
        return account, _row_to_entry(entry_row)

    async def list_entries(
        self,
        db: AsyncSession,
        provider_id: str,
        cursor_id: int | None,
        limit: int,
        entry_type: str | None,
    ) -> list[EarningEntry]:
        result = await db.execute(
            _LIST_ENTRIES_SQL,
            {
                "provider_id": provider_id,
                "cursor_id": cursor_id,
                "limit": limit,
                "entry_type": entry_type,
            },
        )
        return [_row_to_entry(row) for row in result.fetchall()]
