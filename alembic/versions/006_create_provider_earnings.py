"""006: create provider_accounts and earning_entries

Revision ID: 006
Revises: 005
Create Date: 2026-10-05
"""
from typing import Sequence, Union
from alembic import op

revision: str = "006"
down_revision: Union[str, None] = "005"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE provider_accounts (
            provider_id         VARCHAR(64)  PRIMARY KEY,
            available_balance   BIGINT       NOT NULL DEFAULT 0,
            total_earnings      BIGINT       NOT NULL DEFAULT 0,
            completed_requests  INT          NOT NULL DEFAULT 0,
            version             BIGINT       NOT NULL DEFAULT 0,
            created_at          TIMESTAMPTZ  NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ  NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_provider_accounts_available_gte_0 CHECK (available_balance >= 0)
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_provider_accounts_updated_at
            BEFORE UPDATE ON provider_accounts
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("""
        CREATE TABLE earning_entries (
            id              BIGSERIAL    PRIMARY KEY,
            provider_id     VARCHAR(64)  NOT NULL REFERENCES provider_accounts(provider_id),
            entry_type      VARCHAR(20)  NOT NULL,
            amount          BIGINT       NOT NULL,
            balance_after   BIGINT       NOT NULL,
            reference_type  VARCHAR(32),
            reference_id    VARCHAR(64),
            description     TEXT,
            created_at      TIMESTAMPTZ  NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_earning_entries_type CHECK (entry_type IN ('PAYMENT_CREDIT', 'WITHDRAWAL'))
        );
    """)
    # A money request is credited at most once
    op.execute("""
        CREATE UNIQUE INDEX uq_earning_entries_reference
            ON earning_entries (entry_type, reference_id)
            WHERE reference_id IS NOT NULL;
    """)
    op.execute("CREATE INDEX idx_earning_entries_provider ON earning_entries (provider_id, id DESC);")
    op.execute("COMMENT ON TABLE provider_accounts IS 'Provider earnings balance — all amounts in cents';")
    op.execute("COMMENT ON TABLE earning_entries IS 'Append-only provider earnings ledger';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS earning_entries CASCADE;")
    op.execute("DROP TABLE IF EXISTS provider_accounts CASCADE;")
