"""002: create commission_settings and bundle_settings

Revision ID: 002
Revises: 001
Create Date: 2026-10-05
"""
from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE commission_settings (
            id                      SMALLINT    PRIMARY KEY,
            service_commission_bps  INT         NOT NULL DEFAULT 500,
            bundle_commission_bps   INT         NOT NULL DEFAULT 500,
            is_active               BOOLEAN     NOT NULL DEFAULT TRUE,
            created_at              TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at              TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_commission_single_row   CHECK (id = 1),
            CONSTRAINT ck_commission_service_bps  CHECK (service_commission_bps BETWEEN 0 AND 5000),
            CONSTRAINT ck_commission_bundle_bps   CHECK (bundle_commission_bps BETWEEN 0 AND 5000)
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_commission_settings_updated_at
            BEFORE UPDATE ON commission_settings
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("""
        CREATE TABLE bundle_settings (
            id                   SMALLINT    PRIMARY KEY,
            bundle_discount_bps  INT         NOT NULL DEFAULT 1000,
            bundle_expiry_hours  INT         NOT NULL DEFAULT 24,
            max_bundle_size      INT         NOT NULL DEFAULT 5,
            created_at           TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at           TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_bundle_settings_single_row CHECK (id = 1),
            CONSTRAINT ck_bundle_settings_discount   CHECK (bundle_discount_bps BETWEEN 0 AND 5000),
            CONSTRAINT ck_bundle_settings_expiry     CHECK (bundle_expiry_hours >= 1),
            CONSTRAINT ck_bundle_settings_size       CHECK (max_bundle_size BETWEEN 2 AND 10)
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_bundle_settings_updated_at
            BEFORE UPDATE ON bundle_settings
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("COMMENT ON TABLE commission_settings IS 'Platform commission rates in basis points (100 bps = 1%)';")
    op.execute("COMMENT ON TABLE bundle_settings IS 'Bundle discount, expiry window and default capacity';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS bundle_settings CASCADE;")
    op.execute("DROP TABLE IF EXISTS commission_settings CASCADE;")
