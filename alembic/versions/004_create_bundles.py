"""004: create bundles and bundle_events

Revision ID: 004
Revises: 003
Create Date: 2026-10-05
"""
from typing import Sequence, Union
from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE bundles (
            id                    VARCHAR(64)  PRIMARY KEY,
            creator_id            VARCHAR(64)  NOT NULL,
            provider_id           VARCHAR(64),
            title                 VARCHAR(200) NOT NULL,
            description           TEXT,
            category              VARCHAR(64)  NOT NULL,
            category_type_name    VARCHAR(128),
            service_date          DATE,
            service_time_start    VARCHAR(5),
            service_time_end      VARCHAR(5),
            zip_code              VARCHAR(10)  NOT NULL,
            address               JSONB        NOT NULL DEFAULT '{}'::jsonb,
            services              JSONB        NOT NULL DEFAULT '[]'::jsonb,
            discount_bps          INT          NOT NULL DEFAULT 0,
            original_price        BIGINT       NOT NULL DEFAULT 0,
            discount_amount       BIGINT       NOT NULL DEFAULT 0,
            final_price           BIGINT       NOT NULL DEFAULT 0,
            pricing_discount_bps  INT          NOT NULL DEFAULT 0,
            max_participants      INT          NOT NULL,
            current_participants  INT          NOT NULL DEFAULT 0,
            status                VARCHAR(20)  NOT NULL DEFAULT 'pending',
            participants          JSONB        NOT NULL DEFAULT '[]'::jsonb,
            provider_offers       JSONB        NOT NULL DEFAULT '[]'::jsonb,
            share_token           VARCHAR(64)  NOT NULL,
            expires_at            TIMESTAMPTZ  NOT NULL,
            completed_at          TIMESTAMPTZ,
            cancelled_by          VARCHAR(64),
            cancellation_reason   TEXT,
            version               BIGINT       NOT NULL DEFAULT 0,
            created_at            TIMESTAMPTZ  NOT NULL DEFAULT NOW(),
            updated_at            TIMESTAMPTZ  NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_bundles_share_token UNIQUE (share_token),
            CONSTRAINT ck_bundles_status CHECK (
                status IN ('pending', 'accepted', 'full', 'in_progress',
                           'completed', 'cancelled', 'expired')
            ),
            CONSTRAINT ck_bundles_participants_gte_0 CHECK (current_participants >= 0),
            CONSTRAINT ck_bundles_max_participants   CHECK (max_participants BETWEEN 2 AND 10),
            CONSTRAINT ck_bundles_capacity CHECK (
                current_participants <= max_participants
                OR status NOT IN ('pending', 'accepted')
            ),
            CONSTRAINT ck_bundles_pricing CHECK (
                final_price = original_price - discount_amount
            )
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_bundles_updated_at
            BEFORE UPDATE ON bundles
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("CREATE INDEX idx_bundles_open ON bundles (zip_code, created_at DESC, id DESC) WHERE status IN ('pending', 'accepted');")
    op.execute("CREATE INDEX idx_bundles_provider ON bundles (provider_id, created_at DESC);")
    op.execute("CREATE INDEX idx_bundles_participants ON bundles USING GIN (participants jsonb_path_ops);")

    op.execute("""
        CREATE TABLE bundle_events (
            id               BIGSERIAL    PRIMARY KEY,
            bundle_id        VARCHAR(64)  NOT NULL REFERENCES bundles(id),
            status           VARCHAR(20)  NOT NULL,
            note             TEXT         NOT NULL,
            changed_by       VARCHAR(64)  NOT NULL,
            changed_by_role  VARCHAR(20)  NOT NULL,
            created_at       TIMESTAMPTZ  NOT NULL DEFAULT NOW()
        );
    """)
    op.execute("CREATE INDEX idx_bundle_events_bundle ON bundle_events (bundle_id, id);")
    op.execute("COMMENT ON TABLE bundles IS 'Multi-customer bundles — all amounts in cents, rates in bps';")
    op.execute("COMMENT ON COLUMN bundles.version IS 'Optimistic concurrency version, bumped on every write';")
    op.execute("COMMENT ON TABLE bundle_events IS 'Append-only bundle status history';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS bundle_events CASCADE;")
    op.execute("DROP TABLE IF EXISTS bundles CASCADE;")
