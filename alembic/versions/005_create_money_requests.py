"""005: create money_requests and money_request_events

Revision ID: 005
Revises: 004
Create Date: 2026-10-05
"""
from typing import Sequence, Union
from alembic import op

revision: str = "005"
down_revision: Union[str, None] = "004"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE money_requests (
            id                   VARCHAR(64)  PRIMARY KEY,
            provider_id          VARCHAR(64)  NOT NULL,
            customer_id          VARCHAR(64)  NOT NULL,
            service_request_id   VARCHAR(64),
            bundle_id            VARCHAR(64)  REFERENCES bundles(id),
            description          TEXT,
            amount               BIGINT       NOT NULL,
            tip_amount           BIGINT       NOT NULL DEFAULT 0,
            total_amount         BIGINT       NOT NULL,
            commission_rate_bps  INT          NOT NULL,
            commission_amount    BIGINT       NOT NULL,
            provider_amount      BIGINT       NOT NULL,
            original_amount      BIGINT,
            discount_bps         INT          NOT NULL DEFAULT 0,
            status               VARCHAR(20)  NOT NULL DEFAULT 'pending',
            due_date             TIMESTAMPTZ  NOT NULL,
            payment_details      JSONB,
            dispute_details      JSONB,
            version              BIGINT       NOT NULL DEFAULT 0,
            created_at           TIMESTAMPTZ  NOT NULL DEFAULT NOW(),
            updated_at           TIMESTAMPTZ  NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_money_requests_status CHECK (
                status IN ('pending', 'accepted', 'paid', 'cancelled', 'disputed', 'failed')
            ),
            CONSTRAINT ck_money_requests_one_origin CHECK (
                (service_request_id IS NULL) <> (bundle_id IS NULL)
            ),
            CONSTRAINT ck_money_requests_amount_gt_0  CHECK (amount > 0),
            CONSTRAINT ck_money_requests_tip_gte_0    CHECK (tip_amount >= 0),
            CONSTRAINT ck_money_requests_total        CHECK (total_amount = amount + tip_amount),
            CONSTRAINT ck_money_requests_split        CHECK (commission_amount + provider_amount = total_amount)
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_money_requests_updated_at
            BEFORE UPDATE ON money_requests
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    # At most one active request per (bundle, customer) and per service request
    op.execute("""
        CREATE UNIQUE INDEX uq_money_requests_active_bundle_customer
            ON money_requests (bundle_id, customer_id)
            WHERE bundle_id IS NOT NULL
              AND status IN ('pending', 'accepted', 'paid', 'disputed');
    """)
    op.execute("""
        CREATE UNIQUE INDEX uq_money_requests_active_service_request
            ON money_requests (service_request_id)
            WHERE service_request_id IS NOT NULL
              AND status IN ('pending', 'accepted', 'paid', 'disputed');
    """)
    op.execute("CREATE INDEX idx_money_requests_customer ON money_requests (customer_id, created_at DESC, id DESC);")
    op.execute("CREATE INDEX idx_money_requests_provider ON money_requests (provider_id, created_at DESC, id DESC);")

    op.execute("""
        CREATE TABLE money_request_events (
            id                BIGSERIAL    PRIMARY KEY,
            money_request_id  VARCHAR(64)  NOT NULL REFERENCES money_requests(id),
            status            VARCHAR(20)  NOT NULL,
            note              TEXT         NOT NULL,
            changed_by        VARCHAR(64)  NOT NULL,
            changed_by_role   VARCHAR(20)  NOT NULL,
            created_at        TIMESTAMPTZ  NOT NULL DEFAULT NOW()
        );
    """)
    op.execute("CREATE INDEX idx_money_request_events_mr ON money_request_events (money_request_id, id);")
    op.execute("COMMENT ON TABLE money_requests IS 'Provider-issued payment requests — all amounts in cents, rates in bps';")
    op.execute("COMMENT ON COLUMN money_requests.original_amount IS 'Requested amount before the bundle discount';")
    op.execute("COMMENT ON TABLE money_request_events IS 'Append-only money request status history';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS money_request_events CASCADE;")
    op.execute("DROP TABLE IF EXISTS money_requests CASCADE;")
