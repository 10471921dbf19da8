"""003: create directory tables read by the core

catalog_services, providers, customers and service_requests are owned by
neighbouring services; the core only reads them.

Revision ID: 003
Revises: 002
Create Date: 2026-10-05
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE catalog_services (
            name                       VARCHAR(128) PRIMARY KEY,
            is_active                  BOOLEAN      NOT NULL DEFAULT TRUE,
            default_hourly_rate_cents  BIGINT,
            created_at                 TIMESTAMPTZ  NOT NULL DEFAULT NOW()
        );
    """)
    op.execute("""
        CREATE TABLE providers (
            id                   VARCHAR(64)  PRIMARY KEY,
            business_name        VARCHAR(200),
            max_bundle_capacity  INT          CHECK (max_bundle_capacity BETWEEN 1 AND 10),
            services_provided    JSONB        NOT NULL DEFAULT '[]'::jsonb,
            service_areas        JSONB        NOT NULL DEFAULT '[]'::jsonb,
            created_at           TIMESTAMPTZ  NOT NULL DEFAULT NOW()
        );
    """)
    op.execute("""
        CREATE TABLE customers (
            id          VARCHAR(64)  PRIMARY KEY,
            email       VARCHAR(255),
            name        VARCHAR(200),
            address     JSONB        NOT NULL DEFAULT '{}'::jsonb,
            created_at  TIMESTAMPTZ  NOT NULL DEFAULT NOW()
        );
    """)
    op.execute("""
        CREATE TABLE service_requests (
            id           VARCHAR(64)  PRIMARY KEY,
            customer_id  VARCHAR(64)  NOT NULL,
            provider_id  VARCHAR(64),
            status       VARCHAR(20)  NOT NULL DEFAULT 'pending',
            created_at   TIMESTAMPTZ  NOT NULL DEFAULT NOW()
        );
    """)
    op.execute("COMMENT ON COLUMN providers.services_provided IS '[{name, hourly_rate_cents}]';")
    op.execute("COMMENT ON COLUMN providers.service_areas IS '[{zip_code, is_active}]';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS service_requests CASCADE;")
    op.execute("DROP TABLE IF EXISTS customers CASCADE;")
    op.execute("DROP TABLE IF EXISTS providers CASCADE;")
    op.execute("DROP TABLE IF EXISTS catalog_services CASCADE;")
