"""007: seed initial data

Revision ID: 007
Revises: 006
Create Date: 2026-10-05
"""

from typing import Sequence, Union

from alembic import op

revision: str = "007"
down_revision: Union[str, None] = "006"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Platform settings (single rows)
    op.execute("""
        INSERT INTO commission_settings (id, service_commission_bps, bundle_commission_bps, is_active)
        VALUES (1, 500, 500, TRUE);
    """)
    op.execute("""
        INSERT INTO bundle_settings (id, bundle_discount_bps, bundle_expiry_hours, max_bundle_size)
        VALUES (1, 1000, 24, 5);
    """)

    # Sample catalog
    op.execute("""
        INSERT INTO catalog_services (name, is_active, default_hourly_rate_cents) VALUES
            ('Lawn Mowing',      TRUE, 4500),
            ('Hedge Trimming',   TRUE, 5000),
            ('Gutter Cleaning',  TRUE, 6000),
            ('Window Washing',   TRUE, 5500),
            ('Snow Removal',     FALSE, 7000);
    """)


def downgrade() -> None:
    op.execute("DELETE FROM catalog_services WHERE name IN ('Lawn Mowing', 'Hedge Trimming', 'Gutter Cleaning', 'Window Washing', 'Snow Removal');")
    op.execute("DELETE FROM bundle_settings WHERE id = 1;")
    op.execute("DELETE FROM commission_settings WHERE id = 1;")
