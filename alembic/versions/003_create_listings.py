"""003: create listings table

Revision ID: 003
Revises: 002
Create Date: 2026-10-16

CHECK constraints restate the pricing and settlement invariants so that no
writer, including ad-hoc SQL, can store a listing the pricing code cannot
price or a SOLD listing without its accepted offer.
"""
from typing import Sequence, Union

from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE listings (
            id                      VARCHAR(64)     PRIMARY KEY,
            seller_id               UUID            REFERENCES users (id) ON DELETE SET NULL,
            seller_name             VARCHAR(120)    NOT NULL,
            title                   VARCHAR(200)    NOT NULL,
            description             TEXT            NOT NULL,
            category                VARCHAR(20)     NOT NULL,
            image_url               TEXT,
            status                  VARCHAR(10)     NOT NULL DEFAULT 'OPEN',
            start_price_cents       BIGINT          NOT NULL,
            floor_price_cents       BIGINT          NOT NULL,
            starts_at               TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            offer_window_ends_at    TIMESTAMPTZ     NOT NULL,
            accepted_offer_id       VARCHAR(64),
            created_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_listings_category CHECK (category IN ('textbook', 'dorm', 'other')),
            CONSTRAINT ck_listings_status CHECK (status IN ('OPEN', 'SOLD', 'CLOSED')),
            CONSTRAINT ck_listings_start_price_gt_0 CHECK (start_price_cents > 0),
            CONSTRAINT ck_listings_floor_price_gte_0 CHECK (floor_price_cents >= 0),
            CONSTRAINT ck_listings_floor_lte_start CHECK (floor_price_cents <= start_price_cents),
            CONSTRAINT ck_listings_window CHECK (offer_window_ends_at > starts_at),
            CONSTRAINT ck_listings_accepted_iff_sold CHECK (
                (status = 'SOLD') = (accepted_offer_id IS NOT NULL)
            )
        );
    """)
    op.execute("CREATE INDEX idx_listings_created_at ON listings (created_at DESC, id DESC);")
    op.execute("CREATE INDEX idx_listings_seller_id ON listings (seller_id);")
    op.execute("""
        CREATE TRIGGER trg_listings_updated_at
            BEFORE UPDATE ON listings
            FOR EACH ROW EXECUTE FUNCTION fn_touch_updated_at();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS listings CASCADE;")
