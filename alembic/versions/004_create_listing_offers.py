"""004: create listing_offers table

Revision ID: 004
Revises: 003
Create Date: 2026-10-16

Offers are append-only: the app never updates or deletes a row; they are
removed only with their listing (ON DELETE CASCADE). The trigger enforces
the append-only rule against stray UPDATEs.
"""
from typing import Sequence, Union

from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE listing_offers (
            id              VARCHAR(64)     PRIMARY KEY,
            listing_id      VARCHAR(64)     NOT NULL REFERENCES listings (id) ON DELETE CASCADE,
            bidder_id       UUID            REFERENCES users (id) ON DELETE SET NULL,
            bidder_name     VARCHAR(120)    NOT NULL,
            amount_cents    BIGINT          NOT NULL,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_listing_offers_amount_gt_0 CHECK (amount_cents > 0)
        );
    """)
    op.execute(
        "CREATE INDEX idx_listing_offers_listing ON listing_offers (listing_id, created_at, id);"
    )
    op.execute("""
        CREATE OR REPLACE FUNCTION fn_listing_offers_immutable()
        RETURNS TRIGGER AS $$
        BEGIN
            -- bidder_id may still change: ON DELETE SET NULL from users.
            IF NEW.id <> OLD.id
               OR NEW.listing_id <> OLD.listing_id
               OR NEW.bidder_name <> OLD.bidder_name
               OR NEW.amount_cents <> OLD.amount_cents
               OR NEW.created_at <> OLD.created_at THEN
                RAISE EXCEPTION 'listing_offers rows are immutable';
            END IF;
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
    """)
    op.execute("""
        CREATE TRIGGER trg_listing_offers_immutable
            BEFORE UPDATE ON listing_offers
            FOR EACH ROW EXECUTE FUNCTION fn_listing_offers_immutable();
    """)
    op.execute("""
        ALTER TABLE listings
            ADD CONSTRAINT fk_listings_accepted_offer
            FOREIGN KEY (accepted_offer_id) REFERENCES listing_offers (id)
            DEFERRABLE INITIALLY DEFERRED;
    """)


def downgrade() -> None:
    op.execute("ALTER TABLE listings DROP CONSTRAINT IF EXISTS fk_listings_accepted_offer;")
    op.execute("DROP TABLE IF EXISTS listing_offers CASCADE;")
    op.execute("DROP FUNCTION IF EXISTS fn_listing_offers_immutable();")
