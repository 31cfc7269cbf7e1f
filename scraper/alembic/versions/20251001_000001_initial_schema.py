"""Initial schema: raw record tables, canonical entity graph, run log."""

from __future__ import annotations

from alembic import op

from govdata_scraper.db.base import Base
import govdata_scraper.db.entities  # noqa: F401
import govdata_scraper.db.records  # noqa: F401
import govdata_scraper.db.runs  # noqa: F401

# revision identifiers, used by Alembic.
revision = "20251001_000001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Enable pg_trgm, then create every table and constraint from SQLAlchemy metadata."""
    op.execute("CREATE EXTENSION IF NOT EXISTS pg_trgm")
    bind = op.get_bind()
    Base.metadata.create_all(bind=bind)


def downgrade() -> None:
    bind = op.get_bind()
    Base.metadata.drop_all(bind=bind)
