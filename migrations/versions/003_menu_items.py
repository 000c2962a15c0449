"""Navigation menu items for the site header and footer.

Revision ID: 003
Revises: 002
Create Date: 2026-03-09
"""
from typing import Sequence, Union

from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # An item with neither url nor page_id is a dropdown parent.
    op.execute("""
        CREATE TABLE IF NOT EXISTS menu_items (
            id              TEXT PRIMARY KEY,
            label           TEXT NOT NULL,
            url             TEXT NOT NULL DEFAULT '',
            page_id         TEXT REFERENCES pages(id) ON DELETE CASCADE,
            parent_id       TEXT REFERENCES menu_items(id) ON DELETE CASCADE,
            location        TEXT NOT NULL DEFAULT 'header'
                            CHECK (location IN ('header', 'footer', 'both')),
            position        INTEGER NOT NULL DEFAULT 0,
            open_in_new_tab INTEGER NOT NULL DEFAULT 0,
            created_at      INTEGER NOT NULL
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_menu_items_parent_id ON menu_items(parent_id)")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS menu_items")
