"""One reaction per session per post, enforced by a unique index.

Rows written before the index existed may hold several reactions for the
same session; only the newest one is kept.

Revision ID: 002
Revises: 001
Create Date: 2026-03-09
"""
from typing import Sequence, Union

from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        DELETE FROM post_reactions
        WHERE id NOT IN (
            SELECT MAX(id) FROM post_reactions GROUP BY post_id, session_id
        )
    """)
    op.execute(
        "CREATE UNIQUE INDEX IF NOT EXISTS idx_post_reactions_session "
        "ON post_reactions(post_id, session_id)"
    )


def downgrade() -> None:
    op.execute("DROP INDEX IF EXISTS idx_post_reactions_session")
