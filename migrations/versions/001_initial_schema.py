"""Initial schema.

Revision ID: 001
Revises:
Create Date: 2026-03-02
"""
from typing import Sequence, Union

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE IF NOT EXISTS admin_sessions (
            id          TEXT PRIMARY KEY,
            created_at  INTEGER NOT NULL,
            expires_at  INTEGER NOT NULL
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS categories (
            id                  TEXT PRIMARY KEY,
            name                TEXT NOT NULL,
            slug                TEXT UNIQUE NOT NULL,
            description         TEXT,
            show_on_homepage    INTEGER NOT NULL DEFAULT 1,
            created_at          INTEGER NOT NULL
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS posts (
            id                  TEXT PRIMARY KEY,
            title               TEXT NOT NULL,
            slug                TEXT UNIQUE NOT NULL,
            excerpt             TEXT NOT NULL DEFAULT '',
            content             TEXT NOT NULL DEFAULT '',
            cover_image         TEXT,
            category_id         TEXT REFERENCES categories(id) ON DELETE SET NULL,
            author_name         TEXT NOT NULL,
            reading_time        INTEGER NOT NULL DEFAULT 1,
            published           INTEGER NOT NULL DEFAULT 0,
            published_at        INTEGER,
            meta_description    TEXT,
            tags                TEXT,
            source              TEXT,
            created_at          INTEGER NOT NULL,
            updated_at          INTEGER NOT NULL
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS pages (
            id                  TEXT PRIMARY KEY,
            title               TEXT NOT NULL,
            slug                TEXT UNIQUE NOT NULL,
            content             TEXT NOT NULL DEFAULT '',
            meta_description    TEXT,
            published           INTEGER NOT NULL DEFAULT 0,
            created_at          INTEGER NOT NULL,
            updated_at          INTEGER NOT NULL
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS comments (
            id              TEXT PRIMARY KEY,
            post_id         TEXT NOT NULL REFERENCES posts(id) ON DELETE CASCADE,
            parent_id       TEXT REFERENCES comments(id) ON DELETE CASCADE,
            author_name     TEXT NOT NULL,
            author_email    TEXT NOT NULL,
            content         TEXT NOT NULL,
            is_approved     INTEGER NOT NULL DEFAULT 0,
            created_at      INTEGER NOT NULL
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS contact_submissions (
            id          INTEGER PRIMARY KEY AUTOINCREMENT,
            name        TEXT NOT NULL,
            email       TEXT NOT NULL,
            subject     TEXT NOT NULL,
            message     TEXT NOT NULL,
            is_read     INTEGER NOT NULL DEFAULT 0,
            created_at  INTEGER NOT NULL
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS newsletter_subscribers (
            id          INTEGER PRIMARY KEY AUTOINCREMENT,
            email       TEXT UNIQUE NOT NULL,
            created_at  INTEGER NOT NULL
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS post_reactions (
            id              INTEGER PRIMARY KEY AUTOINCREMENT,
            post_id         TEXT NOT NULL REFERENCES posts(id) ON DELETE CASCADE,
            reaction_type   TEXT NOT NULL,
            session_id      TEXT NOT NULL,
            ip_hash         TEXT NOT NULL,
            created_at      INTEGER NOT NULL
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS site_settings (
            id                      INTEGER PRIMARY KEY CHECK (id = 1),
            blog_name               TEXT,
            site_url                TEXT,
            author_name             TEXT,
            author_bio              TEXT,
            contact_email           TEXT,
            hero_variant            TEXT NOT NULL DEFAULT 'centered',
            card_variant            TEXT NOT NULL DEFAULT 'classic',
            hero_title              TEXT,
            hero_subtitle           TEXT,
            newsletter_title        TEXT,
            newsletter_description  TEXT,
            updated_at              INTEGER NOT NULL
        )
    """)
    op.execute("INSERT OR IGNORE INTO site_settings (id, updated_at) VALUES (1, 0)")
    op.execute("CREATE INDEX IF NOT EXISTS idx_posts_slug ON posts(slug)")
    op.execute("CREATE INDEX IF NOT EXISTS idx_posts_published_at ON posts(published, published_at)")
    op.execute("CREATE INDEX IF NOT EXISTS idx_posts_category_id ON posts(category_id)")
    op.execute("CREATE INDEX IF NOT EXISTS idx_comments_post_id ON comments(post_id)")
    op.execute("CREATE INDEX IF NOT EXISTS idx_post_reactions_post_id ON post_reactions(post_id)")
    op.execute("CREATE INDEX IF NOT EXISTS idx_post_reactions_ip_hash ON post_reactions(ip_hash, created_at)")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS site_settings")
    op.execute("DROP TABLE IF EXISTS post_reactions")
    op.execute("DROP TABLE IF EXISTS newsletter_subscribers")
    op.execute("DROP TABLE IF EXISTS contact_submissions")
    op.execute("DROP TABLE IF EXISTS comments")
    op.execute("DROP TABLE IF EXISTS pages")
    op.execute("DROP TABLE IF EXISTS posts")
    op.execute("DROP TABLE IF EXISTS categories")
    op.execute("DROP TABLE IF EXISTS admin_sessions")
