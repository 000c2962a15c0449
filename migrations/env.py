"""Alembic environment for the GeckoPress SQLite schema.

Migrations are raw SQL (no SQLAlchemy models). ``database.run_migrations``
passes the target URL in through the Alembic config; the alembic CLI falls
back to ``settings.db_path``. ``alembic upgrade head --sql`` renders the
schema without touching a database.
"""
from alembic import context
from sqlalchemy import create_engine

from app.config import settings

config = context.config


def _database_url() -> str:
    url = config.get_main_option("sqlalchemy.url")
    if not url or url.startswith("driver://"):
        url = f"sqlite:///{settings.db_path}"
        config.set_main_option("sqlalchemy.url", url)
    return url


def run_migrations_offline() -> None:
    context.configure(
        url=_database_url(),
        target_metadata=None,
        literal_binds=True,
        render_as_batch=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    engine = create_engine(_database_url())
    try:
        with engine.connect() as connection:
            context.configure(connection=connection, target_metadata=None, render_as_batch=True)
            with context.begin_transaction():
                context.run_migrations()
    finally:
        engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
