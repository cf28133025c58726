"""
Database compatibility helpers for SQLite and PostgreSQL.
"""
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession


def dialect_name(session: AsyncSession) -> str:
    """Name of the dialect the session is bound to ("sqlite", "postgresql", ...)."""
    return session.get_bind().dialect.name


def upsert(session: AsyncSession, table, values: dict, index_elements: list, update: dict):
    """Build INSERT ... ON CONFLICT DO UPDATE for the session's dialect.

    Both SQLite (3.24+) and PostgreSQL accept the same conflict clause, so the
    statement is identical apart from the dialect-specific insert construct.
    """
    if dialect_name(session) == "postgresql":
        stmt = postgresql.insert(table).values(**values)
    else:
        stmt = sqlite.insert(table).values(**values)
    return stmt.on_conflict_do_update(index_elements=index_elements, set_=update)
