from datetime import datetime, timezone

from sqlalchemy import Table
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase

from conduit.config import settings
from conduit.middleware import install_query_counter

# Module-level engine variable allows tests to override with a test engine.
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_pre_ping=True,
)

# Register the per-request SQL query counter on the production engine.
install_query_counter(engine)

async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    pass


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive timestamps (SQLite drops the offset on read)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


async def insert_ignoring_conflicts(session: AsyncSession, table: Table, **values) -> None:
    """
    Insert one row into *table*, doing nothing if a unique key already holds it.

    Used for set-like writes (favorites, follows, tag memberships, the tag
    registry) where a concurrent writer inserting the same row first is not
    an error.
    """
    dialect = session.bind.dialect.name
    try:
        insert = _UPSERT_DIALECTS[dialect]
    except KeyError:
        raise NotImplementedError(f"No conflict-ignoring insert for dialect {dialect!r}") from None
    await session.execute(insert(table).values(**values).on_conflict_do_nothing())


async def get_db():
    """
    Yield a session whose transaction is the unit of work for one request.

    Every command flushes its writes into this transaction; they become
    visible together on commit or are discarded together on rollback.
    """
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
