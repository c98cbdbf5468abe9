import logging
from typing import Awaitable, Callable

from sqlalchemy import inspect, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from guestbook.config import settings

logger = logging.getLogger(__name__)

# Module-level engine; the test suite overrides get_db with its own engine.
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_pre_ping=True,
)

async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    pass


_AFTER_COMMIT = "after_commit"


def after_commit(session: AsyncSession, callback: Callable[[], Awaitable[None]]) -> None:
    """
    Run *callback* once *session* has committed through ``commit``.

    Used for side effects that must not be visible before the data is,
    such as dropping a cache entry another request could otherwise refill
    from the not-yet-committed state.  Discarded on rollback.
    """
    session.info.setdefault(_AFTER_COMMIT, []).append(callback)


async def commit(session: AsyncSession) -> None:
    await session.commit()
    for callback in session.info.pop(_AFTER_COMMIT, []):
        await callback()


async def rollback(session: AsyncSession) -> None:
    session.info.pop(_AFTER_COMMIT, None)
    await session.rollback()


async def get_db():
    async with async_session() as session:
        try:
            yield session
            await commit(session)
        except Exception:
            await rollback(session)
            raise


async def init_models(bind: AsyncEngine = engine) -> list[str]:
    """
    Create any missing tables and return the table names now present.

    Called once from the application lifespan before serving requests.
    """
    # Registers Visitor and Comment on Base.metadata.
    import guestbook.models  # noqa: F401

    logger.info("Connecting to database at %s", bind.url.render_as_string(hide_password=True))
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        names = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())

    logger.info("Database ready; tables: %s", ", ".join(sorted(names)) or "(none)")
    return names


async def ping(db: AsyncSession) -> bool:
    """Return True when a trivial round-trip to the database succeeds."""
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.warning("Database ping failed: %s", exc)
        return False
    return True
