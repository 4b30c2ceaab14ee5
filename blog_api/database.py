import logging
from contextlib import asynccontextmanager

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase

from blog_api.config import settings
from blog_api.errors import BlogAPIError, Conflict, StoreFailure
from blog_api.middleware import install_query_counter

logger = logging.getLogger(__name__)

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


async def get_db():
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def atomic(db: AsyncSession, conflict_message: str | None = None):
    """
    Unit of work: commit everything done inside the block, or nothing.

    Domain errors (``BlogAPIError``) roll back and propagate unchanged.
    Integrity errors become ``Conflict``; any other SQLAlchemy error becomes
    ``StoreFailure``.  Both keep the original exception as ``__cause__``.
    Anything else rolls back and propagates as is, so callers outside a
    request (scripts, tests) never keep a half-written transaction.
    """
    try:
        yield db
        await db.commit()
    except BlogAPIError:
        await db.rollback()
        raise
    except IntegrityError as exc:
        await db.rollback()
        logger.warning("Integrity error, transaction rolled back: %s", exc.orig)
        raise Conflict(conflict_message) from exc
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.exception("Store failure, transaction rolled back")
        raise StoreFailure() from exc
    except Exception:
        await db.rollback()
        raise
