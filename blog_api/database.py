from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase

from blog_api.config import settings
from blog_api.middleware import install_query_counter


def _engine_options() -> dict:
    options = {"echo": settings.DEBUG and settings.APP_ENV == "development", "pool_pre_ping": True}
    # Vote coordination relies on row locks taken by relative UPDATEs plus the
    # ledger's UNIQUE index; READ COMMITTED is sufficient for both.
    if settings.is_postgres:
        options["isolation_level"] = settings.DB_ISOLATION_LEVEL
    return options


# Module-level engine variable allows tests to override with a test engine.
engine = create_async_engine(settings.DATABASE_URL, **_engine_options())

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
