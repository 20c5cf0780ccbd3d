from contextlib import asynccontextmanager
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from .config import settings
from .base import Base

engine = create_async_engine(settings.DATABASE_URL, pool_pre_ping=True)
SessionLocal = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

async def get_session():
    async with SessionLocal() as session:
        yield session

@asynccontextmanager
async def atomic(session: AsyncSession):
    """Commit on success; roll back on any failure, cancellation included.

    Multi-row mutations (attach+demote, merge renumbering, round decisions)
    run inside this block so nothing partial is ever persisted.
    """
    try:
        yield session
        await session.commit()
    except BaseException:
        await session.rollback()
        raise

async def init_models():
    ## In dev-only "create_all" mode create tables directly; otherwise, migrations own the schema.
    if settings.DB_MANAGE == "create_all":
        # make sure every model module is imported before create_all
        import cutroom.modules.projects.models  # noqa: F401
        import cutroom.modules.folders.models  # noqa: F401
        import cutroom.modules.media.models  # noqa: F401
        import cutroom.modules.review_links.models  # noqa: F401
        import cutroom.modules.rounds.models  # noqa: F401
        import cutroom.modules.comments.models  # noqa: F401
        import cutroom.modules.events.outbox  # noqa: F401
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
