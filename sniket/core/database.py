from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from sniket.config import DatabaseSettings

SessionFactory = async_sessionmaker[AsyncSession]


class Base(DeclarativeBase):
  pass


def database_url(settings: DatabaseSettings) -> str | None:
  """Build the SQLAlchemy database URL, switching plain Postgres DSNs to asyncpg."""
  url = settings.pg_dsn
  if url and url.startswith("postgresql://"):
    url = url.replace("postgresql://", "postgresql+asyncpg://", 1)

  return url


def create_engine(url: str, *, echo: bool = False) -> AsyncEngine:
  """Create the async engine for a database URL."""
  # In-memory SQLite has no network peers to ping.
  if url.startswith("sqlite"):
    return create_async_engine(url, echo=echo, future=True)

  return create_async_engine(url, echo=echo, future=True, pool_pre_ping=True, pool_recycle=3600)


def build_session_factory(engine: AsyncEngine) -> SessionFactory:
  return async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)


async def init_models(engine: AsyncEngine) -> None:
  """Create all mapped tables that do not exist yet."""
  # Models must be imported so they are attached to Base.metadata.
  import sniket.schema.chat_sessions  # noqa: F401
  import sniket.schema.notifications  # noqa: F401
  import sniket.schema.payments  # noqa: F401
  import sniket.schema.push_tokens  # noqa: F401

  async with engine.begin() as connection:
    await connection.run_sync(Base.metadata.create_all)
