import os
import ssl
from typing import Tuple

from sqlalchemy.engine import URL, make_url
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

DATABASE_URL = os.getenv("DATABASE_URL", "")

if not DATABASE_URL:
    raise RuntimeError("DATABASE_URL environment variable is required.")


def async_database_url(raw_url: str) -> Tuple[URL, dict]:
    """Return the async driver URL for ``raw_url`` plus its connect_args.

    Plain postgresql:// URLs are switched to asyncpg. asyncpg rejects the
    sslmode and channel_binding query options that hosted Postgres adds, so
    they are dropped and sslmode=require becomes an SSL context. Other URLs,
    including sqlite+aiosqlite ones, pass through untouched.
    """
    url = make_url(raw_url)
    connect_args = {}

    if url.drivername in ("postgres", "postgresql"):
        url = url.set(drivername="postgresql+asyncpg")

    if url.get_backend_name() == "postgresql":
        options = dict(url.query)
        if options.pop("sslmode", None) == "require":
            connect_args["ssl"] = ssl.create_default_context()
        options.pop("channel_binding", None)
        url = url.set(query=options)

    return url, connect_args


def _create_engine(raw_url: str):
    url, connect_args = async_database_url(raw_url)
    if url.get_backend_name() == "sqlite":
        # aiosqlite connections are bound to the loop that opened them
        return create_async_engine(url, echo=False, poolclass=NullPool)
    return create_async_engine(
        url, echo=False, pool_pre_ping=True, connect_args=connect_args
    )


engine = _create_engine(DATABASE_URL)
SessionLocal = async_sessionmaker(engine, expire_on_commit=False)


class Base(DeclarativeBase):
    pass
