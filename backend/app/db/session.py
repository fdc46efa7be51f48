from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.core.config import get_settings


settings = get_settings()


def engine_options(database_url: str) -> dict[str, Any]:
    if database_url.startswith("sqlite"):
        # request handlers run on a threadpool, so the connection is shared across threads
        return {"connect_args": {"check_same_thread": False}}
    # Managed Postgres plans cap connections; keep the pool small and recycle often.
    return {"pool_pre_ping": True, "pool_size": 5, "max_overflow": 5, "pool_recycle": 300}


engine = create_engine(settings.database_url, future=True, **engine_options(settings.database_url))

SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    expire_on_commit=False,
)
