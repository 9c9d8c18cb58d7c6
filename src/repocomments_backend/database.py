import os
from typing import Callable
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session

POSTGRES_HOST = os.environ.get("POSTGRES_HOST", "localhost")
POSTGRES_PORT = os.environ.get("POSTGRES_PORT", "5432")
POSTGRES_USER = os.environ.get("POSTGRES_USER")
POSTGRES_PASSWORD = os.environ.get("POSTGRES_PASSWORD")
POSTGRES_DB = os.environ.get("POSTGRES_DB")

DATABASE_URL = os.environ.get(
    "DATABASE_URL",
    f"postgresql+psycopg2://{POSTGRES_USER}:{POSTGRES_PASSWORD}@{POSTGRES_HOST}:{POSTGRES_PORT}/{POSTGRES_DB}",
)

_engine_kwargs = {"future": True}
if not DATABASE_URL.startswith("sqlite"):
    _engine_kwargs.update(
        pool_size=10,
        max_overflow=20,
        pool_timeout=30,
        pool_recycle=1800,     # 30 min - protects against idle disconnects
        pool_pre_ping=True,    # avoids stale connections
        pool_use_lifo=True,
    )

# The engine connects lazily; nothing touches the database at import time
_engine = create_engine(DATABASE_URL, **_engine_kwargs)

SessionLocal: Callable[[], Session] = sessionmaker(
    bind=_engine,
    autocommit=False,
    expire_on_commit=False,
    autoflush=False,
    class_=Session
)

