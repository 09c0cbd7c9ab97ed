"""Engine, session factory and declarative base for the reseller directory."""

from __future__ import annotations

import os
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, URL, make_url
from sqlalchemy.orm import Session, declarative_base, sessionmaker

DEFAULT_SQLITE_PATH = Path(__file__).resolve().parent.parent / "resellers.db"
DATABASE_URL_ENV = "DATABASE_URL"
REQUIRE_POSTGRES_ENV = "REQUIRE_POSTGRES"


def _env_flag(name: str) -> bool:
    return (os.getenv(name) or "").strip().lower() in {"1", "true", "yes", "on"}


def _env_count(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer") from exc
    if value < 0:
        raise ValueError(f"{name} must be non-negative")
    return value


@dataclass(frozen=True)
class PoolSettings:
    """Connection pool tuning for server databases; SQLite ignores it."""

    size: int = 5
    max_overflow: int = 10
    timeout: int = 30
    recycle: int = 1800
    connect_timeout: int = 10

    @classmethod
    def from_env(cls) -> "PoolSettings":
        defaults = cls()
        return cls(
            size=_env_count("DATABASE_POOL_SIZE", defaults.size),
            max_overflow=_env_count("DATABASE_MAX_OVERFLOW", defaults.max_overflow),
            timeout=_env_count("DATABASE_POOL_TIMEOUT", defaults.timeout),
            recycle=_env_count("DATABASE_POOL_RECYCLE", defaults.recycle),
            connect_timeout=_env_count("DATABASE_CONNECT_TIMEOUT", defaults.connect_timeout),
        )


def _is_sqlite(url: URL) -> bool:
    return url.get_backend_name() == "sqlite"


def resolve_database_url(raw_url: Optional[str], *, require_postgres: Optional[bool] = None) -> str:
    """Return the URL to connect to, defaulting to ``backend/resellers.db``.

    With ``REQUIRE_POSTGRES`` enabled, a missing URL or a SQLite URL is
    refused. The parent directory of a SQLite file is created on demand.
    """

    if require_postgres is None:
        require_postgres = _env_flag(REQUIRE_POSTGRES_ENV)

    if not raw_url:
        if require_postgres:
            raise RuntimeError(f"{DATABASE_URL_ENV} must point to PostgreSQL when {REQUIRE_POSTGRES_ENV}=1")
        url = make_url(f"sqlite:///{DEFAULT_SQLITE_PATH.as_posix()}")
    else:
        url = make_url(raw_url)

    if _is_sqlite(url):
        if require_postgres:
            raise RuntimeError(f"SQLite is not permitted when {REQUIRE_POSTGRES_ENV}=1")
        if url.database not in (None, "", ":memory:"):
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)
    return url.render_as_string(hide_password=False)


def build_engine_kwargs(database_url: str, pool: Optional[PoolSettings] = None) -> Dict[str, Any]:
    if _is_sqlite(make_url(database_url)):
        return {"connect_args": {"check_same_thread": False}}
    pool = pool or PoolSettings.from_env()
    return {
        "pool_pre_ping": True,
        "pool_size": pool.size,
        "max_overflow": pool.max_overflow,
        "pool_timeout": pool.timeout,
        "pool_recycle": pool.recycle,
        "connect_args": {"connect_timeout": pool.connect_timeout},
    }


def create_database_engine(database_url: str) -> Engine:
    return create_engine(database_url, **build_engine_kwargs(database_url))


def create_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=bind)


SQLALCHEMY_DATABASE_URL = resolve_database_url(os.getenv(DATABASE_URL_ENV))

engine = create_database_engine(SQLALCHEMY_DATABASE_URL)
SessionLocal = create_session_factory(engine)

Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """Yield a request-scoped session and close it afterwards."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope(factory: Optional[Callable[[], Session]] = None) -> Generator[Session, None, None]:
    """Session for scripts: committed on success, rolled back on error.

    ``factory`` defaults to the application's ``SessionLocal``.
    """
    session = (factory or SessionLocal)()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
