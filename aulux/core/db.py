"""
Database wiring shared by every plugin: one engine per process, short-lived sessions.

The URL comes from init_db(db_url=...), else database.url, else database.path
(SQLite), else ~/.aulux/aulux.db.
"""
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

logger = logging.getLogger(__name__)

Base = declarative_base()

DEFAULT_DB_PATH = Path.home() / ".aulux" / "aulux.db"

_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """One unit of work: commit when the block exits cleanly, roll back otherwise."""
    if _session_factory is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    session = _session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def _sqlite_url(path: Any) -> str:
    path = Path(path).expanduser().resolve()
    path.parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite:///{path}"


def resolve_db_url(config_data: Optional[Dict[str, Any]] = None) -> str:
    db_config = (config_data or {}).get("database") or {}
    if db_config.get("url"):
        return db_config["url"]
    return _sqlite_url(db_config.get("path") or DEFAULT_DB_PATH)


def init_db(config_data: Optional[Dict[str, Any]] = None, db_url: Optional[str] = None) -> None:
    """Create the engine and every table. A second call is a no-op until dispose_db()."""
    global _engine, _session_factory

    if _engine is not None:
        logger.debug("Database already initialized")
        return

    url = db_url or resolve_db_url(config_data)
    # SQLite connections are shared with the threads uvicorn runs sync routes on
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    _engine = create_engine(url, echo=False, future=True, connect_args=connect_args)

    # Table modules register themselves on Base when imported
    from aulux.core import models as _core_models  # noqa: F401
    from aulux.plugins.attendance import models as _attendance_models  # noqa: F401
    from aulux.plugins.notifications import models as _notification_models  # noqa: F401

    Base.metadata.create_all(_engine)
    _session_factory = sessionmaker(bind=_engine, autocommit=False, autoflush=False, expire_on_commit=False)
    logger.info(f"Database initialized: {url.split('?')[0]}")


def dispose_db() -> None:
    """Close the engine's connections so init_db() can be called again (shutdown, tests)."""
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None
