from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from .schema import create_all


def get_engine(sqlite_path: str):
    engine_url = f"sqlite:///{sqlite_path}"
    # Repository calls run on worker threads, so connections may move between threads
    engine = create_engine(engine_url, future=True, connect_args={"check_same_thread": False})
    create_all(engine_url)
    return engine


def get_session_factory(sqlite_path: str) -> sessionmaker:
    """Get a session factory bound to the SQLite file (tables are created if missing)."""
    engine = get_engine(sqlite_path)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@contextmanager
def session_context(session_factory: sessionmaker) -> Generator[Session, None, None]:
    """
    Context manager for SQLAlchemy sessions.
    
    Ensures rollback on error and session cleanup.
    
    Usage:
        with session_context(factory) as session:
            # use session
            session.commit()
    """
    session = session_factory()
    try:
        yield session
        # Callers commit explicitly; nothing is committed on their behalf.
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
