# scrumboard/core/db.py
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from scrumboard.core.config import settings

Base = declarative_base()


def make_engine(url: str, **kwargs) -> Engine:
    """Engine for SQLite (local runs, tests) or PostgreSQL (deployments).

    Only these two dialects are supported: the issue upsert is compiled with
    their ON CONFLICT constructs.
    """
    if url.startswith("sqlite"):
        # Sync routes run in FastAPI's threadpool, not the creating thread
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    else:
        kwargs.setdefault("pool_pre_ping", True)
    return create_engine(url, **kwargs)


def make_session_factory(bind: Engine) -> sessionmaker:
    # Routes serialize rows after commit, so keep loaded state
    return sessionmaker(bind=bind, autoflush=False, expire_on_commit=False)


engine = make_engine(settings.DATABASE_URL)
SessionLocal = make_session_factory(engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
