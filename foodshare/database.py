"""
Database connection and session.

Schema source of truth: foodshare.models. On startup, Base.metadata.create_all(bind=engine)
creates all tables and columns from the current models; there are no migration scripts.
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from foodshare.config import get_settings

settings = get_settings()

_connect_args = {}
if settings.database_url.startswith("sqlite"):
    # Request handlers and tests share the engine across threads; writers wait on the file lock
    _connect_args = {"check_same_thread": False, "timeout": 15}

engine = create_engine(
    settings.database_url,
    pool_pre_ping=True,
    connect_args=_connect_args,
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
