from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from etf_autoagent.persistence.models import Base

DEFAULT_SQLITE_URL = "sqlite:///./etf_autoagent.sqlite3"
IN_MEMORY_SQLITE_URLS = ("sqlite://", "sqlite:///:memory:")


def make_engine(db_url: str = DEFAULT_SQLITE_URL):
    if db_url in IN_MEMORY_SQLITE_URLS:
        # One shared connection so every session sees the same database.
        return create_engine(
            db_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    if db_url.startswith("sqlite:"):
        return create_engine(db_url, connect_args={"check_same_thread": False})
    return create_engine(db_url, pool_pre_ping=True)


def make_session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def init_database(db_url: str = DEFAULT_SQLITE_URL):
    """Creates missing tables and returns a session factory bound to them."""
    engine = make_engine(db_url)
    Base.metadata.create_all(engine)
    return make_session_factory(engine)
