from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy.pool import StaticPool

from sona.core.config import settings


class Base(DeclarativeBase):
    pass


def create_db_engine(url: str | None = None):
    """Create database engine with appropriate settings based on database type."""
    url = url or settings.database_url

    # SQLite needs special handling; an in-memory database lives on a single shared connection
    if url.startswith("sqlite"):
        if ":memory:" in url:
            return create_engine(url, connect_args={"check_same_thread": False}, poolclass=StaticPool)
        return create_engine(url, connect_args={"check_same_thread": False, "timeout": 30})

    # PostgreSQL and other databases
    return create_engine(
        url,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20,
    )


engine = create_db_engine()

# Jobs handed out by the store are detached snapshots, so attributes must survive commit.
SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
