from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
import logging

import config

logger = logging.getLogger(__name__)


def _normalize_url(url: str) -> str:
    # SQLAlchemy prefers postgresql://
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql://", 1)
    return url


def build_engine(url: str) -> Engine:
    """Create an engine for the given store URL"""
    url = _normalize_url(url)
    if url.startswith("postgresql"):
        return create_engine(
            url,
            echo=False,
            pool_pre_ping=True,  # Verify connections before using them
            pool_recycle=300,  # Recycle connections after 5 minutes
        )

    connect_args = {"check_same_thread": False}
    if url in ("sqlite://", "sqlite:///:memory:"):
        # StaticPool: all connections share the same in-memory DB
        return create_engine(url, connect_args=connect_args, poolclass=StaticPool, echo=False)
    return create_engine(url, connect_args=connect_args)


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # Lesson and progress cascades rely on FK enforcement
    if type(dbapi_connection).__module__.startswith("sqlite3"):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


# Priority: Vercel Postgres > Local Postgres > SQLite (in-memory for serverless) > SQLite (file-based for local)
if config.POSTGRES_URL:
    SQLALCHEMY_DATABASE_URL = config.POSTGRES_URL
    logger.info("Using Vercel Postgres database")
elif config.DATABASE_URL and config.DATABASE_URL.startswith("postgres"):
    SQLALCHEMY_DATABASE_URL = config.DATABASE_URL
    logger.info("Using PostgreSQL database")
elif config.IS_SERVERLESS:
    SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"
    logger.warning("Using in-memory SQLite (data will not persist - configure Postgres for production)")
else:
    SQLALCHEMY_DATABASE_URL = config.DATABASE_URL or "sqlite:///./classroom.db"
    logger.info("Using SQLite database (local development)")

engine = build_engine(SQLALCHEMY_DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
