import logging

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from sqlpractice.core.config import settings

logger = logging.getLogger(__name__)

connect_args = {"check_same_thread": False} if settings.is_sqlite() else {}

engine = create_engine(
    settings.DATABASE_URL,
    future=True,
    pool_pre_ping=True,
    echo=settings.DATABASE_ECHO,
    connect_args=connect_args,
)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """Create tables if they don't exist."""
    from sqlpractice.models.orm import Base

    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ensured")


def close_db():
    engine.dispose()
