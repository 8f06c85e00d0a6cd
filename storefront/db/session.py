from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from storefront.core.config import settings


engine = create_engine(
    settings.database_url,
    pool_pre_ping=True,
    pool_size=10,
    max_overflow=20,
    pool_recycle=1800,  # recycle connections every 30 min (avoid stale)
    connect_args={"connect_timeout": 5},
)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


def get_db():
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_session_factory():
    """Factory for writes that must commit independently of the request session (cron logs)."""
    return SessionLocal
