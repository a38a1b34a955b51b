"""Database engine and request-scoped sessions"""

from typing import Any, Dict
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from plotpay_engine.config import settings


def engine_options(url: str) -> Dict[str, Any]:
    """Pool settings for PostgreSQL; SQLite only needs cross-thread access for the threadpool handlers"""
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_pre_ping": True,
        "pool_size": 10,
        "max_overflow": 10,
        "pool_recycle": 3600,
    }


engine = create_engine(settings.database_url, **engine_options(settings.database_url))

# Allocation reads open installments after writing splits; flushing is explicit
SessionLocal = sessionmaker(autoflush=False, bind=engine)


def get_db() -> Session:
    """One session per request; services commit or roll back inside their schedule transaction"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
