from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker

from imagegen.core.config import settings


def _engine_kwargs(database_url: str) -> dict:
    if make_url(database_url).get_backend_name() == "sqlite":
        # Local runs and tests. Row locks are not available, the ledger
        # sequence constraint still serializes writers.
        return {"connect_args": {"check_same_thread": False, "timeout": settings.database_connect_timeout}}
    return {
        "pool_pre_ping": True,
        "pool_size": settings.database_pool_size,
        "max_overflow": settings.database_max_overflow,
        "pool_recycle": 1800,  # recycle connections every 30 min (avoid stale)
        "connect_args": {"connect_timeout": settings.database_connect_timeout},
    }


engine = create_engine(settings.database_url, **_engine_kwargs(settings.database_url))
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
