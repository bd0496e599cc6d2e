from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from floortrack.config import settings


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True, "pool_size": 5, "max_overflow": 10, "pool_recycle": 3600}


engine = create_engine(settings.database_url, future=True, **_engine_kwargs(settings.database_url))

# Fresh Session per request; never share one across threads
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
