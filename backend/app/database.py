from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from typing import Generator
from app.config import settings


def make_engine(database_url: str) -> Engine:
    """Build an engine for *database_url* with the pool/pragma settings used everywhere."""
    engine_kwargs: dict = {"pool_pre_ping": True}
    if "sqlite" in database_url:
        engine_kwargs["connect_args"] = {"check_same_thread": False}
    else:
        engine_kwargs["pool_size"] = settings.DB_POOL_SIZE
        engine_kwargs["max_overflow"] = settings.DB_MAX_OVERFLOW
    engine = create_engine(database_url, **engine_kwargs)

    if "sqlite" in database_url:
        @event.listens_for(engine, "connect")
        def _set_sqlite_pragmas(dbapi_conn, connection_record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


engine = make_engine(settings.DATABASE_URL)
SessionLocal = make_session_factory(engine)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind: Engine | None = None) -> None:
    """Create all tables on *bind* (defaults to the application engine)."""
    from app.models import Base  # noqa: F401  ensure all models are registered
    Base.metadata.create_all(bind=bind or engine)
