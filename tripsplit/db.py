# tripsplit/db.py
# Инициализация SQLAlchemy: движок, сессии, Base и явные импорты моделей.

from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from tripsplit.config import DATABASE_URL


def _engine_kwargs(url: str) -> dict:
    # SQLite (локально/в тестах) - без пула соединений и с доступом из потоков FastAPI
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_size": 20,
        "max_overflow": 20,
        "pool_timeout": 60,
        "pool_recycle": 1800,
        "pool_pre_ping": True,
    }


engine = create_engine(DATABASE_URL, **_engine_kwargs(DATABASE_URL))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

from tripsplit.models import (  # noqa: E402,F401
    user,
    expense,
    settlement,
    wallet,
    pot,
    event,
)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
