"""
Single place to:
- Create a SQLAlchemy Engine from DATABASE_URL (see config.py)
- Create a Session factory (SessionLocal)
- Provide the declarative Base for ORM models

The repository opens one short session per operation, so it works from
request handlers and from timer threads alike.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from . import config

# SQLite needs check_same_thread=False because bot/timeout timers commit from
# their own threads.
_connect_args = {"check_same_thread": False} if config.DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(
    config.DATABASE_URL,
    pool_pre_ping=True,
    echo=False,
    future=True,
    connect_args=_connect_args,
)

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


class Base(DeclarativeBase):
    pass
