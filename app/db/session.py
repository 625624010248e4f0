# app/db/session.py
from typing import Any, Dict

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from app.core.config import settings


def _engine_kwargs(db_uri: str) -> Dict[str, Any]:
    kwargs: Dict[str, Any] = {
        "pool_pre_ping": True,
        "future": True,
        "echo": settings.SQL_ECHO,
    }
    if db_uri.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        return kwargs
    kwargs.update(
        pool_recycle=settings.DB_POOL_RECYCLE,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
    )
    return kwargs


def make_engine(db_uri: str) -> Engine:
    eng = create_engine(db_uri, **_engine_kwargs(db_uri))

    if eng.dialect.name == "mysql":

        @event.listens_for(eng, "connect")
        def _set_lock_wait_timeout(dbapi_conn, _record):
            # Bounded wait on FOR UPDATE; a timeout surfaces as an error and
            # the request rolls back.
            cur = dbapi_conn.cursor()
            try:
                cur.execute("SET SESSION innodb_lock_wait_timeout = %s",
                            (int(settings.DB_LOCK_WAIT_TIMEOUT), ))
            finally:
                cur.close()

    return eng


def make_session_factory(eng: Engine) -> sessionmaker:
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=eng,
        future=True,
    )


engine: Engine = make_engine(settings.SQLALCHEMY_DATABASE_URI)

SessionLocal = make_session_factory(engine)
