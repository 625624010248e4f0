# app/db/schema_guard.py
import logging
from typing import Callable, TypeVar

from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

T = TypeVar("T")

MYSQL_NO_SUCH_TABLE = 1146


def is_missing_table_error(exc: BaseException) -> bool:
    if not isinstance(exc, DBAPIError):
        return False
    orig = getattr(exc, "orig", None)
    args = getattr(orig, "args", None) or ()
    if args and args[0] == MYSQL_NO_SUCH_TABLE:
        return True
    return "no such table" in str(orig).lower()


def read_or_empty(db: Session, fn: Callable[[], T], default: T) -> T:
    """
    Run a read-only query; an unprovisioned schema reads as `default`.
    Every other database failure propagates.
    """
    try:
        return fn()
    except DBAPIError as e:
        if not is_missing_table_error(e):
            raise
        db.rollback()
        logger.warning("Schema not provisioned: %s", e.orig)
        return default
