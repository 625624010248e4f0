# FILE: app/services/unit_of_work.py
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


@contextmanager
def transaction(db: Session, action: str) -> Iterator[Session]:
    """
    One atomic unit of work on the request session.

    Commit when the block finishes; on any exception roll back and re-raise.
    A failing rollback is logged but never replaces the original error.
    """
    try:
        yield db
        db.commit()
    except BaseException:
        try:
            db.rollback()
        except SQLAlchemyError:
            logger.exception("Failed to rollback %s transaction", action)
        raise
