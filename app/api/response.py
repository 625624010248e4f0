# FILE: app/api/response.py
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from app.schemas.common import ApiError
from app.services.billing_errors import BillingError

logger = logging.getLogger(__name__)


def ok(message: str, *, status_code: int = 200, **fields: Any) -> JSONResponse:
    """
    Standard success wrapper:
    {
      "message": "...",
      ...entity fields
    }
    """
    payload: Dict[str, Any] = {"message": message, **fields}
    # jsonable_encoder converts datetime/date/Decimal to JSON-safe types
    return JSONResponse(status_code=status_code,
                        content=jsonable_encoder(payload))


def err(message: str = "Something went wrong",
        *,
        status_code: int = 400,
        error: Any = None) -> JSONResponse:
    """
    Standard error wrapper:
    {
      "message": "...",
      "error": "..."
    }
    """
    payload = ApiError(message=message, error=error if error is not None else message)
    return JSONResponse(status_code=status_code,
                        content=jsonable_encoder(payload))


@contextmanager
def failure_as_500(message: str) -> Iterator[None]:
    """
    Typed billing errors and HTTP errors pass through; anything else is
    logged and reported as 500 {message, error}.
    """
    try:
        yield
    except (BillingError, HTTPException):
        raise
    except Exception as e:
        logger.exception(message)
        raise HTTPException(status_code=500,
                            detail={
                                "message": message,
                                "error": str(e)
                            }) from e
