# FILE: app/schemas/common.py
from __future__ import annotations

from typing import Any, Optional
from pydantic import BaseModel


class ApiError(BaseModel):
    message: str
    error: Optional[Any] = None

