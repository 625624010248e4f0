# app/api/deps.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Generator, Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from app.core.rbac import require_any_role
from app.db.session import SessionLocal
from app.utils.jwt import decode_access_token


# =========================================================
# DB (per request)
# =========================================================
def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        # returns the pooled connection; any open transaction is rolled back
        db.close()


# =========================================================
# AUTH HELPERS
# =========================================================
@dataclass(frozen=True)
class Principal:
    id: int
    role: str
    email: Optional[str] = None


def _extract_bearer(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    parts = authorization.split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1]
    return None


def current_user(authorization: Optional[str] = Header(None)) -> Principal:
    raw = _extract_bearer(authorization)
    if not raw:
        raise HTTPException(status_code=401, detail="No token provided")

    payload = decode_access_token(raw)
    if not payload:
        raise HTTPException(status_code=401, detail="Invalid token")

    uid = payload.get("id")
    role = payload.get("role")
    if not uid or not role:
        raise HTTPException(status_code=401, detail="Invalid token payload")

    return Principal(id=int(uid),
                     role=str(role).lower(),
                     email=payload.get("email"))


def require_roles(*roles: str) -> Callable[..., Principal]:
    """Dependency factory: `user = Depends(require_roles("pharmacist"))`."""

    def _dep(user: Principal = Depends(current_user)) -> Principal:
        require_any_role(user, roles)
        return user

    return _dep
