from __future__ import annotations

from typing import Any, Iterable, Optional

from fastapi import HTTPException, status


def _role(user: Any) -> str:
    if user is None:
        return ""
    if isinstance(user, dict):
        v = user.get("role")
    else:
        v = getattr(user, "role", None)
    return str(v or "").strip().lower()


def is_admin_user(user: Any) -> bool:
    """
    Admin bypass for every role gate.
    """
    return _role(user) == "admin"


def has_role(user: Any, roles: Iterable[str]) -> bool:
    if is_admin_user(user):
        return True
    wanted = {str(r).strip().lower() for r in roles if str(r).strip()}
    return _role(user) in wanted


def require_any_role(user: Any,
                     roles: Iterable[str],
                     *,
                     message: Optional[str] = None) -> None:
    """
    Raise 403 if user's role is not one of 'roles'.
    """
    if has_role(user, roles):
        return
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail=message or "Access denied",
    )
