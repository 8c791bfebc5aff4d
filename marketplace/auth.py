# marketplace/auth.py

"""
Session identity dependencies.

Sign-in is handled by the external identity provider, which stores the
authenticated user's id under ``user_id`` in the signed session cookie
(Starlette ``SessionMiddleware``). Routes only read it.
"""
from typing import Optional

from fastapi import Depends, HTTPException, Request, status


SESSION_USER_KEY = "user_id"


def get_current_user_id(request: Request) -> Optional[str]:
    """Returns the session user's id, or None for anonymous callers."""
    user_id = request.session.get(SESSION_USER_KEY)
    return str(user_id) if user_id else None


def require_user_id(user_id: Optional[str] = Depends(get_current_user_id)) -> str:
    """Like `get_current_user_id`, but rejects anonymous callers with a 401."""
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )
    return user_id
