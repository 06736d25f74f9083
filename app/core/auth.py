# app/core/auth.py
from typing import Any

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError

from app.core.config import get_settings
from app.core.errors import Unauthenticated
from app.core.logging import bind_request_context

# HTTP Bearer scheme:
# - auto_error=False => missing Authorization header will NOT raise immediately
#   so the services can report Unauthenticated themselves.
bearer_scheme = HTTPBearer(auto_error=False)


def decode_access_token(token: str) -> dict[str, Any]:
    """
    Decode and verify a Supabase access token (JWT).

    Verification:
      - signature (HS256 using SUPABASE_JWT_SECRET)
      - expiration time (exp)
      - audience is NOT verified (Supabase 'aud' may vary)

    Raises:
        Unauthenticated: if token is invalid/expired.
    """
    settings = get_settings()
    try:
        return jwt.decode(
            token,
            settings.SUPABASE_JWT_SECRET,
            algorithms=[settings.SUPABASE_JWT_ALG],
            options={"verify_aud": False},
        )
    except JWTError:
        raise Unauthenticated("Invalid or expired token.")


def get_current_buyer_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str | None:
    """
    Resolve the current buyer id from a Supabase JWT.

    The buyer id is the opaque 'sub' claim; no profile table is consulted.

    Returns:
        buyer id if authenticated, else None for guests.

    Raises:
        Unauthenticated: if the token is malformed or has no 'sub'.
    """
    if credentials is None:
        return None  # guest mode

    payload = decode_access_token(credentials.credentials)
    sub = payload.get("sub")
    if not sub:
        raise Unauthenticated("Token missing sub.")

    buyer_id = str(sub)
    bind_request_context(buyer_id=buyer_id)
    return buyer_id


def require_buyer(buyer_id: str | None) -> str:
    """
    Enforce authentication inside a service operation.

    Services receive the optional buyer id from get_current_buyer_id and
    call this first, so guests get the same Unauthenticated error kind
    whichever operation they hit.
    """
    if not buyer_id:
        raise Unauthenticated()
    return buyer_id
