# marketplace/auth.py
from typing import Optional

from fastapi import HTTPException
from jose import jwt, JWTError
from supabase import Client

from .config import Settings


def _fetch_user_id_from_supabase(token: str, sb: Optional[Client]) -> str:
    """Fallback: ask Supabase who this token belongs to."""
    if sb is None:
        raise HTTPException(status_code=401, detail="Token verification is not configured")
    try:
        u = sb.auth.get_user(token)
    except Exception as e:
        raise HTTPException(status_code=401, detail=f"Could not verify token with Supabase: {e}")
    if not u or not u.user:
        raise HTTPException(status_code=401, detail="Invalid token")
    return u.user.id


def verify_and_get_user_id(token: str, settings: Settings, sb: Optional[Client] = None) -> str:
    """
    Returns the Supabase auth user id (the JWT "sub") for an access token.
      - HS256 tokens are verified locally with SUPABASE_JWT_SECRET
      - anything else, or no secret configured, goes to Supabase /auth/v1/user
    """
    try:
        alg = jwt.get_unverified_header(token).get("alg", "")
    except JWTError:
        return _fetch_user_id_from_supabase(token, sb)

    if alg.upper() != "HS256" or not settings.supabase_jwt_secret:
        return _fetch_user_id_from_supabase(token, sb)

    try:
        claims = jwt.decode(
            token,
            settings.supabase_jwt_secret,
            algorithms=["HS256"],
            options={"verify_aud": False, "verify_iss": settings.jwt_issuer is not None},
            issuer=settings.jwt_issuer,
        )
    except JWTError as e:
        raise HTTPException(status_code=401, detail=f"Invalid token (HS256): {e}")
    sub = claims.get("sub")
    if not sub:
        raise HTTPException(status_code=401, detail="Token missing subject (sub)")
    return sub
