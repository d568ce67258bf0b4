"""
Authentication helpers for verifying Supabase JWTs and resolving the current Profile.
"""

from __future__ import annotations

import logging
from typing import Dict, Any

from fastapi import Depends, HTTPException, Request, status
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from sayso.core.config import settings
from sayso.database import get_db
from sayso.models import Profile
from sayso.core.profile_helpers import get_or_create_profile_by_auth_id

logger = logging.getLogger(__name__)


def _unauthorized(detail: str = "Not authenticated") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _extract_bearer_token(request: Request) -> str:
    """
    Extract 'Bearer <token>' from Authorization header.
    """
    auth = request.headers.get("Authorization")
    if not auth:
        raise _unauthorized("Missing Authorization header")

    parts = auth.split()
    if len(parts) != 2:
        raise _unauthorized("Invalid Authorization header format. Expected 'Bearer <token>'")

    scheme, token = parts
    if scheme.lower() != "bearer":
        raise _unauthorized("Invalid auth scheme. Expected 'Bearer'")

    return token


def _decode_supabase_jwt(token: str) -> Dict[str, Any]:
    """
    Decode and validate Supabase access token.

    Assumes HS256 using SUPABASE_JWT_SECRET (common for Supabase projects).
    Validates issuer and audience.
    """
    try:
        settings.require_supabase()
    except RuntimeError as e:
        logger.error(f"Supabase configuration missing: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Supabase environment variables not configured. Authentication is not available.",
        )

    try:
        return jwt.decode(
            token,
            settings.SUPABASE_JWT_SECRET,
            algorithms=["HS256"],
            audience=settings.SUPABASE_JWT_AUD,
            issuer=settings.SUPABASE_JWT_ISS,
        )
    except JWTError as e:
        logger.warning(f"JWT validation failed: {e}")
        raise _unauthorized("Token validation failed")


def get_current_profile(
    request: Request,
    db: Session = Depends(get_db),
) -> Profile:
    """
    FastAPI dependency: returns the current authenticated Profile (SQLAlchemy object).

    - Reads Authorization: Bearer <token>
    - Verifies JWT
    - Extracts sub (Supabase user id) and email
    - Upserts into the local profiles table via get_or_create_profile_by_auth_id()
    """
    token = _extract_bearer_token(request)
    payload = _decode_supabase_jwt(token)

    auth_user_id = payload.get("sub")
    if not auth_user_id:
        raise _unauthorized("Token missing subject (sub)")

    return get_or_create_profile_by_auth_id(
        db=db,
        auth_user_id=str(auth_user_id),
        email=str(payload.get("email") or ""),
        endpoint_path=f"{request.method} {request.url.path}",
    )
