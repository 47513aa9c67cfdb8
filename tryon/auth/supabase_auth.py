"""Supabase JWT validation dependency for FastAPI."""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException

from tryon.services import Services, get_services

logger = logging.getLogger(__name__)


@dataclass
class AuthUser:
    id: str
    email: Optional[str] = None


async def verify_jwt(
    authorization: str = Header(None),
    services: Services = Depends(get_services),
) -> AuthUser:
    """Validate Supabase JWT from Authorization header.

    Returns the authenticated user.
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing or invalid token")
    if services.auth_client is None:
        raise HTTPException(status_code=503, detail="Authentication not configured")

    token = authorization.replace("Bearer ", "")
    try:
        user_response = await services.auth_client.auth.get_user(token)
        user = user_response.user
    except Exception as exc:
        logger.info("Token rejected: %s", exc)
        raise HTTPException(status_code=401, detail="Invalid token")
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid token")
    return AuthUser(id=user.id, email=user.email)
