"""Caller identity for authenticated endpoints.

Tokens are issued by the external identity provider; this module only
asks the provider who a bearer token belongs to.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import httpx
from fastapi import Header, HTTPException

from chronyx_tax.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CurrentUser:
    id: str
    email: Optional[str] = None


def _bearer_token(authorization: Optional[str]) -> str:
    if not authorization:
        raise HTTPException(status_code=401, detail="Missing authorization header")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(status_code=401, detail="Invalid authorization header")
    return token.strip()


async def fetch_user(token: str) -> CurrentUser:
    """Resolve *token* with the identity provider; 401 on any failure."""
    headers = {"Authorization": f"Bearer {token}"}
    if settings.AUTH_API_KEY:
        headers["apikey"] = settings.AUTH_API_KEY

    try:
        async with httpx.AsyncClient(timeout=settings.AUTH_TIMEOUT_SECONDS) as client:
            resp = await client.get(settings.AUTH_USER_URL, headers=headers)
    except httpx.HTTPError as exc:
        logger.warning("Identity provider unreachable: %s", exc)
        raise HTTPException(status_code=401, detail="Invalid token") from exc

    if resp.status_code != 200:
        logger.info("Token rejected by identity provider (status %s)", resp.status_code)
        raise HTTPException(status_code=401, detail="Invalid token")

    try:
        data = resp.json()
    except ValueError as exc:
        raise HTTPException(status_code=401, detail="Invalid token") from exc
    user_id = data.get("id") if isinstance(data, dict) else None
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid token")
    return CurrentUser(id=str(user_id), email=data.get("email"))


async def get_current_user(
    authorization: Optional[str] = Header(default=None),
) -> CurrentUser:
    """FastAPI dependency: the authenticated caller."""
    return await fetch_user(_bearer_token(authorization))
