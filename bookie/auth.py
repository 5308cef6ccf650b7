"""
API key authentication for the bookie's own devices.

Each phone or helper gets its own key (API_KEY_USER1..5).  Destructive
operations (clear-all, backup restore) are limited to the admin users,
``user1`` unless ADMIN_USERS lists others (comma separated).
"""

from fastapi import Security, HTTPException, status
from fastapi.security import APIKeyHeader
import os
from typing import Dict, FrozenSet
from dotenv import load_dotenv

load_dotenv()

API_KEY_HEADER = APIKeyHeader(name="X-API-Key", auto_error=False)

MAX_USERS = 5
DEV_API_KEY = "dev-key-insecure"


def get_valid_api_keys() -> Dict[str, str]:
    """Map of API key -> user name, loaded from the environment"""
    keys = {}
    for i in range(1, MAX_USERS + 1):
        key = os.getenv(f"API_KEY_USER{i}")
        if key:
            keys[key] = f"user{i}"

    if not keys:
        # Development fallback (never use in production)
        if os.getenv("ENVIRONMENT") == "development":
            keys[DEV_API_KEY] = "dev_user"
        else:
            raise ValueError("No API keys configured! Set API_KEY_USER1 in environment")

    return keys


def get_admin_users() -> FrozenSet[str]:
    raw = os.getenv("ADMIN_USERS", "user1")
    return frozenset(u.strip() for u in raw.split(",") if u.strip())


VALID_API_KEYS = get_valid_api_keys()
ADMIN_USERS = get_admin_users()


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "ApiKey"},
    )


async def verify_api_key(api_key: str = Security(API_KEY_HEADER)) -> str:
    """
    Verify API key and return the user name

    Usage in FastAPI routes:
        @app.get("/api/summary")
        async def summary(user: str = Depends(verify_api_key)):
            ...
    """
    if not api_key:
        raise _unauthorized("API key required. Include 'X-API-Key' header.")
    user = VALID_API_KEYS.get(api_key)
    if user is None:
        raise _unauthorized("Invalid API key")
    return user


async def verify_admin_api_key(user: str = Security(verify_api_key)) -> str:
    """Admin-only routes: clearing the ledger, restoring a backup"""
    if user not in ADMIN_USERS:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return user
