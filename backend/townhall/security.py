from __future__ import annotations
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from townhall.config import settings

# Access tokens are issued by the hosted auth service; we only verify them.


def decode_token(token: str) -> dict[str, Any]:
    return jwt.decode(
        token,
        settings.jwt_secret,
        algorithms=[settings.jwt_algorithm],
        audience=settings.jwt_audience,
    )


def make_access_token(sub: str, email: str | None = None, ttl_min: int = 60) -> str:
    """Token shaped like the auth service's; used by local tooling and tests."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": sub,
        "aud": settings.jwt_audience,
        "role": "authenticated",
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=ttl_min)).timestamp()),
    }
    if email:
        payload["email"] = email
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)
