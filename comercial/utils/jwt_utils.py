import os
import time
import logging
from typing import Optional, Dict, Any

import jwt

logger = logging.getLogger(__name__)

ROLE_ADMIN = "admin"
ROLE_VENDOR = "vendor"


def _secret() -> str:
    return os.getenv("SECRET_KEY") or "dev-secret-change-me"


def create_access_token(subject: str, role: str = ROLE_VENDOR, ttl_seconds: int = 60 * 60 * 8) -> str:
    now = int(time.time())
    payload = {
        "sub": str(subject),
        "role": (role or ROLE_VENDOR).strip().lower(),
        "iat": now,
        "exp": now + ttl_seconds,
        "type": "access",
    }
    return jwt.encode(payload, _secret(), algorithm="HS256")


def decode_token(token: str) -> Optional[Dict[str, Any]]:
    try:
        return jwt.decode(token, _secret(), algorithms=["HS256"])
    except jwt.PyJWTError as e:
        logger.info("token_rejected err=%s", type(e).__name__)
        return None


def get_bearer_token(auth_header: str) -> Optional[str]:
    if not auth_header:
        return None
    parts = auth_header.split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1]
    return None
