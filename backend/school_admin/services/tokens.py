"""
School Admin Backend — Long Token Service
===========================================

What:  Issues and verifies the long-lived bearer token returned by login.
How:   PyJWT, HS256, secret from LONG_TOKEN_SECRET.

Payload:
    {"user_id": "...", "role": "superadmin" | "schooladmin", "school_id": "..." | null,
     "iat": <issued>, "exp": <issued + LONG_TOKEN_TTL_DAYS>}
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Mapping, Optional

import jwt

from school_admin.config import Settings
from school_admin.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"


class TokenService:
    def __init__(self, settings: Settings):
        self.secret = settings.long_token_secret
        self.ttl = timedelta(days=settings.long_token_ttl_days)

    def sign_long_token(self, payload: Mapping[str, Any], ttl: Optional[timedelta] = None) -> str:
        """
        Raises:
            ConfigurationError: LONG_TOKEN_SECRET is not set
        """
        if not self.secret:
            raise ConfigurationError("LONG_TOKEN_SECRET not set")
        now = datetime.now(timezone.utc)
        claims = dict(payload)
        claims.update({
            "iat": int(now.timestamp()),
            "exp": int((now + (ttl or self.ttl)).timestamp()),
        })
        return jwt.encode(claims, self.secret, algorithm=ALGORITHM)

    def verify_long_token(self, token: Optional[str]) -> Optional[Dict[str, Any]]:
        """Decoded payload, or None for a missing, expired or forged token."""
        if not token or not self.secret:
            return None
        try:
            return jwt.decode(token, self.secret, algorithms=[ALGORITHM])
        except jwt.ExpiredSignatureError:
            logger.info("Long token expired")
            return None
        except jwt.InvalidTokenError as e:
            logger.info("Invalid long token: %s", e)
            return None
