from datetime import timedelta
import hashlib
import logging
import secrets
from typing import Any, Dict, Optional
from uuid import UUID

import bcrypt
from jose import JWTError, jwt

from app.core.clock import utcnow
from app.core.config import Settings, settings

logger = logging.getLogger(__name__)

LONG = "long"
SHORT = "short"


def hash_password(plain_password: str) -> str:
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(plain_password.encode("utf-8"), salt)
    return hashed.decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # In case the stored hash is invalid/corrupted
        return False


def new_session_id() -> str:
    return secrets.token_urlsafe(16)


def device_fingerprint(device: Optional[str]) -> str:
    """Stable, non-reversible id for the calling device (user agent string)."""
    return hashlib.md5((device or "").encode("utf-8")).hexdigest()


class TokenIssuer:
    """
    Issues and verifies the two token kinds.

    The long token represents a user and carries only immutable identity (user_id, user_key).
    The short token represents one device session and carries the role/school_id used for
    every authorization decision. Short tokens are minted at login and from a long token.
    """

    def __init__(self, config: Settings) -> None:
        self._algorithm = config.jwt_algorithm
        self._secrets = {LONG: config.long_token_secret, SHORT: config.short_token_secret}
        self._ttl = {
            LONG: timedelta(days=config.long_token_expire_days),
            SHORT: timedelta(hours=config.short_token_expire_hours),
        }

    def _sign(self, claims: Dict[str, Any], kind: str) -> str:
        to_encode = claims.copy()
        issued_at = utcnow()
        to_encode.update({"iat": issued_at, "exp": issued_at + self._ttl[kind]})
        return jwt.encode(to_encode, self._secrets[kind], algorithm=self._algorithm)

    def issue_long_token(self, *, user_id: UUID, user_key: str) -> str:
        return self._sign({"user_id": str(user_id), "user_key": user_key}, LONG)

    def issue_short_token(
        self,
        *,
        user_id: UUID,
        user_key: str,
        session_id: str,
        device_id: Optional[str],
        role: str,
        school_id: Optional[UUID],
    ) -> str:
        claims = {
            "user_id": str(user_id),
            "user_key": user_key,
            "session_id": session_id,
            "device_id": device_id,
            "role": role,
            "school_id": str(school_id) if school_id else None,
        }
        return self._sign(claims, SHORT)

    def verify(self, token: str, kind: str) -> Optional[Dict[str, Any]]:
        """Decoded claims, or None for any malformed, expired or mis-signed token."""
        if not token or kind not in self._secrets:
            return None
        try:
            return jwt.decode(token, self._secrets[kind], algorithms=[self._algorithm])
        except JWTError as e:
            logger.warning("Rejected %s token: %s", kind, e)
            return None


def get_token_issuer() -> TokenIssuer:
    return TokenIssuer(settings)
