"""
JWT token handling for authentication.

This module provides functionality for:
- Issuing signed, time-bounded access tokens
- Verifying tokens and classifying why a token was rejected

Tokens are compact JWS strings signed with HMAC-SHA-256. The service keeps no
record of issued tokens, so a token stays valid until its exp claim passes.
"""
import logging
import time
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Any, Callable, Dict, Optional

import jwt

from authapi.config import TOKEN_TTL
from authapi.errors import ConfigurationError

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
REQUIRED_CLAIMS = ["username", "iat", "exp"]

# RFC 7518 section 3.2: HS256 keys should be at least as long as the hash output
MIN_SECRET_BYTES = 32

Clock = Callable[[], float]


class TokenErrorKind(str, Enum):
    MALFORMED = "malformed"
    TAMPERED_OR_FORGED = "tampered_or_forged"
    EXPIRED = "expired"


class TokenError(Exception):
    """A token failed verification."""

    def __init__(self, kind: TokenErrorKind, detail: str = ""):
        self.kind = kind
        self.detail = detail
        super().__init__(f"{kind.value}: {detail}" if detail else kind.value)


@dataclass(frozen=True)
class Claims:
    """Decoded token payload."""
    username: str
    issued_at: int
    expires_at: int

    def to_dict(self) -> Dict[str, Any]:
        return {"username": self.username, "iat": self.issued_at, "exp": self.expires_at}


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class TokenCodec:
    """
    Stateless signer and verifier for access tokens.

    Args:
        secret: Signing key known only to this service
        ttl: Default token lifetime
        clock: Returns the current time as epoch seconds; used for both
            issuance and expiry checks
    """

    def __init__(self, secret: str, ttl: timedelta = TOKEN_TTL, clock: Optional[Clock] = None):
        if not secret:
            raise ConfigurationError("Token signing secret is required")
        if len(secret.encode("utf-8")) < MIN_SECRET_BYTES:
            logger.warning(
                "JWT secret is shorter than %d bytes; use a longer random value", MIN_SECRET_BYTES
            )
        self._secret = secret
        self.ttl = ttl
        self._clock = clock or time.time

    def issue(self, subject: str, ttl: Optional[timedelta] = None) -> str:
        """
        Create a signed token for a user.

        Args:
            subject: Username the token is issued to
            ttl: Lifetime override, defaults to the codec TTL

        Returns:
            Encoded JWT string
        """
        if not subject:
            raise ValueError("Token subject must be a non-empty username")
        now = self._clock()
        lifetime = ttl if ttl is not None else self.ttl
        payload = {
            "username": subject,
            "iat": int(now),
            "exp": int(now + lifetime.total_seconds()),
        }
        return jwt.encode(payload, self._secret, algorithm=ALGORITHM)

    def verify(self, token: str) -> Claims:
        """
        Verify a token and return its claims.

        Args:
            token: Encoded JWT string

        Returns:
            Claims carried by the token

        Raises:
            TokenError: MALFORMED, TAMPERED_OR_FORGED or EXPIRED
        """
        if not isinstance(token, str) or token.count(".") != 2:
            raise TokenError(TokenErrorKind.MALFORMED, "not a compact JWS")

        try:
            header = jwt.get_unverified_header(token)
        except jwt.InvalidTokenError as e:
            raise TokenError(TokenErrorKind.MALFORMED, str(e)) from e
        if header.get("alg") != ALGORITHM:
            raise TokenError(
                TokenErrorKind.TAMPERED_OR_FORGED, f"unexpected alg {header.get('alg')!r}"
            )

        try:
            # Expiry is checked below against our own clock
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[ALGORITHM],
                options={
                    "verify_exp": False,
                    "verify_iat": False,
                    "verify_nbf": False,
                    "require": REQUIRED_CLAIMS,
                },
            )
        except jwt.InvalidSignatureError as e:
            raise TokenError(TokenErrorKind.TAMPERED_OR_FORGED, str(e)) from e
        except jwt.InvalidAlgorithmError as e:
            raise TokenError(TokenErrorKind.TAMPERED_OR_FORGED, str(e)) from e
        except jwt.DecodeError as e:
            # The header is a well-formed HS256 header, so an undecodable
            # payload or signature segment means the token was altered
            raise TokenError(TokenErrorKind.TAMPERED_OR_FORGED, str(e)) from e
        except jwt.InvalidTokenError as e:
            raise TokenError(TokenErrorKind.MALFORMED, str(e)) from e

        username = payload.get("username")
        issued_at = payload.get("iat")
        expires_at = payload.get("exp")
        if not isinstance(username, str) or not username:
            raise TokenError(TokenErrorKind.MALFORMED, "username claim must be a string")
        if not _is_int(issued_at) or not _is_int(expires_at):
            raise TokenError(TokenErrorKind.MALFORMED, "iat and exp must be integers")

        if expires_at <= self._clock():
            raise TokenError(TokenErrorKind.EXPIRED, "token has expired")

        return Claims(username=username, issued_at=issued_at, expires_at=expires_at)
