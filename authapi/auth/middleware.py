"""
Authorization gate for protected routes.

The gate is the single trust boundary of the service: it extracts the bearer
token from an Authorization header, verifies it with the TokenCodec and
yields the caller's identity. Callers see only two failure modes, "no token"
and "forbidden"; the precise reason a token was refused is written to the
audit log and nowhere else.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from authapi.auth.jwt import Claims, TokenCodec, TokenError
from authapi.base_service import BaseService

BEARER_SCHEME = "bearer"


class AuthErrorKind(str, Enum):
    NO_TOKEN = "no_token"
    FORBIDDEN = "forbidden"


class AuthError(Exception):
    """
    A request failed authorization.

    Attributes:
        kind: NO_TOKEN (respond 401) or FORBIDDEN (respond 403)
        reason: Internal detail for the audit log; never sent to clients
    """

    def __init__(self, kind: AuthErrorKind, reason: str = ""):
        self.kind = kind
        self.reason = reason
        super().__init__(kind.value)

    @property
    def status_code(self) -> int:
        return 401 if self.kind is AuthErrorKind.NO_TOKEN else 403


@dataclass(frozen=True)
class Identity:
    """The authenticated caller."""
    username: str
    claims: Claims

    def to_dict(self) -> Dict[str, Any]:
        return self.claims.to_dict()


def extract_bearer_token(raw_header: Optional[str]) -> Optional[str]:
    """
    Return the token from a "Bearer <token>" header, or None if the header is
    absent or has any other shape.
    """
    if not raw_header:
        return None
    parts = raw_header.strip().split()
    if len(parts) != 2 or parts[0].lower() != BEARER_SCHEME:
        return None
    return parts[1]


class AuthorizationGate:
    """
    Verifies bearer tokens and audits every decision.

    Args:
        codec: Verifier for access tokens
        audit: Structured logger receiving one record per call
    """

    def __init__(self, codec: TokenCodec, audit: Optional[BaseService] = None):
        self.codec = codec
        self.audit = audit or BaseService()

    def authorize(
        self,
        raw_header: Optional[str],
        *,
        endpoint: Optional[str] = None,
        client: Optional[str] = None,
        user_agent: Optional[str] = None,
        action: str = "access",
    ) -> Identity:
        """
        Authorize a request from its Authorization header.

        Args:
            raw_header: Value of the Authorization header, if any
            endpoint: Path being accessed, for the audit record
            client: Client address, for the audit record
            user_agent: Client user agent, for the audit record
            action: Audit action name recorded on success

        Returns:
            Identity of the token holder

        Raises:
            AuthError: NO_TOKEN if no bearer token was presented, FORBIDDEN if
                the token is malformed, forged, tampered with or expired
        """
        details = {"endpoint": endpoint, "ip": client, "userAgent": user_agent}

        token = extract_bearer_token(raw_header)
        if token is None:
            self.audit.log_security("No token provided", details)
            raise AuthError(AuthErrorKind.NO_TOKEN, "missing or malformed Authorization header")

        try:
            claims = self.codec.verify(token)
        except TokenError as e:
            self.audit.log_security("Invalid token", {**details, "error": e.kind.value})
            raise AuthError(AuthErrorKind.FORBIDDEN, e.kind.value) from e

        self.audit.log_auth(claims.username, action, client, success=True)
        return Identity(username=claims.username, claims=claims)
