"""JWT token creation and verification.

Learn: JWT (JSON Web Token) provides stateless authentication. The token
carries the user id (sub), when it was issued (iat) and when it stops
being valid (exp), signed with the process secret.

Signature and expiry are both checked on every request. A token signed
with the right key but past exp is rejected the same as a forged one.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
import structlog

from taskflow.errors import AuthError, AuthFailure, ConfigurationError

logger = structlog.get_logger()

REQUIRED_CLAIMS = ["sub", "iat", "exp"]


class SigningKeyMissingError(ConfigurationError):
    """No signing secret configured — refuse to issue tokens.

    Maps to a plain 500 through the taskflow.errors handlers.
    """


class TokenIssuer:
    """Issues and decodes access tokens with one process-wide secret."""

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        ttl: timedelta = timedelta(days=7),
    ):
        self.secret = secret
        self.algorithm = algorithm
        self.ttl = ttl

    @property
    def expires_in(self) -> int:
        """Token lifetime in seconds."""
        return int(self.ttl.total_seconds())

    def issue(self, subject: str, now: Optional[datetime] = None) -> str:
        """Create a signed access token for a user id."""
        if not self.secret:
            logger.error("taskflow.auth.signing_key_missing")
            raise SigningKeyMissingError(
                "TASKFLOW_JWT_SECRET is not set; refusing to issue tokens"
            )
        issued_at = now or datetime.now(timezone.utc)
        payload = {
            "sub": str(subject),
            "iat": issued_at,
            "exp": issued_at + self.ttl,
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def decode(self, token: str) -> dict:
        """Verify and decode a token.

        Returns the payload dict on success.
        Raises AuthError(EXPIRED_TOKEN) or AuthError(INVALID_TOKEN).
        """
        if not self.secret:
            raise AuthError(AuthFailure.INVALID_TOKEN)
        try:
            return jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                options={"require": REQUIRED_CLAIMS},
            )
        except jwt.ExpiredSignatureError:
            raise AuthError(AuthFailure.EXPIRED_TOKEN)
        except jwt.InvalidTokenError:
            raise AuthError(AuthFailure.INVALID_TOKEN)
