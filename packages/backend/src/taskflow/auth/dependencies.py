"""FastAPI auth dependencies — the authorization gate.

Learn: Protected routes declare Depends(get_current_user). Resolution
happens in two stages so a bad token is rejected before the store is
touched:

1. get_token_claims — bearer header present? signature valid? not expired?
2. get_current_user — does the subject still exist in the store?

Every failure raises AuthError with a tagged reason. The reason is logged;
the client only ever sees 401 "No token, authorization denied" or
"Token is not valid".
"""

from typing import Optional

import structlog
from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow.auth.jwt import TokenIssuer
from taskflow.db.engine import get_db
from taskflow.db.models import User
from taskflow.errors import AuthError, AuthFailure
from taskflow.services.user_service import UserService

logger = structlog.get_logger()


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Extract the token from an `Authorization: Bearer <token>` header."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip() or None


def decode_bearer(raw_token: Optional[str], tokens: TokenIssuer) -> dict:
    """Steps 1-3: presence, signature, expiry."""
    if not raw_token:
        raise AuthError(AuthFailure.MISSING_TOKEN)
    return tokens.decode(raw_token)


async def resolve_subject(claims: dict, users: UserService) -> User:
    """Step 4: the subject must still exist."""
    user = await users.find_by_id(claims["sub"])
    if user is None:
        raise AuthError(AuthFailure.UNKNOWN_SUBJECT)
    return user


async def authorize(
    raw_token: Optional[str],
    tokens: TokenIssuer,
    users: UserService,
) -> User:
    """Resolve a raw bearer token to a user, or raise AuthError."""
    claims = decode_bearer(raw_token, tokens)
    return await resolve_subject(claims, users)


def get_token_issuer(request: Request) -> TokenIssuer:
    return request.app.state.tokens


def _rejected(request: Request, exc: AuthError) -> AuthError:
    logger.info(
        "taskflow.auth.rejected",
        reason=exc.reason.value,
        path=request.url.path,
    )
    return exc


async def get_token_claims(
    request: Request,
    authorization: Optional[str] = Header(None),
    tokens: TokenIssuer = Depends(get_token_issuer),
) -> dict:
    try:
        return decode_bearer(bearer_token(authorization), tokens)
    except AuthError as e:
        raise _rejected(request, e)


async def get_current_user(
    request: Request,
    claims: dict = Depends(get_token_claims),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Authenticated user for this request (401 otherwise).

    The user is also left on request.state.user for the rest of the request.
    """
    try:
        user = await resolve_subject(claims, UserService(db))
    except AuthError as e:
        raise _rejected(request, e)
    request.state.user = user
    return user
