"""Auth API — registration and login.

Learn: Both routes are public.
- POST /auth/register → create a user account (400 on duplicate email)
- POST /auth/login → email/password → signed access token

There is no logout or refresh route: tokens are stateless, so a client
logs out by discarding its token, and logs in again when it expires.
"""

import structlog
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow.auth.dependencies import get_token_issuer
from taskflow.auth.jwt import TokenIssuer
from taskflow.db.engine import get_db
from taskflow.errors import TaskflowError
from taskflow.schemas.user import LoginRequest, RegisterRequest, TokenResponse, UserRead
from taskflow.services.user_service import UserService

logger = structlog.get_logger()

router = APIRouter(prefix="/auth")


class InvalidCredentialsError(TaskflowError):
    status_code = 401
    detail = "Invalid credentials"


def _user_svc(request: Request, db: AsyncSession = Depends(get_db)) -> UserService:
    return UserService(db, bcrypt_rounds=request.app.state.settings.bcrypt_rounds)


# ─── Register ────────────────────────────────────────────


@router.post("/register", response_model=UserRead, status_code=201)
async def register(body: RegisterRequest, svc: UserService = Depends(_user_svc)):
    """Create a new user account."""
    user = await svc.create_user(
        name=body.name,
        email=body.email,
        password=body.password,
    )
    logger.info("taskflow.user.registered", user_id=str(user.id))
    return user


# ─── Login ───────────────────────────────────────────────


@router.post("/login", response_model=TokenResponse)
async def login(
    body: LoginRequest,
    svc: UserService = Depends(_user_svc),
    tokens: TokenIssuer = Depends(get_token_issuer),
):
    """Login with email and password → access token."""
    user = await svc.authenticate(body.email, body.password)
    if user is None:
        logger.info("taskflow.auth.login_failed")
        raise InvalidCredentialsError()

    return TokenResponse(
        token=tokens.issue(str(user.id)),
        expires_in=tokens.expires_in,
        user=UserRead.model_validate(user),
    )
