"""User API — the authenticated user's own profile."""

from fastapi import APIRouter, Depends

from taskflow.auth.dependencies import get_current_user
from taskflow.db.models import User
from taskflow.schemas.user import UserRead

router = APIRouter(prefix="/user")


@router.get("/profile", response_model=UserRead)
async def get_profile(user: User = Depends(get_current_user)):
    """Get the current authenticated user's info (never the password hash)."""
    return user
