"""Session endpoint: turns an identity token into a platform account."""

from fastapi import APIRouter

from arena.api.deps import CurrentUser
from arena.schemas.common import UserProfileResponse

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post(
    "/session",
    response_model=UserProfileResponse,
    summary="Sync the signed-in identity",
)
async def create_session(current_user: CurrentUser) -> UserProfileResponse:
    """Create the account on first sign-in and return the profile."""
    return UserProfileResponse.model_validate(current_user)
