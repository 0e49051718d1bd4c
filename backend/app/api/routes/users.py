"""
User routes.
"""
from fastapi import APIRouter, Depends
from app.core.utils import format_response
from app.schemas.user import UserResponse
from app.models.user import User
from app.api.dependencies import get_current_user

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me")
async def get_current_user_info(
    current_user: User = Depends(get_current_user)
):
    """Get current user information."""
    return format_response(UserResponse.model_validate(current_user), "Retrieved user successfully")
