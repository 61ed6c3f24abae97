from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
import logging

from database.base import get_db
from modules.auth.schemas import (
    LoginRequest,
    TokenResponse,
    RefreshRequest,
    LogoutRequest,
    UserProfile,
    ChangePasswordRequest,
)
from modules.auth.service import AuthService
from modules.users.models import User
from shared.dependencies import get_current_user
from shared.schemas import SuccessResponse
from config.settings import settings

logger = logging.getLogger(__name__)

router = APIRouter()


def _token_response(user: User, access_token: str, refresh_token: str) -> TokenResponse:
    return TokenResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        token_type="bearer",
        expires_in=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        user=UserProfile.model_validate(user)
    )


@router.post("/login", response_model=TokenResponse)
def login(request: LoginRequest, db: Session = Depends(get_db)):
    """
    Login with email and password.

    Returns:
    - access_token: Short-lived token for API requests
    - refresh_token: Long-lived token to get new access tokens
    - user: User profile information
    """
    user, access_token, refresh_token = AuthService(db).login(request)
    return _token_response(user, access_token, refresh_token)


@router.post("/refresh", response_model=TokenResponse)
def refresh_token(request: RefreshRequest, db: Session = Depends(get_db)):
    """
    Exchange a refresh token for a new token pair.

    The presented refresh token is revoked and cannot be used again.
    """
    user, access_token, new_refresh_token = AuthService(db).refresh(request.refresh_token)
    return _token_response(user, access_token, new_refresh_token)


@router.post("/logout", response_model=SuccessResponse)
def logout(
    request: LogoutRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    AuthService(db).logout(current_user, request.refresh_token)
    return SuccessResponse(message="Logged out successfully")


@router.get("/me", response_model=UserProfile)
def get_current_user_profile(current_user: User = Depends(get_current_user)):
    """
    Get current authenticated user's profile.

    Requires: Bearer token in Authorization header
    """
    return current_user


@router.post("/change-password", response_model=SuccessResponse, status_code=status.HTTP_200_OK)
def change_password(
    request: ChangePasswordRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    AuthService(db).change_password(current_user, request.current_password, request.new_password)
    return SuccessResponse(message="Password changed successfully")
