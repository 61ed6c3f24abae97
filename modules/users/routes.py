from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List

from database.base import get_db
from modules.auth.schemas import UserProfile, StaffUserCreate, MemberPortalAccessCreate
from modules.auth.service import AuthService
from modules.users.models import User, UserStatus
from shared.dependencies import get_club_admin, get_staff_user

router = APIRouter()


@router.post("", response_model=UserProfile, status_code=status.HTTP_201_CREATED)
def create_staff_user(
    data: StaffUserCreate,
    current_user: User = Depends(get_club_admin),
    db: Session = Depends(get_db)
):
    """
    Create a club admin, staff or trainer login for the caller's club.
    """
    return AuthService(db).create_staff_user(current_user.tenant_id, data)


@router.get("", response_model=List[UserProfile])
def list_club_users(
    current_user: User = Depends(get_club_admin),
    db: Session = Depends(get_db)
):
    return AuthService(db).list_club_users(current_user.tenant_id)


@router.post("/{user_id}/suspend", response_model=UserProfile)
def suspend_user(
    user_id: str,
    current_user: User = Depends(get_club_admin),
    db: Session = Depends(get_db)
):
    return AuthService(db).set_user_status(current_user.tenant_id, user_id, UserStatus.SUSPENDED)


@router.post("/{user_id}/activate", response_model=UserProfile)
def activate_user(
    user_id: str,
    current_user: User = Depends(get_club_admin),
    db: Session = Depends(get_db)
):
    return AuthService(db).set_user_status(current_user.tenant_id, user_id, UserStatus.ACTIVE)


@router.post("/members/{member_id}/portal-access", response_model=UserProfile, status_code=status.HTTP_201_CREATED)
def enable_member_portal_access(
    member_id: str,
    data: MemberPortalAccessCreate,
    current_user: User = Depends(get_staff_user),
    db: Session = Depends(get_db)
):
    """
    Let a member log in to the member portal with their email.
    """
    return AuthService(db).enable_portal_access(current_user.tenant_id, member_id, data)
