from fastapi import APIRouter, Depends, status
from fastapi.responses import Response
from sqlalchemy.orm import Session
from typing import Optional

from config.settings import settings
from database.base import get_db
from modules.members.service import MemberService
from modules.members.models import MemberStatus
from modules.members.schemas import MemberCreate, MemberUpdate, MemberResponse, MemberQrTokenResponse
from modules.users.models import User
from shared.dependencies import get_staff_user, get_club_admin, get_member_user
from shared.schemas import PaginatedResponse

router = APIRouter()


@router.post("", response_model=MemberResponse, status_code=status.HTTP_201_CREATED)
def create_member(
    data: MemberCreate,
    current_user: User = Depends(get_staff_user),
    db: Session = Depends(get_db)
):
    """
    Register a new member.

    - Email must be unique within the club
    - An optional referral_code credits the referring member once the new member subscribes
    """
    return MemberService(db).create_member(current_user.tenant_id, data)


@router.get("", response_model=PaginatedResponse[MemberResponse])
def search_members(
    q: Optional[str] = None,
    status: Optional[MemberStatus] = None,
    page: int = 1,
    per_page: int = 20,
    current_user: User = Depends(get_staff_user),
    db: Session = Depends(get_db)
):
    return MemberService(db).search_members(current_user.tenant_id, q, status, page, per_page)


@router.get("/me", response_model=MemberResponse)
def get_my_member_profile(
    current_user: User = Depends(get_member_user),
    db: Session = Depends(get_db)
):
    return MemberService(db).get_member(current_user.tenant_id, current_user.member_id)


@router.get("/me/qr", response_model=MemberQrTokenResponse)
def get_my_qr_token(
    current_user: User = Depends(get_member_user),
    db: Session = Depends(get_db)
):
    token = MemberService(db).get_qr_token(current_user.tenant_id, current_user.member_id)
    return MemberQrTokenResponse(token=token, expires_in=settings.MEMBER_QR_TOKEN_EXPIRE_MINUTES * 60)


@router.get("/me/qr.png")
def get_my_qr_image(
    current_user: User = Depends(get_member_user),
    db: Session = Depends(get_db)
):
    png = MemberService(db).get_qr_png(current_user.tenant_id, current_user.member_id)
    return Response(content=png, media_type="image/png", headers={"Cache-Control": "no-store"})


@router.get("/{member_id}", response_model=MemberResponse)
def get_member(
    member_id: str,
    current_user: User = Depends(get_staff_user),
    db: Session = Depends(get_db)
):
    return MemberService(db).get_member(current_user.tenant_id, member_id)


@router.put("/{member_id}", response_model=MemberResponse)
def update_member(
    member_id: str,
    data: MemberUpdate,
    current_user: User = Depends(get_staff_user),
    db: Session = Depends(get_db)
):
    return MemberService(db).update_member(current_user.tenant_id, member_id, data)


@router.post("/{member_id}/suspend", response_model=MemberResponse)
def suspend_member(
    member_id: str,
    current_user: User = Depends(get_staff_user),
    db: Session = Depends(get_db)
):
    return MemberService(db).suspend_member(current_user.tenant_id, member_id)


@router.post("/{member_id}/activate", response_model=MemberResponse)
def activate_member(
    member_id: str,
    current_user: User = Depends(get_staff_user),
    db: Session = Depends(get_db)
):
    return MemberService(db).activate_member(current_user.tenant_id, member_id)


@router.delete("/{member_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_member(
    member_id: str,
    current_user: User = Depends(get_club_admin),
    db: Session = Depends(get_db)
):
    MemberService(db).delete_member(current_user.tenant_id, member_id)


@router.get("/{member_id}/qr.png")
def get_member_qr_image(
    member_id: str,
    current_user: User = Depends(get_staff_user),
    db: Session = Depends(get_db)
):
    """
    Printable check-in QR for the member. Expires with the underlying token.
    """
    png = MemberService(db).get_qr_png(current_user.tenant_id, member_id)
    return Response(content=png, media_type="image/png", headers={"Cache-Control": "no-store"})
