from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List, Optional

from database.base import get_db
from modules.memberships.service import MembershipService
from modules.memberships.schemas import (
    MembershipPlanCreate,
    MembershipPlanUpdate,
    MembershipPlanResponse,
    SubscriptionCreate,
    SubscriptionResponse,
    SubscriptionCheckoutResponse,
)
from modules.users.models import User
from shared.dependencies import get_current_user, get_club_admin, get_staff_user, get_member_user
from shared.exceptions import NotFoundException
from shared.schemas import PaginatedResponse

# Mounted at /plans
router = APIRouter()

# Mounted at /subscriptions
subscriptions_router = APIRouter()


# ============ Plans ============

@router.post("", response_model=MembershipPlanResponse, status_code=status.HTTP_201_CREATED)
def create_plan(
    data: MembershipPlanCreate,
    current_user: User = Depends(get_club_admin),
    db: Session = Depends(get_db)
):
    return MembershipService(db).create_plan(current_user.tenant_id, data)


@router.get("", response_model=List[MembershipPlanResponse])
def list_plans(
    active_only: bool = False,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return MembershipService(db).list_plans(current_user.tenant_id, active_only)


@router.get("/{plan_id}", response_model=MembershipPlanResponse)
def get_plan(
    plan_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return MembershipService(db).get_plan(current_user.tenant_id, plan_id)


@router.put("/{plan_id}", response_model=MembershipPlanResponse)
def update_plan(
    plan_id: str,
    data: MembershipPlanUpdate,
    current_user: User = Depends(get_club_admin),
    db: Session = Depends(get_db)
):
    return MembershipService(db).update_plan(current_user.tenant_id, plan_id, data)


@router.post("/{plan_id}/deactivate", response_model=MembershipPlanResponse)
def deactivate_plan(
    plan_id: str,
    current_user: User = Depends(get_club_admin),
    db: Session = Depends(get_db)
):
    return MembershipService(db).deactivate_plan(current_user.tenant_id, plan_id)


@router.delete("/{plan_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_plan(
    plan_id: str,
    current_user: User = Depends(get_club_admin),
    db: Session = Depends(get_db)
):
    MembershipService(db).delete_plan(current_user.tenant_id, plan_id)


# ============ Subscriptions ============

@subscriptions_router.post("", response_model=SubscriptionCheckoutResponse, status_code=status.HTTP_201_CREATED)
def subscribe(
    data: SubscriptionCreate,
    current_user: User = Depends(get_staff_user),
    db: Session = Depends(get_db)
):
    """
    Subscribe a member to a plan. Paid plans return the invoice to settle before the subscription activates.
    """
    return MembershipService(db).subscribe(current_user.tenant_id, data)


@subscriptions_router.get("/me", response_model=SubscriptionResponse)
def get_my_subscription(
    current_user: User = Depends(get_member_user),
    db: Session = Depends(get_db)
):
    subscription = MembershipService(db).get_active_subscription(current_user.tenant_id, current_user.member_id)
    if not subscription:
        raise NotFoundException("No active subscription")
    return subscription


@subscriptions_router.get("/members/{member_id}", response_model=PaginatedResponse[SubscriptionResponse])
def list_member_subscriptions(
    member_id: str,
    page: int = 1,
    per_page: int = 20,
    current_user: User = Depends(get_staff_user),
    db: Session = Depends(get_db)
):
    return MembershipService(db).list_member_subscriptions(current_user.tenant_id, member_id, page, per_page)


@subscriptions_router.get("/members/{member_id}/active", response_model=Optional[SubscriptionResponse])
def get_member_active_subscription(
    member_id: str,
    current_user: User = Depends(get_staff_user),
    db: Session = Depends(get_db)
):
    return MembershipService(db).get_active_subscription(current_user.tenant_id, member_id)


@subscriptions_router.get("/{subscription_id}", response_model=SubscriptionResponse)
def get_subscription(
    subscription_id: str,
    current_user: User = Depends(get_staff_user),
    db: Session = Depends(get_db)
):
    return MembershipService(db).get_subscription(current_user.tenant_id, subscription_id)


@subscriptions_router.post("/{subscription_id}/freeze", response_model=SubscriptionResponse)
def freeze_subscription(
    subscription_id: str,
    current_user: User = Depends(get_staff_user),
    db: Session = Depends(get_db)
):
    return MembershipService(db).freeze(current_user.tenant_id, subscription_id)


@subscriptions_router.post("/{subscription_id}/unfreeze", response_model=SubscriptionResponse)
def unfreeze_subscription(
    subscription_id: str,
    current_user: User = Depends(get_staff_user),
    db: Session = Depends(get_db)
):
    return MembershipService(db).unfreeze(current_user.tenant_id, subscription_id)


@subscriptions_router.post("/{subscription_id}/cancel", response_model=SubscriptionResponse)
def cancel_subscription(
    subscription_id: str,
    current_user: User = Depends(get_staff_user),
    db: Session = Depends(get_db)
):
    return MembershipService(db).cancel(current_user.tenant_id, subscription_id)


@subscriptions_router.post("/{subscription_id}/renew", response_model=SubscriptionCheckoutResponse)
def renew_subscription(
    subscription_id: str,
    current_user: User = Depends(get_staff_user),
    db: Session = Depends(get_db)
):
    return MembershipService(db).renew(current_user.tenant_id, subscription_id)
