"""
Onboarding router

Staff endpoints issue invites and links; the /public endpoints are reached
from emailed links without a login and are rate limited per IP.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session

from ...auth import require_staff
from ...database import get_db
from ...models import User
from ...rate_limiter import create_rate_limiter
from .schemas import (
    OnboardingLinkResponse,
    OnboardingSubmission,
    RegistrationInviteCreate,
    RegistrationInviteResponse,
    RegistrationReview,
    RegistrationSubmission,
    ResendLinkRequest,
    VendorOnboardingSubmission,
)
from .service import OnboardingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/onboarding", tags=["Onboarding"])

public_token_limit = create_rate_limiter(limit=30, window_seconds=60, key_prefix="onboarding_token")
resend_link_limit = create_rate_limiter(limit=5, window_seconds=3600, key_prefix="onboarding_resend")


def get_onboarding_service(db: Session = Depends(get_db)) -> OnboardingService:
    return OnboardingService(db)


# ============================================================================
# STAFF
# ============================================================================


@router.post("/registration-invites", response_model=OnboardingLinkResponse)
async def create_registration_invite(
    data: RegistrationInviteCreate,
    current_user: User = Depends(require_staff),
    service: OnboardingService = Depends(get_onboarding_service),
):
    return await service.create_registration_invite(data, current_user)


@router.get("/registration-invites", response_model=list[RegistrationInviteResponse])
async def list_registration_invites(
    status: Optional[str] = Query(None),
    current_user: User = Depends(require_staff),
    service: OnboardingService = Depends(get_onboarding_service),
):
    return service.list_registration_invites(status)


@router.delete("/registration-invites/{invite_id}")
async def revoke_registration_invite(
    invite_id: int,
    current_user: User = Depends(require_staff),
    service: OnboardingService = Depends(get_onboarding_service),
):
    return service.revoke_registration_invite(invite_id, current_user)


@router.post("/registrations/{personnel_id}/review")
async def review_registration(
    personnel_id: int,
    data: RegistrationReview,
    current_user: User = Depends(require_staff),
    service: OnboardingService = Depends(get_onboarding_service),
):
    return await service.review_registration(personnel_id, data.action, data.reason, current_user)


@router.post("/personnel/{personnel_id}/link", response_model=OnboardingLinkResponse)
async def issue_onboarding_link(
    personnel_id: int,
    current_user: User = Depends(require_staff),
    service: OnboardingService = Depends(get_onboarding_service),
):
    return await service.issue_onboarding_link(personnel_id, current_user)


@router.post("/vendors/{vendor_id}/invite", response_model=OnboardingLinkResponse)
async def invite_vendor(
    vendor_id: int,
    email: Optional[str] = Body(None, embed=True),
    current_user: User = Depends(require_staff),
    service: OnboardingService = Depends(get_onboarding_service),
):
    return await service.invite_vendor(vendor_id, current_user, email)


# ============================================================================
# PUBLIC (token links)
# ============================================================================


@router.get("/public/registration/{token}", dependencies=[Depends(public_token_limit)])
async def get_registration(
    token: str, service: OnboardingService = Depends(get_onboarding_service)
):
    return service.get_registration(token)


@router.post("/public/registration/{token}", dependencies=[Depends(public_token_limit)])
async def submit_registration(
    token: str,
    data: RegistrationSubmission,
    service: OnboardingService = Depends(get_onboarding_service),
):
    return service.submit_registration(token, data)


@router.get("/public/personnel/{token}", dependencies=[Depends(public_token_limit)])
async def get_onboarding(token: str, service: OnboardingService = Depends(get_onboarding_service)):
    return service.get_onboarding(token)


@router.post("/public/personnel/{token}", dependencies=[Depends(public_token_limit)])
async def submit_onboarding(
    token: str,
    data: OnboardingSubmission,
    service: OnboardingService = Depends(get_onboarding_service),
):
    return service.submit_onboarding(token, data)


@router.post("/public/resend-link", dependencies=[Depends(resend_link_limit)])
async def resend_onboarding_link(
    data: ResendLinkRequest, service: OnboardingService = Depends(get_onboarding_service)
):
    """Email a fresh onboarding link. The response never reveals whether the email exists."""
    return await service.resend_onboarding_link(data.email)


@router.get("/public/vendor/{token}", dependencies=[Depends(public_token_limit)])
async def get_vendor_onboarding(
    token: str, service: OnboardingService = Depends(get_onboarding_service)
):
    return service.get_vendor_onboarding(token)


@router.post("/public/vendor/{token}", dependencies=[Depends(public_token_limit)])
async def submit_vendor_onboarding(
    token: str,
    data: VendorOnboardingSubmission,
    service: OnboardingService = Depends(get_onboarding_service),
):
    return service.submit_vendor_onboarding(token, data)
