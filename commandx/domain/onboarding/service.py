"""
Onboarding service

Registration invites, personnel onboarding links and vendor onboarding links
all work the same way: a random token with an expiry is emailed as a link,
the public form looks the token up without a login, and submitting the form
uses the token up.
"""

import logging
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Optional

from fastapi import HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from ... import email_service
from ...config import (
    PERSONNEL_INVITE_EXPIRY_DAYS,
    PERSONNEL_ONBOARDING_EXPIRY_DAYS,
    SITE_URL,
    VENDOR_ONBOARDING_EXPIRY_DAYS,
)
from ...models import (
    EmergencyContact,
    Personnel,
    PersonnelCapability,
    PersonnelCertification,
    PersonnelLanguage,
    User,
    Vendor,
)
from ...models_onboarding import (
    PersonnelOnboardingToken,
    PersonnelRegistrationInvite,
    VendorOnboardingToken,
)
from ...services.audit_service import record_audit
from ...services.company_settings import company_name
from ...services.notification_service import create_admin_notification
from ..personnel.repository import PersonnelRepository
from .schemas import (
    PersonalDetails,
    RegistrationInviteCreate,
    RegistrationSubmission,
    VendorOnboardingSubmission,
)

logger = logging.getLogger(__name__)

RESEND_COOLDOWN = timedelta(hours=1)
REMINDER_WINDOW = timedelta(hours=24)

# Same answer whatever happened, so the endpoint can't be used to probe for emails
RESEND_GENERIC_RESPONSE = {
    "success": True,
    "message": "If an account exists for this email, a new onboarding link has been sent.",
}


def registration_link(token: str) -> str:
    return f"{SITE_URL}/register/{token}"


def onboarding_link(token: str) -> str:
    return f"{SITE_URL}/onboard/{token}"


def vendor_onboarding_link(token: str) -> str:
    return f"{SITE_URL}/vendor-onboarding/{token}"


def check_token(row, now: datetime, label: str):
    """404 unknown, 410 expired, 409 already used"""
    if row is None:
        raise HTTPException(status_code=404, detail=f"{label} not found")
    if row.used_at is not None or getattr(row, "status", "pending") != "pending":
        raise HTTPException(status_code=409, detail=f"{label} has already been used")
    if row.expires_at < now:
        raise HTTPException(status_code=410, detail=f"{label} has expired")
    return row


class OnboardingService:
    def __init__(self, db: Session):
        self.db = db
        self.personnel_repo = PersonnelRepository()

    # ------------------------------------------------------------------
    # Registration invites (people not in the system yet)
    # ------------------------------------------------------------------

    async def create_registration_invite(
        self, data: RegistrationInviteCreate, user: User, now: Optional[datetime] = None
    ) -> dict:
        now = now or datetime.utcnow()
        invite = PersonnelRegistrationInvite(
            email=data.email,
            first_name=data.first_name,
            last_name=data.last_name,
            status="pending",
            expires_at=now + timedelta(days=PERSONNEL_INVITE_EXPIRY_DAYS),
            invited_by=user.id,
        )
        self.db.add(invite)
        record_audit(self.db, user, "registration_invite", "personnel_registration_invite", None,
                     {"email": data.email})
        self.db.commit()
        self.db.refresh(invite)

        link = registration_link(invite.token)
        email_sent = await self._send(
            email_service.send_personnel_registration_invite,
            to=invite.email,
            first_name=invite.first_name,
            company_name=company_name(self.db),
            registration_url=link,
            expires_on=invite.expires_at.strftime("%B %d, %Y"),
        )
        logger.info(f"📨 Registration invite #{invite.id} created for {invite.email}")
        return {"success": True, "link": link, "expires_at": invite.expires_at, "email_sent": email_sent}

    def list_registration_invites(self, status: Optional[str] = None):
        query = self.db.query(PersonnelRegistrationInvite)
        if status:
            query = query.filter(PersonnelRegistrationInvite.status == status)
        return query.order_by(PersonnelRegistrationInvite.id.desc()).all()

    def revoke_registration_invite(self, invite_id: int, user: User) -> dict:
        invite = (
            self.db.query(PersonnelRegistrationInvite)
            .filter(PersonnelRegistrationInvite.id == invite_id)
            .first()
        )
        if not invite:
            raise HTTPException(status_code=404, detail="Invite not found")
        if invite.status != "pending":
            raise HTTPException(status_code=409, detail="Only pending invites can be revoked")
        invite.status = "revoked"
        record_audit(self.db, user, "revoke", "personnel_registration_invite", invite.id)
        self.db.commit()
        return {"success": True}

    def get_registration(self, token: str, now: Optional[datetime] = None) -> dict:
        invite = self._registration_invite(token, now)
        return {
            "email": invite.email,
            "first_name": invite.first_name,
            "last_name": invite.last_name,
            "expires_at": invite.expires_at,
            "company_name": company_name(self.db),
        }

    def submit_registration(
        self, token: str, data: RegistrationSubmission, now: Optional[datetime] = None
    ) -> dict:
        now = now or datetime.utcnow()
        invite = self._registration_invite(token, now)

        try:
            personnel = Personnel(
                first_name=data.first_name.strip(),
                last_name=data.last_name.strip(),
                email=invite.email,
                status="inactive",
                onboarding_status="pending_review",
            )
            self._apply_personal_details(personnel, data)
            self.db.add(personnel)
            self.db.flush()
            self.personnel_repo.assign_personnel_number(personnel)
            self._add_details(personnel.id, data)

            invite.status = "used"
            invite.used_at = now
            invite.personnel_id = personnel.id

            create_admin_notification(
                self.db,
                "personnel_registration",
                f"New registration: {personnel.full_name}",
                f"{personnel.full_name} ({personnel.email}) completed registration and is "
                f"waiting for review.",
                link=f"/personnel/{personnel.id}",
                entity_type="personnel",
                entity_id=personnel.id,
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"✅ Registration submitted for {personnel.email} (personnel #{personnel.id})")
        return {"success": True, "personnel_id": personnel.id}

    async def review_registration(
        self, personnel_id: int, action: str, reason: Optional[str], user: User
    ) -> dict:
        personnel = self.personnel_repo.get(self.db, personnel_id)
        if not personnel:
            raise HTTPException(status_code=404, detail="Personnel not found")
        if personnel.onboarding_status != "pending_review":
            raise HTTPException(status_code=409, detail="Registration already processed")

        if action == "reject":
            personnel.onboarding_status = "rejected"
            personnel.status = "inactive"
            create_admin_notification(
                self.db,
                "application_rejected",
                f"Application Rejected: {personnel.full_name}",
                f"Registration for {personnel.full_name} was rejected"
                + (f": {reason}" if reason else ""),
                entity_type="personnel",
                entity_id=personnel.id,
            )
            record_audit(self.db, user, "reject_registration", "personnel", personnel.id,
                         {"reason": reason})
            self.db.commit()
            return {"success": True, "action": "rejected"}

        personnel.status = "active"
        create_admin_notification(
            self.db,
            "application_approved",
            f"Application Approved: {personnel.full_name}",
            f"Registration for {personnel.full_name} has been approved.",
            link=f"/personnel/{personnel.id}",
            entity_type="personnel",
            entity_id=personnel.id,
        )
        record_audit(self.db, user, "approve_registration", "personnel", personnel.id)
        self.db.commit()

        # Approved workers get an onboarding link for the rest of their paperwork
        link_result = await self.issue_onboarding_link(personnel.id, user)
        return {"success": True, "action": "approved", "email_sent": link_result["email_sent"]}

    def _registration_invite(self, token: str, now: Optional[datetime]) -> PersonnelRegistrationInvite:
        invite = (
            self.db.query(PersonnelRegistrationInvite)
            .filter(PersonnelRegistrationInvite.token == token)
            .first()
        )
        return check_token(invite, now or datetime.utcnow(), "Registration invite")

    # ------------------------------------------------------------------
    # Personnel onboarding links
    # ------------------------------------------------------------------

    async def issue_onboarding_link(
        self, personnel_id: int, user: Optional[User], now: Optional[datetime] = None
    ) -> dict:
        now = now or datetime.utcnow()
        personnel = self.personnel_repo.get(self.db, personnel_id)
        if not personnel:
            raise HTTPException(status_code=404, detail="Personnel not found")
        if not personnel.email:
            raise HTTPException(status_code=400, detail="Personnel has no email address")

        token = self._create_onboarding_token(personnel, user, now)
        if personnel.onboarding_status in ("not_started", "pending_review"):
            personnel.onboarding_status = "invited"
        self.db.commit()

        link = onboarding_link(token.token)
        email_sent = await self._send(
            email_service.send_personnel_onboarding_link,
            to=personnel.email,
            first_name=personnel.first_name,
            company_name=company_name(self.db),
            onboarding_url=link,
        )
        return {"success": True, "link": link, "expires_at": token.expires_at, "email_sent": email_sent}

    async def resend_onboarding_link(self, email: str, now: Optional[datetime] = None) -> dict:
        """
        Public "email me my link again". Always answers with the same message;
        what actually happened is only visible to admins.
        """
        now = now or datetime.utcnow()
        normalized = (email or "").strip().lower()

        personnel = (
            self.db.query(Personnel)
            .filter(func.lower(Personnel.email) == normalized, Personnel.merged_into_id.is_(None))
            .first()
        )

        if not personnel:
            logger.info(f"ℹ️ Onboarding link requested for unknown email {normalized}")
            create_admin_notification(
                self.db,
                "onboarding_resend_failed",
                "Onboarding link requested for unknown email",
                f"Someone requested an onboarding link for {normalized}, which doesn't match "
                f"any personnel record.",
                extra_data={"email": normalized},
            )
            self.db.commit()
            return RESEND_GENERIC_RESPONSE

        if personnel.onboarding_status == "completed":
            create_admin_notification(
                self.db,
                "onboarding_resend_failed",
                f"Onboarding link requested: {personnel.full_name}",
                f"{personnel.full_name} requested a new onboarding link but has already "
                f"completed onboarding.",
                link=f"/personnel/{personnel.id}",
                entity_type="personnel",
                entity_id=personnel.id,
            )
            self.db.commit()
            return RESEND_GENERIC_RESPONSE

        recent = (
            self.db.query(PersonnelOnboardingToken.id)
            .filter(
                PersonnelOnboardingToken.personnel_id == personnel.id,
                PersonnelOnboardingToken.created_at > now - RESEND_COOLDOWN,
            )
            .first()
        )
        if recent:
            logger.info(f"⏳ Onboarding link for personnel #{personnel.id} issued within the last hour")
            return RESEND_GENERIC_RESPONSE

        token = self._create_onboarding_token(personnel, None, now)
        create_admin_notification(
            self.db,
            "onboarding_link_resent",
            f"Onboarding link resent: {personnel.full_name}",
            f"{personnel.full_name} requested a new onboarding link.",
            link=f"/personnel/{personnel.id}",
            entity_type="personnel",
            entity_id=personnel.id,
        )
        self.db.commit()

        await self._send(
            email_service.send_personnel_onboarding_link,
            to=personnel.email,
            first_name=personnel.first_name,
            company_name=company_name(self.db),
            onboarding_url=onboarding_link(token.token),
        )
        return RESEND_GENERIC_RESPONSE

    def get_onboarding(self, token: str, now: Optional[datetime] = None) -> dict:
        row = self._onboarding_token(token, now)
        personnel = self.personnel_repo.get(self.db, row.personnel_id)
        return {
            "personnel_id": personnel.id,
            "first_name": personnel.first_name,
            "last_name": personnel.last_name,
            "email": personnel.email,
            "phone": personnel.phone,
            "address": personnel.address,
            "city": personnel.city,
            "state": personnel.state,
            "zip": personnel.zip,
            "expires_at": row.expires_at,
        }

    def submit_onboarding(
        self, token: str, data: PersonalDetails, now: Optional[datetime] = None
    ) -> dict:
        now = now or datetime.utcnow()
        row = self._onboarding_token(token, now)
        personnel = self.personnel_repo.get(self.db, row.personnel_id)
        if not personnel:
            raise HTTPException(status_code=404, detail="Personnel not found")

        try:
            self._apply_personal_details(personnel, data)
            self._add_details(personnel.id, data)
            personnel.onboarding_status = "completed"
            row.used_at = now
            create_admin_notification(
                self.db,
                "onboarding_completed",
                f"Onboarding completed: {personnel.full_name}",
                f"{personnel.full_name} finished their onboarding paperwork.",
                link=f"/personnel/{personnel.id}",
                entity_type="personnel",
                entity_id=personnel.id,
            )
            record_audit(self.db, None, "onboarding_completed", "personnel", personnel.id)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return {"success": True, "personnel_id": personnel.id}

    def _create_onboarding_token(
        self, personnel: Personnel, user: Optional[User], now: datetime
    ) -> PersonnelOnboardingToken:
        token = PersonnelOnboardingToken(
            personnel_id=personnel.id,
            email=personnel.email,
            expires_at=now + timedelta(days=PERSONNEL_ONBOARDING_EXPIRY_DAYS),
            created_by=user.id if user else None,
            created_at=now,
        )
        self.db.add(token)
        self.db.flush()
        return token

    def _onboarding_token(self, token: str, now: Optional[datetime]) -> PersonnelOnboardingToken:
        row = (
            self.db.query(PersonnelOnboardingToken)
            .filter(PersonnelOnboardingToken.token == token)
            .first()
        )
        return check_token(row, now or datetime.utcnow(), "Onboarding link")

    # ------------------------------------------------------------------
    # Vendor onboarding
    # ------------------------------------------------------------------

    async def invite_vendor(
        self, vendor_id: int, user: User, email: Optional[str] = None, now: Optional[datetime] = None
    ) -> dict:
        now = now or datetime.utcnow()
        vendor = self.db.query(Vendor).filter(Vendor.id == vendor_id).first()
        if not vendor:
            raise HTTPException(status_code=404, detail="Vendor not found")
        to = email or vendor.email
        if not to:
            raise HTTPException(status_code=400, detail="Vendor has no email address")

        token = VendorOnboardingToken(
            vendor_id=vendor.id,
            email=to,
            expires_at=now + timedelta(days=VENDOR_ONBOARDING_EXPIRY_DAYS),
            created_by=user.id,
        )
        self.db.add(token)
        vendor.onboarding_status = "invited"
        record_audit(self.db, user, "vendor_onboarding_invite", "vendor", vendor.id, {"email": to})
        self.db.commit()
        self.db.refresh(token)

        link = vendor_onboarding_link(token.token)
        email_sent = await self._send(
            email_service.send_vendor_onboarding_invite,
            to=to,
            vendor_name=vendor.name,
            company_name=company_name(self.db),
            onboarding_url=link,
            expires_on=token.expires_at.strftime("%B %d, %Y"),
        )
        return {"success": True, "link": link, "expires_at": token.expires_at, "email_sent": email_sent}

    def get_vendor_onboarding(self, token: str, now: Optional[datetime] = None) -> dict:
        row = self._vendor_token(token, now)
        vendor = self.db.query(Vendor).filter(Vendor.id == row.vendor_id).first()
        return {
            "vendor_id": vendor.id,
            "name": vendor.name,
            "company": vendor.company,
            "email": vendor.email,
            "phone": vendor.phone,
            "expires_at": row.expires_at,
            "company_name": company_name(self.db),
        }

    def submit_vendor_onboarding(
        self, token: str, data: VendorOnboardingSubmission, now: Optional[datetime] = None
    ) -> dict:
        now = now or datetime.utcnow()
        row = self._vendor_token(token, now)
        vendor = self.db.query(Vendor).filter(Vendor.id == row.vendor_id).first()
        if not vendor:
            raise HTTPException(status_code=404, detail="Vendor not found")
        if not data.agree_to_terms:
            raise HTTPException(status_code=400, detail="The vendor agreement must be accepted")

        updates = data.model_dump(exclude_unset=True, exclude={"agree_to_terms"})
        for key, value in updates.items():
            if value is not None:
                setattr(vendor, key, value)
        vendor.agreement_signed_at = now
        vendor.onboarding_status = "submitted"
        row.used_at = now
        create_admin_notification(
            self.db,
            "vendor_onboarding_submitted",
            f"Vendor onboarding submitted: {vendor.name}",
            f"{vendor.name} completed the vendor onboarding form.",
            link=f"/vendors/{vendor.id}",
            entity_type="vendor",
            entity_id=vendor.id,
        )
        self.db.commit()
        return {"success": True, "vendor_id": vendor.id}

    def _vendor_token(self, token: str, now: Optional[datetime]) -> VendorOnboardingToken:
        row = (
            self.db.query(VendorOnboardingToken)
            .filter(VendorOnboardingToken.token == token)
            .first()
        )
        return check_token(row, now or datetime.utcnow(), "Vendor onboarding link")

    # ------------------------------------------------------------------
    # Reminders
    # ------------------------------------------------------------------

    async def send_expiring_invite_reminders(self, now: Optional[datetime] = None) -> dict:
        """Tell each inviter, once, about their invites that lapse within a day"""
        now = now or datetime.utcnow()
        invites = (
            self.db.query(PersonnelRegistrationInvite)
            .filter(
                PersonnelRegistrationInvite.status == "pending",
                PersonnelRegistrationInvite.expires_at > now,
                PersonnelRegistrationInvite.expires_at <= now + REMINDER_WINDOW,
                PersonnelRegistrationInvite.reminder_sent_at.is_(None),
                PersonnelRegistrationInvite.invited_by.isnot(None),
            )
            .all()
        )

        by_inviter: dict[int, list[PersonnelRegistrationInvite]] = defaultdict(list)
        for invite in invites:
            by_inviter[invite.invited_by].append(invite)

        reminders_sent = 0
        for inviter_id, group in by_inviter.items():
            inviter = self.db.query(User).filter(User.id == inviter_id).first()
            if not inviter or not inviter.email:
                continue
            sent = await self._send(
                email_service.send_invites_expiring_reminder,
                to=inviter.email,
                inviter_name=inviter.full_name or inviter.email,
                company_name=company_name(self.db),
                invites=[
                    {
                        "name": " ".join(filter(None, [i.first_name, i.last_name])),
                        "email": i.email,
                        "expires_at": i.expires_at.strftime("%b %d, %H:%M UTC"),
                    }
                    for i in group
                ],
            )
            if sent:
                for invite in group:
                    invite.reminder_sent_at = now
                self.db.commit()
                reminders_sent += 1

        return {"invites_expiring": len(invites), "reminders_sent": reminders_sent}

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _apply_personal_details(personnel: Personnel, data: PersonalDetails):
        fields = (
            "phone",
            "address",
            "city",
            "state",
            "zip",
            "date_of_birth",
            "ssn_last_four",
            "work_authorization_type",
            "work_auth_expiry",
        )
        for field in fields:
            value = getattr(data, field)
            if value is not None:
                setattr(personnel, field, value)

    def _add_details(self, personnel_id: int, data: PersonalDetails):
        for contact in data.emergency_contacts:
            self.db.add(
                EmergencyContact(
                    personnel_id=personnel_id,
                    name=contact.name,
                    relationship=contact.relationship,
                    phone=contact.phone,
                )
            )
        for cert in data.certifications:
            self.db.add(
                PersonnelCertification(
                    personnel_id=personnel_id, name=cert.name, expiry_date=cert.expiry_date
                )
            )
        for language in data.languages:
            self.db.add(PersonnelLanguage(personnel_id=personnel_id, language=language))
        for capability in data.capabilities:
            self.db.add(PersonnelCapability(personnel_id=personnel_id, capability=capability))

    @staticmethod
    async def _send(send_func, **kwargs) -> bool:
        try:
            await send_func(**kwargs)
            return True
        except email_service.EmailDeliveryError as e:
            logger.error(f"❌ Failed to send onboarding email to {kwargs.get('to')}: {e}")
            return False
