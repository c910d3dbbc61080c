"""
QuickBooks OAuth and Sync Integration
Handles the company-wide OAuth connection and pushes customers and vendors to QuickBooks
"""

import base64
import hashlib
import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional
from urllib.parse import quote

import httpx
from cryptography.fernet import Fernet, InvalidToken
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..auth import require_admin, require_staff
from ..config import (
    QUICKBOOKS_CLIENT_ID,
    QUICKBOOKS_CLIENT_SECRET,
    QUICKBOOKS_ENVIRONMENT,
    QUICKBOOKS_REDIRECT_URI,
    SECRET_KEY,
)
from ..database import get_db
from ..models import Customer, User, Vendor
from ..models_quickbooks import QuickBooksIntegration, QuickBooksSyncLog

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/quickbooks", tags=["quickbooks"])

# QuickBooks API URLs
QUICKBOOKS_AUTH_URL = "https://appcenter.intuit.com/connect/oauth2"
QUICKBOOKS_TOKEN_URL = "https://oauth.platform.intuit.com/oauth2/v1/tokens/bearer"
QUICKBOOKS_REVOKE_URL = "https://developer.api.intuit.com/v2/oauth2/tokens/revoke"
if QUICKBOOKS_ENVIRONMENT == "production":
    QUICKBOOKS_API_BASE_URL = "https://quickbooks.api.intuit.com/v3"
else:
    QUICKBOOKS_API_BASE_URL = "https://sandbox-quickbooks.api.intuit.com/v3"

TOKEN_REFRESH_MARGIN = timedelta(minutes=5)

# Fernet needs a 32-byte urlsafe base64 key; derive it from SECRET_KEY
cipher_suite = Fernet(base64.urlsafe_b64encode(hashlib.sha256(SECRET_KEY.encode()).digest()))


# Pydantic Models
class QuickBooksStatusResponse(BaseModel):
    connected: bool
    realm_id: Optional[str] = None
    company_name: Optional[str] = None
    environment: Optional[str] = None
    sync_customers: Optional[bool] = None
    sync_vendors: Optional[bool] = None
    last_customer_sync: Optional[datetime] = None
    last_vendor_sync: Optional[datetime] = None


class QuickBooksSyncSettings(BaseModel):
    sync_customers: bool
    sync_vendors: bool


# Helper Functions
def encrypt_token(token: str) -> str:
    """Encrypt a token for storage"""
    return cipher_suite.encrypt(token.encode()).decode()


def decrypt_token(encrypted_token: str) -> str:
    """Decrypt a stored token"""
    return cipher_suite.decrypt(encrypted_token.encode()).decode()


def get_basic_auth_header() -> str:
    credentials = f"{QUICKBOOKS_CLIENT_ID}:{QUICKBOOKS_CLIENT_SECRET}"
    return base64.b64encode(credentials.encode()).decode()


def get_active_integration(db: Session) -> Optional[QuickBooksIntegration]:
    return (
        db.query(QuickBooksIntegration)
        .filter(QuickBooksIntegration.is_active.is_(True))
        .order_by(QuickBooksIntegration.id.desc())
        .first()
    )


async def post_token_request(data: dict) -> httpx.Response:
    async with httpx.AsyncClient() as client:
        return await client.post(
            QUICKBOOKS_TOKEN_URL,
            headers={
                "Accept": "application/json",
                "Content-Type": "application/x-www-form-urlencoded",
                "Authorization": f"Basic {get_basic_auth_header()}",
            },
            data=data,
            timeout=15.0,
        )


async def quickbooks_api(
    method: str, realm_id: str, path: str, access_token: str, json: Optional[dict] = None
) -> httpx.Response:
    async with httpx.AsyncClient() as client:
        return await client.request(
            method,
            f"{QUICKBOOKS_API_BASE_URL}/company/{realm_id}/{path}",
            headers={
                "Accept": "application/json",
                "Content-Type": "application/json",
                "Authorization": f"Bearer {access_token}",
            },
            json=json,
            timeout=15.0,
        )


async def refresh_access_token(
    integration: QuickBooksIntegration, db: Session, now: Optional[datetime] = None
) -> str:
    """Return a usable access token, refreshing it when it expires within 5 minutes"""
    now = now or datetime.utcnow()
    if integration.token_expires_at > now + TOKEN_REFRESH_MARGIN:
        return decrypt_token(integration.access_token)

    logger.info("🔄 Refreshing QuickBooks access token")
    try:
        response = await post_token_request(
            {"grant_type": "refresh_token", "refresh_token": decrypt_token(integration.refresh_token)}
        )
    except (httpx.HTTPError, InvalidToken) as e:
        logger.error(f"Token refresh error: {str(e)}")
        raise HTTPException(status_code=401, detail="Failed to refresh QuickBooks token") from e

    if response.status_code != 200:
        logger.error(f"Token refresh failed: {response.text}")
        raise HTTPException(status_code=401, detail="Failed to refresh QuickBooks token")

    token_data = response.json()
    integration.access_token = encrypt_token(token_data["access_token"])
    integration.refresh_token = encrypt_token(
        token_data.get("refresh_token") or decrypt_token(integration.refresh_token)
    )
    integration.token_expires_at = now + timedelta(seconds=token_data.get("expires_in", 3600))
    db.commit()
    return token_data["access_token"]


def build_customer_payload(customer: Customer) -> dict:
    payload = {"DisplayName": customer.name}
    if customer.company:
        payload["CompanyName"] = customer.company
    if customer.email:
        payload["PrimaryEmailAddr"] = {"Address": customer.email}
    if customer.phone:
        payload["PrimaryPhone"] = {"FreeFormNumber": customer.phone}
    if customer.address:
        payload["BillAddr"] = {
            "Line1": customer.address,
            "City": customer.city,
            "CountrySubDivisionCode": customer.state,
            "PostalCode": customer.zip,
        }
    return payload


def build_vendor_payload(vendor: Vendor) -> dict:
    payload = {"DisplayName": vendor.name}
    if vendor.company:
        payload["CompanyName"] = vendor.company
    if vendor.email:
        payload["PrimaryEmailAddr"] = {"Address": vendor.email}
    if vendor.phone:
        payload["PrimaryPhone"] = {"FreeFormNumber": vendor.phone}
    if vendor.tax_id:
        payload["TaxIdentifier"] = vendor.tax_id
    if vendor.address:
        payload["BillAddr"] = {
            "Line1": vendor.address,
            "City": vendor.city,
            "CountrySubDivisionCode": vendor.state,
            "PostalCode": vendor.zip,
        }
    return payload


async def push_entity(
    db: Session,
    integration: QuickBooksIntegration,
    user: Optional[User],
    entity_type: str,
    record,
    id_field: str,
    payload: dict,
) -> dict:
    """
    Create the record in QuickBooks, or sparse-update it when it already has a
    QuickBooks id. Every attempt is written to quickbooks_sync_logs.
    """
    qb_resource = "Customer" if entity_type == "customer" else "Vendor"
    resource_path = entity_type
    existing_id = getattr(record, id_field)
    action = "update" if existing_id else "create"
    access_token = await refresh_access_token(integration, db)

    def log(status: str, quickbooks_id=None, error=None):
        db.add(
            QuickBooksSyncLog(
                integration_id=integration.id,
                user_id=user.id if user else None,
                entity_type=entity_type,
                entity_id=record.id,
                action=action,
                quickbooks_id=quickbooks_id,
                status=status,
                error_message=error,
                sync_data={"payload": payload},
            )
        )

    try:
        if existing_id:
            current = await quickbooks_api(
                "GET", integration.realm_id, f"{resource_path}/{existing_id}", access_token
            )
            if current.status_code != 200:
                raise HTTPException(
                    status_code=502, detail=f"QuickBooks {entity_type} {existing_id} not found"
                )
            sync_token = current.json().get(qb_resource, {}).get("SyncToken", "0")
            payload = {**payload, "Id": existing_id, "SyncToken": sync_token, "sparse": True}

        response = await quickbooks_api(
            "POST", integration.realm_id, resource_path, access_token, json=payload
        )
        if response.status_code not in (200, 201):
            raise HTTPException(
                status_code=502, detail=f"Failed to sync {entity_type}: {response.text}"
            )
    except httpx.HTTPError as e:
        logger.error(f"QuickBooks {entity_type} sync error: {str(e)}")
        log("failed", existing_id, str(e))
        db.commit()
        raise HTTPException(status_code=502, detail=f"Failed to sync {entity_type}") from e
    except HTTPException as e:
        logger.error(f"QuickBooks {entity_type} sync failed: {e.detail}")
        log("failed", existing_id, str(e.detail))
        db.commit()
        raise

    quickbooks_id = response.json().get(qb_resource, {}).get("Id") or existing_id
    setattr(record, id_field, quickbooks_id)
    log("success", quickbooks_id)
    if entity_type == "customer":
        integration.last_customer_sync = datetime.utcnow()
    else:
        integration.last_vendor_sync = datetime.utcnow()
    db.commit()

    logger.info(f"✅ {qb_resource} {action}d in QuickBooks: {record.name} ({quickbooks_id})")
    return {"success": True, "action": action, "quickbooks_id": quickbooks_id}


# Routes
@router.post("/oauth/initiate")
async def initiate_oauth(current_user: User = Depends(require_admin)):
    """
    Initiate QuickBooks OAuth 2.0 flow
    Returns authorization URL
    """
    if not QUICKBOOKS_CLIENT_ID:
        raise HTTPException(status_code=500, detail="QuickBooks not configured")

    state = secrets.token_urlsafe(32)
    scope = "com.intuit.quickbooks.accounting"
    oauth_url = (
        f"{QUICKBOOKS_AUTH_URL}"
        f"?client_id={QUICKBOOKS_CLIENT_ID}"
        f"&response_type=code"
        f"&scope={quote(scope)}"
        f"&redirect_uri={quote(QUICKBOOKS_REDIRECT_URI)}"
        f"&state={state}"
    )

    logger.info(f"QuickBooks OAuth initiated by: {current_user.email} ({QUICKBOOKS_ENVIRONMENT})")
    return {"oauth_url": oauth_url, "state": state}


@router.get("/callback-handler")
async def oauth_callback_handler(
    code: str,
    realmId: str,
    state: Optional[str] = None,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    Complete QuickBooks OAuth 2.0 flow
    Called by frontend after QuickBooks redirects with authorization code
    """
    if not QUICKBOOKS_CLIENT_ID or not QUICKBOOKS_CLIENT_SECRET:
        raise HTTPException(status_code=500, detail="QuickBooks not configured")

    logger.info(f"QuickBooks OAuth callback for realm {realmId}")
    try:
        response = await post_token_request(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": QUICKBOOKS_REDIRECT_URI,
            }
        )
    except httpx.HTTPError as e:
        logger.error(f"QuickBooks token exchange error: {str(e)}")
        raise HTTPException(status_code=502, detail="Could not reach QuickBooks") from e

    if response.status_code != 200:
        logger.error(f"QuickBooks token exchange failed: {response.text}")
        raise HTTPException(status_code=400, detail="Failed to exchange authorization code")

    token_data = response.json()
    access_token = token_data.get("access_token")
    refresh_token = token_data.get("refresh_token")
    if not access_token or not refresh_token:
        raise HTTPException(status_code=400, detail="Invalid token response from QuickBooks")

    company_name = None
    try:
        company_response = await quickbooks_api(
            "GET", realmId, f"companyinfo/{realmId}", access_token
        )
        if company_response.status_code == 200:
            company_name = company_response.json().get("CompanyInfo", {}).get("CompanyName")
    except httpx.HTTPError as e:
        logger.warning(f"Failed to fetch company info: {e}")

    token_expires_at = datetime.utcnow() + timedelta(seconds=token_data.get("expires_in", 3600))

    # One active connection per company
    for previous in db.query(QuickBooksIntegration).filter(QuickBooksIntegration.is_active.is_(True)):
        previous.is_active = False

    integration = QuickBooksIntegration(
        connected_by=current_user.id,
        realm_id=realmId,
        company_name=company_name,
        access_token=encrypt_token(access_token),
        refresh_token=encrypt_token(refresh_token),
        token_expires_at=token_expires_at,
        environment=QUICKBOOKS_ENVIRONMENT,
        sync_customers=True,
        sync_vendors=True,
        is_active=True,
    )
    db.add(integration)
    db.commit()

    logger.info(f"✅ QuickBooks connected by {current_user.email}: {company_name or realmId}")
    return {"success": True, "realm_id": realmId, "company_name": company_name}


@router.get("/status", response_model=QuickBooksStatusResponse)
async def get_status(current_user: User = Depends(require_staff), db: Session = Depends(get_db)):
    """Check whether QuickBooks is connected"""
    integration = get_active_integration(db)
    if not integration:
        return QuickBooksStatusResponse(connected=False)

    return QuickBooksStatusResponse(
        connected=True,
        realm_id=integration.realm_id,
        company_name=integration.company_name,
        environment=integration.environment,
        sync_customers=integration.sync_customers,
        sync_vendors=integration.sync_vendors,
        last_customer_sync=integration.last_customer_sync,
        last_vendor_sync=integration.last_vendor_sync,
    )


@router.put("/settings")
async def update_settings(
    settings: QuickBooksSyncSettings,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    integration = get_active_integration(db)
    if not integration:
        raise HTTPException(status_code=404, detail="QuickBooks not connected")

    integration.sync_customers = settings.sync_customers
    integration.sync_vendors = settings.sync_vendors
    db.commit()
    return {"success": True, "message": "Settings updated successfully"}


@router.post("/disconnect")
async def disconnect(current_user: User = Depends(require_admin), db: Session = Depends(get_db)):
    """Revoke the token (best effort) and deactivate the connection"""
    integration = get_active_integration(db)
    if not integration:
        raise HTTPException(status_code=404, detail="QuickBooks not connected")

    try:
        async with httpx.AsyncClient() as client:
            await client.post(
                QUICKBOOKS_REVOKE_URL,
                headers={
                    "Accept": "application/json",
                    "Content-Type": "application/json",
                    "Authorization": f"Basic {get_basic_auth_header()}",
                },
                json={"token": decrypt_token(integration.refresh_token)},
                timeout=10.0,
            )
    except (httpx.HTTPError, InvalidToken) as e:
        logger.warning(f"QuickBooks token revoke failed: {e}")

    integration.is_active = False
    db.commit()

    logger.info(f"✅ QuickBooks disconnected by {current_user.email}")
    return {"success": True}


@router.post("/sync/customer/{customer_id}")
async def sync_customer(
    customer_id: int, current_user: User = Depends(require_staff), db: Session = Depends(get_db)
):
    """Sync a specific customer to QuickBooks"""
    integration = get_active_integration(db)
    if not integration or not integration.sync_customers:
        raise HTTPException(status_code=400, detail="QuickBooks customer sync not enabled")

    customer = db.query(Customer).filter(Customer.id == customer_id).first()
    if not customer:
        raise HTTPException(status_code=404, detail="Customer not found")

    return await push_entity(
        db,
        integration,
        current_user,
        "customer",
        customer,
        "quickbooks_customer_id",
        build_customer_payload(customer),
    )


@router.post("/sync/vendor/{vendor_id}")
async def sync_vendor(
    vendor_id: int, current_user: User = Depends(require_staff), db: Session = Depends(get_db)
):
    """Sync a specific vendor to QuickBooks"""
    integration = get_active_integration(db)
    if not integration or not integration.sync_vendors:
        raise HTTPException(status_code=400, detail="QuickBooks vendor sync not enabled")

    vendor = db.query(Vendor).filter(Vendor.id == vendor_id).first()
    if not vendor:
        raise HTTPException(status_code=404, detail="Vendor not found")

    return await push_entity(
        db,
        integration,
        current_user,
        "vendor",
        vendor,
        "quickbooks_vendor_id",
        build_vendor_payload(vendor),
    )


@router.get("/sync-logs")
async def get_sync_logs(
    limit: int = 50, current_user: User = Depends(require_staff), db: Session = Depends(get_db)
):
    logs = (
        db.query(QuickBooksSyncLog)
        .order_by(QuickBooksSyncLog.created_at.desc(), QuickBooksSyncLog.id.desc())
        .limit(min(limit, 200))
        .all()
    )
    return [
        {
            "id": log.id,
            "entity_type": log.entity_type,
            "entity_id": log.entity_id,
            "action": log.action,
            "quickbooks_id": log.quickbooks_id,
            "status": log.status,
            "error_message": log.error_message,
            "created_at": log.created_at,
        }
        for log in logs
    ]
