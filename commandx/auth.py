import logging

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy.orm import Session, joinedload

from .config import SUPABASE_JWT_AUDIENCE, SUPABASE_JWT_SECRET
from .database import get_db
from .models import User

logger = logging.getLogger(__name__)

security = HTTPBearer()

ALGORITHM = "HS256"

ROLE_ADMIN = "admin"
ROLE_MANAGER = "manager"
ROLE_PERSONNEL = "personnel"
ROLE_VENDOR = "vendor"


def verify_access_token(token: str) -> dict:
    """
    Verify a Supabase access token.
    Supabase signs session JWTs with the project's JWT secret (HS256).
    """
    if not SUPABASE_JWT_SECRET:
        logger.error("❌ SUPABASE_JWT_SECRET not configured")
        raise HTTPException(status_code=500, detail="Authentication not configured")

    try:
        return jwt.decode(
            token,
            SUPABASE_JWT_SECRET,
            algorithms=[ALGORITHM],
            audience=SUPABASE_JWT_AUDIENCE,
        )
    except ExpiredSignatureError as e:
        raise HTTPException(
            status_code=401,
            detail="Token has expired. Please refresh your session.",
            headers={"X-Token-Expired": "true"},
        ) from e
    except JWTError as e:
        logger.warning(f"⚠️ Token verification failed: {str(e)}")
        raise HTTPException(status_code=401, detail="Invalid token") from e


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """Get current user from the bearer token, creating the local row on first sight"""

    if not credentials:
        raise HTTPException(
            status_code=401,
            detail="Not authenticated. Please provide a valid Bearer token in the Authorization header.",
        )

    token = credentials.credentials
    if len(token.split(".")) != 3:
        logger.warning(f"⚠️ Malformed token received, token length: {len(token)}")
        raise HTTPException(
            status_code=401, detail="Invalid token format. Expected a valid JWT token."
        )

    claims = verify_access_token(token)
    auth_uid = claims.get("sub")
    email = claims.get("email")
    name = (claims.get("user_metadata") or {}).get("full_name", "")

    if not auth_uid:
        logger.error(f"❌ Token missing user ID claim. Available claims: {list(claims.keys())}")
        raise HTTPException(status_code=401, detail="Invalid token claims")

    user = (
        db.query(User)
        .filter(User.auth_uid == auth_uid)
        .options(joinedload(User.roles))
        .first()
    )
    if user:
        return user

    # Same email under a different auth id (e.g. password account later linked to Google)
    if email:
        existing_user = db.query(User).filter(User.email == email).first()
        if existing_user:
            logger.info(f"🔄 Migrating user {email} to auth UID {auth_uid}")
            existing_user.auth_uid = auth_uid
            if name and not existing_user.full_name:
                existing_user.full_name = name
            try:
                db.commit()
                db.refresh(existing_user)
                return existing_user
            except Exception as e:
                db.rollback()
                logger.error(f"❌ Failed to migrate user: {str(e)}")
                raise HTTPException(
                    status_code=500, detail="Failed to update user authentication method"
                ) from e

    logger.info(f"🆕 Creating new user: {email}")
    user = User(auth_uid=auth_uid, email=email or f"{auth_uid}@users.invalid", full_name=name)
    db.add(user)
    try:
        db.commit()
        db.refresh(user)
    except Exception as e:
        db.rollback()
        if "duplicate key" in str(e).lower() or "unique constraint" in str(e).lower():
            raise HTTPException(
                status_code=409,
                detail="This email is already registered. Please sign in with your existing account.",
            ) from e
        raise
    return user


def require_roles(*roles: str):
    """
    Build a dependency that only lets users holding one of `roles` through.

        @router.post("/merge")
        async def merge(user: User = Depends(require_roles("admin"))): ...
    """
    allowed = set(roles)

    async def dependency(user: User = Depends(get_current_user)) -> User:
        if not (user.role_names & allowed):
            logger.warning(f"⚠️ User {user.email} lacks role {sorted(allowed)}")
            raise HTTPException(
                status_code=403,
                detail=f"Insufficient permissions. Requires role: {', '.join(sorted(allowed))}",
            )
        return user

    return dependency


require_admin = require_roles(ROLE_ADMIN)
require_staff = require_roles(ROLE_ADMIN, ROLE_MANAGER)


def is_staff(user: User) -> bool:
    return bool(user.role_names & {ROLE_ADMIN, ROLE_MANAGER})
