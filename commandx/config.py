import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./commandx.db")

# Hosted auth provider (Supabase) - JWTs are HS256 signed with the project JWT secret
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_JWT_SECRET = os.getenv("SUPABASE_JWT_SECRET")
SUPABASE_JWT_AUDIENCE = os.getenv("SUPABASE_JWT_AUDIENCE", "authenticated")

# Security - CRITICAL: No default secret key in production
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    import warnings

    warnings.warn(
        "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only

# Frontend base URL for redirects and emailed links
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")
SITE_URL = os.getenv("SITE_URL", FRONTEND_URL).strip()

# Resend Email Configuration
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "CommandX <admin@commandx.app>")

# Twilio SMS Configuration (unset = dev mode, messages are logged and marked sent)
TWILIO_ACCOUNT_SID = os.getenv("TWILIO_ACCOUNT_SID")
TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN")
TWILIO_PHONE_NUMBER = os.getenv("TWILIO_PHONE_NUMBER")
# Public URL Twilio posts inbound messages to, used for signature validation
TWILIO_WEBHOOK_URL = os.getenv("TWILIO_WEBHOOK_URL")

# QuickBooks OAuth Configuration
QUICKBOOKS_ENVIRONMENT = os.getenv("QUICKBOOKS_ENVIRONMENT", "sandbox")  # sandbox or production
QUICKBOOKS_CLIENT_ID = os.getenv("QUICKBOOKS_CLIENT_ID")
QUICKBOOKS_CLIENT_SECRET = os.getenv("QUICKBOOKS_CLIENT_SECRET")
QUICKBOOKS_REDIRECT_URI = os.getenv(
    "QUICKBOOKS_REDIRECT_URI", f"{FRONTEND_URL}/auth/quickbooks/callback"
)

# Time clock
GEOFENCE_DEFAULT_RADIUS_MILES = float(os.getenv("GEOFENCE_DEFAULT_RADIUS_MILES", "0.25"))
CLOCK_BLOCK_HOURS = int(os.getenv("CLOCK_BLOCK_HOURS", "8"))
STALE_LOCATION_MINUTES = int(os.getenv("STALE_LOCATION_MINUTES", "30"))
MISSED_CLOCK_IN_GRACE_MINUTES = int(os.getenv("MISSED_CLOCK_IN_GRACE_MINUTES", "10"))

# Onboarding link lifetimes
PERSONNEL_INVITE_EXPIRY_DAYS = int(os.getenv("PERSONNEL_INVITE_EXPIRY_DAYS", "7"))
PERSONNEL_ONBOARDING_EXPIRY_DAYS = int(os.getenv("PERSONNEL_ONBOARDING_EXPIRY_DAYS", "7"))
VENDOR_ONBOARDING_EXPIRY_DAYS = int(os.getenv("VENDOR_ONBOARDING_EXPIRY_DAYS", "30"))
