import logging
import os
from pathlib import Path

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./estates.db")

# RapidAPI / Bayut listings source
_rapidapi_key_raw = os.getenv("RAPIDAPI_KEY")
RAPIDAPI_KEY = _rapidapi_key_raw.strip() if _rapidapi_key_raw else None
if _rapidapi_key_raw and RAPIDAPI_KEY != _rapidapi_key_raw:
    logger.info(
        f"RAPIDAPI_KEY contained whitespace; trimming applied "
        f"(raw={len(_rapidapi_key_raw)}, trimmed={len(RAPIDAPI_KEY)})"
    )
BAYUT_API_HOST = os.getenv("BAYUT_API_HOST", "bayut-com1.p.rapidapi.com")
BAYUT_REQUEST_TIMEOUT = float(os.getenv("BAYUT_REQUEST_TIMEOUT", "30"))

# Stripe (commission qualification + Connect transfers)
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
STRIPE_API_VERSION = os.getenv("STRIPE_API_VERSION", "2025-08-27.basil")
PAYOUT_CURRENCY = os.getenv("PAYOUT_CURRENCY", "usd")

# Resend Email Configuration
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "Dubai Estates <noreply@dubaiestates.io>")
# Sync failure alerts are emailed here when set
ADMIN_ALERT_EMAIL = os.getenv("ADMIN_ALERT_EMAIL")

# Cloudflare R2 Configuration (re-hosted listing photos)
R2_ACCOUNT_ID = os.getenv("R2_ACCOUNT_ID")
R2_ACCESS_KEY_ID = os.getenv("R2_ACCESS_KEY_ID")
R2_SECRET_ACCESS_KEY = os.getenv("R2_SECRET_ACCESS_KEY")
R2_BUCKET_NAME = os.getenv("R2_BUCKET_NAME", "property-media")
R2_PUBLIC_BASE_URL = os.getenv("R2_PUBLIC_BASE_URL")

# Admin-only endpoints (manual payout recording)
ADMIN_API_KEY = os.getenv("ADMIN_API_KEY")

# Secret mixed into hashed client IPs for click tracking
CLICK_HASH_SECRET = os.getenv("CLICK_HASH_SECRET", "")

# CORS: comma separated list, wildcard when empty
ALLOWED_ORIGINS = [o.strip() for o in os.getenv("ALLOWED_ORIGINS", "").split(",") if o.strip()]

# Affiliate program defaults (overridable per row in affiliate_settings)
DEFAULT_COMMISSION_RATE = float(os.getenv("DEFAULT_COMMISSION_RATE", "0.50"))
QUALIFICATION_PERIOD_DAYS = int(os.getenv("QUALIFICATION_PERIOD_DAYS", "60"))
MINIMUM_PAYOUT_AMOUNT = float(os.getenv("MINIMUM_PAYOUT_AMOUNT", "50"))
# A referral claimed longer ago than this is considered abandoned by its run
CLAIM_TIMEOUT_MINUTES = int(os.getenv("CLAIM_TIMEOUT_MINUTES", "30"))

# Property sync
SYNC_SCHEDULE_NAME = os.getenv("SYNC_SCHEDULE_NAME", "bayut_daily_sync")
SYNC_CHUNK_DELAY_SECONDS = float(os.getenv("SYNC_CHUNK_DELAY_SECONDS", "2"))
SYNC_MAX_PAGES_CAP = int(os.getenv("SYNC_MAX_PAGES_CAP", "3"))
SYNC_HITS_PER_PAGE = int(os.getenv("SYNC_HITS_PER_PAGE", "25"))

# Two-tier cache
LOCAL_CACHE_MAX_SIZE = int(os.getenv("LOCAL_CACHE_MAX_SIZE", "500"))
LOCAL_CACHE_TTL_SECONDS = int(os.getenv("LOCAL_CACHE_TTL_SECONDS", "60"))

# "open" allows requests when the rate limit store is unreachable, "closed" denies them
RATE_LIMIT_FAIL_MODE = os.getenv("RATE_LIMIT_FAIL_MODE", "open").lower()
