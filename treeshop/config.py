import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

ENVIRONMENT = os.getenv("ENVIRONMENT", "development").lower()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./treeshop.db")

# Public site used to build approve / payment links
PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "https://treeai.us").rstrip("/")

# Approval tokens - CRITICAL: No default signing secret in production
PROPOSAL_TOKEN_SECRET = os.getenv("PROPOSAL_TOKEN_SECRET")
if not PROPOSAL_TOKEN_SECRET:
    import warnings

    warnings.warn(
        "PROPOSAL_TOKEN_SECRET not set! Using insecure default - DO NOT USE IN PRODUCTION",
        RuntimeWarning,
        stacklevel=2,
    )
    PROPOSAL_TOKEN_SECRET = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only
PROPOSAL_TOKEN_TTL_DAYS = int(os.getenv("PROPOSAL_TOKEN_TTL_DAYS", "14"))

# Admin API auth (HS256 bearer tokens issued by the admin dashboard)
ADMIN_JWT_SECRET = os.getenv("ADMIN_JWT_SECRET")
ADMIN_JWT_ALGORITHM = "HS256"

# Pricing policy
DEPOSIT_RATE = float(os.getenv("DEPOSIT_RATE", "0.20"))
SALES_TAX_RATE = float(os.getenv("SALES_TAX_RATE", "0"))

# Resend Email Configuration
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
PROPOSAL_FROM_EMAIL = os.getenv("PROPOSAL_FROM_EMAIL", "TreeAI <proposals@treeai.us>")
BUSINESS_NAME = os.getenv("BUSINESS_NAME", "TreeAI Professional Services")
BUSINESS_PHONE = os.getenv("BUSINESS_PHONE", "(555) 123-4567")

# Stripe Configuration
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET")
STRIPE_CURRENCY = os.getenv("STRIPE_CURRENCY", "usd")

# Cloudflare R2 Configuration
R2_ACCOUNT_ID = os.getenv("R2_ACCOUNT_ID")
R2_ACCESS_KEY_ID = os.getenv("R2_ACCESS_KEY_ID")
R2_SECRET_ACCESS_KEY = os.getenv("R2_SECRET_ACCESS_KEY")
R2_BUCKET_NAME = os.getenv("R2_BUCKET_NAME", "treeshop-proposals")
PRESIGNED_URL_EXPIRATION = int(os.getenv("PRESIGNED_URL_EXPIRATION", str(7 * 24 * 3600)))

# Public endpoint rate limits (requests per window, per client IP)
ACCEPT_RATE_LIMIT = int(os.getenv("ACCEPT_RATE_LIMIT", "10"))
CHECKOUT_RATE_LIMIT = int(os.getenv("CHECKOUT_RATE_LIMIT", "10"))
PUBLIC_RATE_LIMIT_WINDOW = int(os.getenv("PUBLIC_RATE_LIMIT_WINDOW", "600"))
