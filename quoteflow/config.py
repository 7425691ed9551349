import os
import warnings
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

ENVIRONMENT = os.getenv("ENVIRONMENT", "development").lower()
IS_PRODUCTION = ENVIRONMENT == "production"

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./quoteflow.db")

# Redis (KV cache, session cache, rate limiting). Unset means in-process only.
REDIS_URL = os.getenv("REDIS_URL")

# Supabase authentication
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_JWT_AUDIENCE = os.getenv("SUPABASE_JWT_AUDIENCE", "authenticated")
SUPABASE_JWT_SECRET = os.getenv("SUPABASE_JWT_SECRET")
if not SUPABASE_JWT_SECRET:
    warnings.warn(
        "SUPABASE_JWT_SECRET not set! Using insecure default - DO NOT USE IN PRODUCTION",
        RuntimeWarning,
        stacklevel=2,
    )
    SUPABASE_JWT_SECRET = "INSECURE-DEV-JWT-SECRET"  # noqa: S105 - Dev fallback only

CSRF_SECRET = os.getenv("CSRF_SECRET")
if not CSRF_SECRET:
    warnings.warn(
        "CSRF_SECRET not set! Using insecure default - DO NOT USE IN PRODUCTION",
        RuntimeWarning,
        stacklevel=2,
    )
    CSRF_SECRET = "INSECURE-DEV-CSRF-SECRET"  # noqa: S105 - Dev fallback only

# Scheduled jobs and admin triggers
CRON_SECRET = os.getenv("CRON_SECRET")
ADMIN_API_KEY = os.getenv("ADMIN_API_KEY")

# Slack-style notification webhooks
ERROR_WEBHOOK_URL = os.getenv("ERROR_WEBHOOK_URL")
SLACK_WEBHOOK_URL = os.getenv("SLACK_WEBHOOK_URL")
SUCCESS_WEBHOOK_URL = os.getenv("SUCCESS_WEBHOOK_URL")

# Exchange rates
EXCHANGE_RATE_API_KEY = os.getenv("EXCHANGE_RATE_API_KEY")
EXCHANGE_RATE_API_BASE = os.getenv("EXCHANGE_RATE_API_BASE", "https://v6.exchangerate-api.com/v6")

# Affiliate payment gateway (subscription checkout)
AFFILIATE_PAYMENT_API_URL = os.getenv("AFFILIATE_PAYMENT_API_URL")
AFFILIATE_PAYMENT_API_KEY = os.getenv("AFFILIATE_PAYMENT_API_KEY")
AFFILIATE_PAYMENT_SITE_CODE = os.getenv("AFFILIATE_PAYMENT_SITE_CODE")
AFFILIATE_PAYMENT_WEBHOOK_SECRET = os.getenv("AFFILIATE_PAYMENT_WEBHOOK_SECRET")
# "sandbox" or "production" - default to sandbox for safety
AFFILIATE_PAYMENT_ENV = os.getenv("AFFILIATE_PAYMENT_ENV", "sandbox")

# Affiliate tracking (registrations and commissions)
AFFILIATE_API_URL = os.getenv("AFFILIATE_API_URL")
AFFILIATE_PRODUCT_CODE = os.getenv("AFFILIATE_PRODUCT_CODE", "quotation-system")
AFFILIATE_WEBHOOK_SECRET = os.getenv("AFFILIATE_WEBHOOK_SECRET")

# Business card OCR (OpenRouter-compatible chat completions)
OPENROUTER_API_KEY = os.getenv("OPENROUTER_API_KEY")
OPENROUTER_BASE_URL = os.getenv("OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1")

# Frontend base URL for redirects and OCR referer
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")
SITE_URL = os.getenv("SITE_URL", FRONTEND_URL)

# Security feature flags
CSRF_ENABLED = os.getenv("CSRF_ENABLED", "true").lower() == "true"
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
SECURITY_HEADERS_ENABLED = os.getenv("SECURITY_HEADERS_ENABLED", "true").lower() == "true"
