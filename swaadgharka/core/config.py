import os
from decimal import Decimal

from dotenv import load_dotenv

# Loads .env from the project root
load_dotenv()


def _env_flag(name: str, default: str = "") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./swaadgharka.db")
ENV = os.getenv("ENV", "dev")
ENV_NORMALIZED = ENV.lower()
IS_DEV = ENV_NORMALIZED in {"dev", "development", "local"}
IS_PROD = ENV_NORMALIZED in {"prod", "production"}

# Admin bootstrap (dev only)
DEV_BOOTSTRAP_ALLOW = _env_flag("DEV_BOOTSTRAP_ALLOW")

# CORS
_cors_env = os.getenv("CORS_ORIGINS", "")
CORS_ORIGINS = [origin.strip() for origin in _cors_env.split(",") if origin.strip() and origin.strip() != "*"]

if not CORS_ORIGINS and IS_DEV:
    CORS_ORIGINS = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:8080",
    ]

# Auth (JWT)
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRE_MINUTES = int(os.getenv("JWT_EXPIRE_MINUTES", str(60 * 24 * 7)))

# Pricing (integer rupees)
TAX_RATE = Decimal(os.getenv("TAX_RATE", "0.18"))
DELIVERY_FEE = int(os.getenv("DELIVERY_FEE", "30"))
FREE_DELIVERY_THRESHOLD = int(os.getenv("FREE_DELIVERY_THRESHOLD", "300"))
PACKAGING_FEE = int(os.getenv("PACKAGING_FEE", "10"))
CURRENCY = os.getenv("CURRENCY", "inr").strip().lower()

# Orders
ORDER_NUMBER_PREFIX = os.getenv("ORDER_NUMBER_PREFIX", "SGK").strip().upper()
ORDER_SEQUENCE_WIDTH = int(os.getenv("ORDER_SEQUENCE_WIDTH", "3"))
BUSINESS_TIMEZONE = os.getenv("BUSINESS_TIMEZONE", "Asia/Kolkata")
MIN_PREPARATION_MINUTES = int(os.getenv("MIN_PREPARATION_MINUTES", "15"))
DELIVERY_MINUTES = int(os.getenv("DELIVERY_MINUTES", "30"))

# Payment gateways
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY", "").strip()
STRIPE_API_BASE = os.getenv("STRIPE_API_BASE", "https://api.stripe.com/v1").rstrip("/")
RAZORPAY_KEY_ID = os.getenv("RAZORPAY_KEY_ID", "").strip()
RAZORPAY_KEY_SECRET = os.getenv("RAZORPAY_KEY_SECRET", "").strip()
RAZORPAY_WEBHOOK_SECRET = os.getenv("RAZORPAY_WEBHOOK_SECRET", "").strip()
RAZORPAY_API_BASE = os.getenv("RAZORPAY_API_BASE", "https://api.razorpay.com/v1").rstrip("/")
PAYMENT_GATEWAY_TIMEOUT_SECONDS = float(os.getenv("PAYMENT_GATEWAY_TIMEOUT_SECONDS", "10"))
# Random-outcome UPI flow for demos; ignored in production.
PAYMENT_SIMULATOR_ENABLED = _env_flag("PAYMENT_SIMULATOR_ENABLED", "1" if IS_DEV else "0") and not IS_PROD

# Rate limits
# Peers allowed to report the client address in X-Forwarded-For (reverse proxies, load balancers)
_trusted_env = os.getenv("TRUSTED_PROXIES", "")
TRUSTED_PROXIES = frozenset(proxy.strip() for proxy in _trusted_env.split(",") if proxy.strip())
API_RATE_LIMIT = int(os.getenv("API_RATE_LIMIT", "100"))
API_RATE_WINDOW_SECONDS = int(os.getenv("API_RATE_WINDOW_SECONDS", str(15 * 60)))
LOGIN_RATE_LIMIT = int(os.getenv("LOGIN_RATE_LIMIT", "5"))
ORDER_RATE_LIMIT = int(os.getenv("ORDER_RATE_LIMIT", "10"))
PAYMENT_RATE_LIMIT = int(os.getenv("PAYMENT_RATE_LIMIT", "10"))
ACTION_RATE_WINDOW_SECONDS = int(os.getenv("ACTION_RATE_WINDOW_SECONDS", str(15 * 60)))
