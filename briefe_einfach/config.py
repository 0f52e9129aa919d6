from dotenv import load_dotenv
load_dotenv()

import os

def _flag(name, default="false"):
    return os.getenv(name, default).lower() in ("1", "true", "yes")

DEBUG = _flag("DEBUG")
PORT = int(os.getenv("PORT", "8080"))

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///data/app.db")
STATIC_DIR = os.getenv("STATIC_DIR", "static")
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

JWT_SECRET = os.getenv("JWT_SECRET", "devsecret")
JWT_TTL_HOURS = int(os.getenv("JWT_TTL_HOURS", "12"))
PASSWORD_MIN_LENGTH = int(os.getenv("PASSWORD_MIN_LENGTH", "8"))

# Development bypasses for the subscription gate; they never touch the stored flag.
DEV_ALLOW_ALL = _flag("DEV_ALLOW_ALL")
TEST_EMAIL = (os.getenv("TEST_EMAIL") or "").strip().lower()

STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
STRIPE_PRICE_ID = os.getenv("STRIPE_PRICE_ID")
STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET")
APP_URL = (os.getenv("APP_URL") or "").rstrip("/")

OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
OPENAI_TIMEOUT = float(os.getenv("OPENAI_TIMEOUT", "60"))
EXPLAIN_PROVIDER = os.getenv("EXPLAIN_PROVIDER", "auto").lower()  # auto | local | openai
MAX_TEXT_LENGTH = int(os.getenv("MAX_TEXT_LENGTH", "20000"))
