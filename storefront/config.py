import os
from pathlib import Path
from dotenv import load_dotenv

# Force-load .env (Windows-safe, reload-safe)
BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(dotenv_path=BASE_DIR / ".env")

APP_ENV = os.getenv("APP_ENV", "development")
APP_URL = os.getenv("APP_URL", "http://localhost:8000").rstrip("/")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

DATABASE_URL = os.getenv("DATABASE_URL")

JWT_SECRET = os.getenv("JWT_SECRET")
JWT_ALGORITHM = "HS256"
ACTION_LINK_SECRET = (os.getenv("ACTION_LINK_SECRET") or JWT_SECRET or "").strip()

# UPI payee shown to customers and encoded in QR codes
UPI_ID = os.getenv("UPI_ID", "your-upi-id@paytm")
BUSINESS_NAME = os.getenv("BUSINESS_NAME", "Homespun")

RESEND_API_KEY = os.getenv("RESEND_API_KEY", "")
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "orders@homespun.example")
FROM_EMAIL = os.getenv("FROM_EMAIL", "Homespun Orders <onboarding@resend.dev>")

FREE_DELIVERY_THRESHOLD = 500
DELIVERY_FEE = 50
GST_RATE = 0.05

ORDER_NUMBER_PREFIX = "HOM"
QR_CACHE_TTL_SECONDS = 5 * 60

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


def is_production() -> bool:
    return APP_ENV == "production"
