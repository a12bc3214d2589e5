"""Runtime settings read from the environment (and ``.env`` when present)."""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).resolve().parent

DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite+aiosqlite:///{BASE_DIR / 'db' / 'database.db'}")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "GBP")

# Платёжный провайдер: "wise" или "yookassa"
PAYMENT_PROVIDER = os.getenv("PAYMENT_PROVIDER", "wise").lower()
PAYMENT_RETURN_URL = os.getenv("PAYMENT_RETURN_URL", "https://apeacademy.vercel.app")
PAYMENT_REFERENCE_PREFIX = os.getenv("PAYMENT_REFERENCE_PREFIX", "APE")

WISE_API_KEY = os.getenv("WISE_API_KEY")
WISE_PROFILE_ID = os.getenv("WISE_PROFILE_ID")
WISE_SANDBOX = os.getenv("WISE_SANDBOX", "false").lower() == "true"

YOOKASSA_SHOP_ID = os.getenv("YOOKASSA_SHOP_ID")
YOOKASSA_SECRET_KEY = os.getenv("YOOKASSA_SECRET_KEY")

PAYMENT_POLL_INTERVAL = float(os.getenv("PAYMENT_POLL_INTERVAL", "5"))
PAYMENT_POLL_MAX_ATTEMPTS = int(os.getenv("PAYMENT_POLL_MAX_ATTEMPTS", "120"))

SUPPORT_EMAIL = os.getenv("SUPPORT_EMAIL", "support@apeacademy.app")
SUPPORT_WHATSAPP = os.getenv("SUPPORT_WHATSAPP", "")
