import os
from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "postgresql+asyncpg://localhost:5432/swoptrader")
PORT = int(os.getenv("PORT", "3000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


def parse_allowed_origins(raw: str | None) -> list[str]:
    """Splits ALLOWED_ORIGINS on commas; an empty value or "*" allows everything."""
    if not raw or raw.strip() == "*":
        return ["*"]
    origins = [origin.strip() for origin in raw.split(",") if origin.strip()]
    return origins or ["*"]


ALLOWED_ORIGINS = parse_allowed_origins(os.getenv("ALLOWED_ORIGINS"))

# Either variable may hold the service account as raw JSON or base64-encoded JSON.
FIREBASE_CREDENTIAL_ENV_VARS = ("FIREBASE_SERVICE_ACCOUNT_JSON", "FIREBASE_SERVICE_ACCOUNT")
