"""Application configuration loaded from environment variables."""
import json
import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).resolve().parent.parent.parent


def _bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


def _csv(name: str, default: str) -> list[str]:
    return [v.strip() for v in os.getenv(name, default).split(",") if v.strip()]


class Settings:
    # SQLite DB URL (PostgreSQL in production)
    DATABASE_URL: str = os.getenv(
        "DATABASE_URL", f"sqlite:///{BASE_DIR / 'backoffice.db'}"
    )
    # Seconds a transaction waits for a row/database lock before giving up
    DB_LOCK_TIMEOUT: float = float(os.getenv("DB_LOCK_TIMEOUT", "15"))

    # API server
    API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
    API_PORT: int = int(os.getenv("API_PORT", "8000"))

    # Auth
    AUTH_ENABLED: bool = _bool("AUTH_ENABLED", "false")
    AUTH_USERNAME: str = os.getenv("AUTH_USERNAME", "admin")
    AUTH_EMAIL: str = os.getenv("AUTH_EMAIL", "admin@example.com")
    AUTH_TOKEN: str = os.getenv("AUTH_TOKEN", "changeme")

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FILE: str = os.getenv("LOG_FILE", "logs/app.log")

    # CORS
    CORS_ORIGINS: list[str] = _csv(
        "CORS_ORIGINS", "http://localhost:5173,http://localhost:3000"
    )

    # Invoice periods (day / month boundaries) are computed in this zone
    TIMEZONE: str = os.getenv("TIMEZONE", "Asia/Kolkata")

    # Primary ledger: daily numbering, GST on every line
    INVOICE_PREFIX: str = os.getenv("INVOICE_PREFIX", "INV")
    PRIMARY_TAX_ENABLED: bool = _bool("PRIMARY_TAX_ENABLED", "true")

    # SL ledger: monthly numbering, GST decided per category
    SL_INVOICE_PREFIX: str = os.getenv("SL_INVOICE_PREFIX", "SL")
    SL_CATEGORIES: dict[str, bool] = json.loads(
        os.getenv("SL_CATEGORIES", '{"sl_swasthik": true, "sl_laxmi": false}')
    )

    # Empty list = any category name is accepted
    ALLOWED_CATEGORY_NAMES: list[str] = _csv(
        "ALLOWED_CATEGORY_NAMES", "laxmi_bookstore,swasthik_enterprises"
    )

    # Dashboard
    LOW_STOCK_THRESHOLD: int = int(os.getenv("LOW_STOCK_THRESHOLD", "10"))
    DASHBOARD_TOP_N: int = int(os.getenv("DASHBOARD_TOP_N", "5"))
    DASHBOARD_TREND_DAYS: int = int(os.getenv("DASHBOARD_TREND_DAYS", "7"))


settings = Settings()
