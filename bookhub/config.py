import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

# Force-load .env (Windows-safe, reload-safe)
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"

DEFAULT_SUCCESS_URL = "http://localhost:3000/success.html?session_id={CHECKOUT_SESSION_ID}"
DEFAULT_CANCEL_URL = "http://localhost:3000/cancel.html"


@dataclass
class Settings:
    database_url: str
    jwt_secret: Optional[str] = None
    jwt_expires_days: int = 7
    stripe_secret_key: Optional[str] = None
    stripe_webhook_secret: Optional[str] = None
    stripe_currency: str = "usd"
    stripe_max_network_retries: int = 0
    checkout_success_url: str = DEFAULT_SUCCESS_URL
    checkout_cancel_url: str = DEFAULT_CANCEL_URL
    smtp_host: Optional[str] = None
    smtp_port: int = 587
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None
    mail_from: str = "no-reply@bookhub.local"
    log_level: str = "INFO"
    cors_origins: str = "*"

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv(dotenv_path=ENV_PATH)

        database_url = os.getenv("DATABASE_URL")
        if not database_url:
            raise RuntimeError("DATABASE_URL is not set. Check your .env file.")

        return cls(
            database_url=database_url,
            jwt_secret=os.getenv("JWT_SECRET"),
            jwt_expires_days=int(os.getenv("JWT_EXPIRES_DAYS", "7")),
            stripe_secret_key=os.getenv("STRIPE_SECRET_KEY"),
            stripe_webhook_secret=os.getenv("STRIPE_WEBHOOK_SECRET"),
            stripe_currency=os.getenv("STRIPE_CURRENCY", "usd"),
            stripe_max_network_retries=int(os.getenv("STRIPE_MAX_NETWORK_RETRIES", "0")),
            checkout_success_url=os.getenv("CHECKOUT_SUCCESS_URL", DEFAULT_SUCCESS_URL),
            checkout_cancel_url=os.getenv("CHECKOUT_CANCEL_URL", DEFAULT_CANCEL_URL),
            smtp_host=os.getenv("SMTP_HOST"),
            smtp_port=int(os.getenv("SMTP_PORT", "587")),
            smtp_user=os.getenv("SMTP_USER"),
            smtp_password=os.getenv("SMTP_PASSWORD"),
            mail_from=os.getenv("MAIL_FROM", "no-reply@bookhub.local"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            cors_origins=os.getenv("CORS_ORIGINS", "*"),
        )

    @property
    def allowed_origins(self) -> List[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]
