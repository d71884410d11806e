import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _as_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    """
    Runtime configuration for the service.

    The payment key secret signs client-return callbacks and the webhook
    secret signs server-to-server notifications. They are separate values.
    """
    database_url: str = "sqlite:///./monetra.db"
    jwt_secret: str = "dev-secret"
    jwt_algorithm: str = "HS256"
    jwt_expires_days: int = 30
    razorpay_key_id: Optional[str] = None
    razorpay_key_secret: Optional[str] = None
    razorpay_webhook_secret: Optional[str] = None
    payment_currency: str = "INR"
    gateway_timeout_seconds: float = 5.0
    gateway_max_retries: int = 3
    log_level: str = "INFO"
    cookie_secure: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            database_url=os.getenv("DATABASE_URL", cls.database_url),
            jwt_secret=os.getenv("JWT_SECRET", cls.jwt_secret),
            jwt_expires_days=int(os.getenv("JWT_EXPIRES_DAYS", cls.jwt_expires_days)),
            razorpay_key_id=os.getenv("RAZORPAY_KEY_ID"),
            razorpay_key_secret=os.getenv("RAZORPAY_KEY_SECRET"),
            razorpay_webhook_secret=os.getenv("RAZORPAY_WEBHOOK_SECRET"),
            payment_currency=os.getenv("PAYMENT_CURRENCY", cls.payment_currency),
            gateway_timeout_seconds=float(os.getenv("GATEWAY_TIMEOUT_SECONDS", cls.gateway_timeout_seconds)),
            gateway_max_retries=int(os.getenv("GATEWAY_MAX_RETRIES", cls.gateway_max_retries)),
            log_level=os.getenv("LOG_LEVEL", cls.log_level).upper(),
            cookie_secure=_as_bool(os.getenv("COOKIE_SECURE")),
        )


@lru_cache()
def get_settings() -> Settings:
    return Settings.from_env()
