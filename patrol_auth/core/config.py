# patrol_auth/core/config.py
import os
from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict

from ..exceptions import ConfigurationError

MIN_SIGNING_KEY_BYTES = 32


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # Application Settings
    APP_NAME: str = "Security Patrol Auth API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    DOCS_ENABLED: bool = True

    # Server Settings
    HOST: str = "0.0.0.0"
    PORT: int = int(os.environ.get("PORT", 8000))

    # Database Settings
    DATABASE_URL: str = os.environ.get("DATABASE_URL", "sqlite:///./patrol_auth.db")

    # Session token settings (secret, issuer and audience are required at startup)
    JWT_SECRET_KEY: str = ""
    JWT_ISSUER: str = ""
    JWT_AUDIENCE: str = ""
    JWT_ALGORITHM: str = "HS256"
    SESSION_TTL_MINUTES: int = 480

    # Verification codes
    VERIFICATION_CODE_LENGTH: int = 6
    VERIFICATION_CODE_TTL_MINUTES: int = 10
    VERIFICATION_CODE_SINGLE_USE: bool = False
    CODE_SWEEP_INTERVAL_SECONDS: float = 60.0

    # SMS delivery ("twilio" or "log")
    SMS_PROVIDER: str = "twilio"
    SMS_MESSAGE_TEMPLATE: str = "Your Security Patrol verification code is: {code}"
    TWILIO_ACCOUNT_SID: str = ""
    TWILIO_AUTH_TOKEN: str = ""
    TWILIO_PHONE_NUMBER: str = ""

    # Code request throttling, per phone number
    OTP_REQUESTS_PER_WINDOW: int = 3
    OTP_RATE_LIMIT_WINDOW_SECONDS: int = 3600

    # CORS Settings (comma-separated)
    ALLOWED_ORIGINS: str = "*"

    # Logging Settings
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    def _split_csv(self, value: str) -> List[str]:
        if value is None:
            return []
        value = value.strip()
        if value == "":
            return []
        return [item.strip() for item in value.split(",")]

    @property
    def allowed_origins_list(self) -> List[str]:
        return self._split_csv(self.ALLOWED_ORIGINS)

    def require_token_settings(self) -> None:
        """Raise ConfigurationError unless signing key, issuer and audience are usable."""
        missing = [
            name for name in ("JWT_SECRET_KEY", "JWT_ISSUER", "JWT_AUDIENCE")
            if not getattr(self, name).strip()
        ]
        if missing:
            raise ConfigurationError(f"Missing required setting(s): {', '.join(missing)}")
        if len(self.JWT_SECRET_KEY.encode("utf-8")) < MIN_SIGNING_KEY_BYTES:
            raise ConfigurationError(
                f"JWT_SECRET_KEY must be at least {MIN_SIGNING_KEY_BYTES} bytes for {self.JWT_ALGORITHM}"
            )
        if self.SESSION_TTL_MINUTES <= 0:
            raise ConfigurationError("SESSION_TTL_MINUTES must be positive")
        if self.VERIFICATION_CODE_LENGTH <= 0 or self.VERIFICATION_CODE_TTL_MINUTES <= 0:
            raise ConfigurationError("Verification code length and TTL must be positive")


@lru_cache()
def get_settings() -> Settings:
    return Settings()
