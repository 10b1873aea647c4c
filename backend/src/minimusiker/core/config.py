import os
from pathlib import Path
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # Project Paths
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    DATA_DIR: Path = Path(
        os.getenv("MINIMUSIKER_DATA_DIR", str(BASE_DIR.parent / "data"))
    )

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_RETENTION: str = "10 days"
    LOG_ROTATION: str = "10 MB"
    SLOW_REQUEST_THRESHOLD: float = 2.0  # Seconds; provider round trips are slow

    # Application
    APP_NAME: str = "Minimusiker Portal"
    APP_VERSION: str = "0.1.0"
    APP_URL: str = "https://app.minimusiker.de"
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]
    COOKIE_SECURE: bool = True
    TESTING: bool = False

    # Airtable
    AIRTABLE_API_KEY: str = ""
    AIRTABLE_BASE_ID: str = ""
    AIRTABLE_API_URL: str = "https://api.airtable.com/v0"
    AIRTABLE_BATCH_SIZE: int = 10  # Hard limit of the Airtable API
    AIRTABLE_BATCH_DELAY: float = 0.25  # 5 requests/second per base

    # SimplyBook
    SIMPLYBOOK_API_KEY: str = ""
    SIMPLYBOOK_COMPANY_LOGIN: str = ""
    SIMPLYBOOK_USER_LOGIN: str = ""
    SIMPLYBOOK_USER_PASSWORD: str = ""
    SIMPLYBOOK_JSON_RPC_ENDPOINT: str = "https://user-api.simplybook.it/"
    SIMPLYBOOK_TOKEN_TTL_MINUTES: int = 50

    # Shopify
    SHOPIFY_STORE_DOMAIN: str = ""
    SHOPIFY_STOREFRONT_ACCESS_TOKEN: str = ""
    SHOPIFY_API_VERSION: str = "2025-01"
    ENABLE_SHOPIFY_INTEGRATION: bool = False

    # R2 Object Storage
    R2_ENDPOINT: str = ""
    R2_ACCESS_KEY_ID: str = ""
    R2_SECRET_ACCESS_KEY: str = ""
    R2_BUCKET_NAME: str = "minimusiker-recordings"
    R2_REGION: str = "auto"
    UPLOAD_URL_EXPIRY: int = 3600
    PREVIEW_URL_EXPIRY: int = 1800
    DOWNLOAD_URL_EXPIRY: int = 86400
    REVIEW_URL_EXPIRY: int = 3600

    # Email (Resend)
    RESEND_API_KEY: str = ""
    EMAIL_FROM: str = "info@minimusiker.de"
    EMAIL_FROM_NAME: str = "Minimusiker"
    ADMIN_NOTIFICATION_EMAILS: List[str] = []

    # Sessions
    JWT_SECRET: str = "change-me"
    ADMIN_JWT_SECRET: Optional[str] = None
    TEACHER_JWT_SECRET: Optional[str] = None
    STAFF_JWT_SECRET: Optional[str] = None
    ENGINEER_JWT_SECRET: Optional[str] = None
    PARENT_JWT_SECRET: Optional[str] = None
    ADMIN_SESSION_SECONDS: int = 24 * 3600
    TEACHER_SESSION_SECONDS: int = 30 * 24 * 3600
    STAFF_SESSION_SECONDS: int = 24 * 3600
    ENGINEER_SESSION_SECONDS: int = 24 * 3600
    PARENT_SESSION_SECONDS: int = 7 * 24 * 3600
    MAGIC_LINK_TTL_HOURS: int = 24

    # Portal Credentials
    ADMIN_EMAIL: str = ""
    ADMIN_PASSWORD: str = ""
    STAFF_PORTAL_PASSWORD: str = ""
    ENGINEER_PORTAL_PASSWORD: str = ""

    # Audio Workflow
    ENGINEER_MICHA_ID: str = "recMichaEngineer01"
    ENGINEER_JAKOB_ID: str = "recJakobEngineer01"
    PARENT_AUDIO_DELAY_DAYS: int = 7
    SCHULSONG_REQUIRES_ADMIN_APPROVAL: bool = False

    def jwt_secret_for(self, role: str) -> str:
        """Return the signing secret for a session role.

        Falls back to the shared JWT_SECRET when no role override is set.
        """
        override = getattr(self, f"{role.upper()}_JWT_SECRET", None)
        return override or self.JWT_SECRET


settings = Settings()

# Ensure data directory exists
settings.DATA_DIR.mkdir(parents=True, exist_ok=True)
