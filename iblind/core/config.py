# iblind/core/config.py
import os
from dotenv import load_dotenv

load_dotenv()

class Settings:
    FIREBASE_PROJECT_ID: str = os.getenv("FIREBASE_PROJECT_ID", "iblind-pro")
    FIREBASE_SERVICE_ACCOUNT_PATH: str = os.getenv(
        "FIREBASE_SERVICE_ACCOUNT_PATH",
        "firebase-service-account.json",
    )

    # Tenant defaults, used until an admin saves the tenant settings
    COMPANY_NAME: str = os.getenv("COMPANY_NAME", "iBlind Pro")
    WARRANTY_DEFAULT_DAYS: int = int(os.getenv("WARRANTY_DEFAULT_DAYS", "365"))
    WARRANTY_PREFIX: str = os.getenv("WARRANTY_PREFIX", "IB")
    PRIMARY_COLOR: str = os.getenv("PRIMARY_COLOR", "#6366f1")

    # Intake rules
    MAX_PHOTOS: int = int(os.getenv("MAX_PHOTOS", "6"))
    MIN_DAMAGE_NOTES: int = int(os.getenv("MIN_DAMAGE_NOTES", "3"))
    MIN_DELETION_REASON: int = int(os.getenv("MIN_DELETION_REASON", "5"))

    # Pending secondary effects (failed stock deductions) are retried by the scheduler
    ENABLE_EFFECT_RETRY: bool = os.getenv("ENABLE_EFFECT_RETRY", "true").lower() == "true"
    EFFECT_RETRY_MINUTES: int = int(os.getenv("EFFECT_RETRY_MINUTES", "5"))
    EFFECT_MAX_ATTEMPTS: int = int(os.getenv("EFFECT_MAX_ATTEMPTS", "10"))

    # Timezone used for "today" on the dashboard (default UTC-3, Brasília)
    # Set via environment variable: TZ_OFFSET=-3 for UTC-3, etc.
    TZ_OFFSET: int = int(os.getenv("TZ_OFFSET", "-3"))

    CORS_ORIGINS: list = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()


settings = Settings()
