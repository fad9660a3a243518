from pydantic_settings import BaseSettings
from typing import Optional

class Settings(BaseSettings):
    # Application
    PROJECT_NAME: str = "Event Check-in"
    VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "production"

    # Row store
    STORE_BACKEND: str = "sql"  # "sql" or "memory"
    DATABASE_URL: str = "sqlite:///./event_checkin.db"
    REGISTRATION_SHEET: str = "Registrations"
    CONTROL_SHEET: str = "Control"
    TEMPLATE_SHEET: str = "Template"
    FAILLOG_SHEET: str = "FailLog"
    CONTROL_KEYWORD: str = "SystemOpen"

    # Security
    STAFF_PASSWORD: str = "change-me-staff"
    TOKEN_SECRET: str = "change-me-token-secret"

    # One-time codes (0 disables expiry)
    OTP_TTL_SECONDS: int = 600

    # Mail (no SMTP_HOST means messages are kept in memory and logged)
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: int = 587
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    MAIL_FROM: str = "Do not reply <noreply@example.com>"
    OTP_SUBJECT: str = "Your OTP Code"
    CONFIRMATION_SUBJECT: Optional[str] = None  # overrides the template subject

    # HTTP
    CORS_ALLOW_ORIGINS: list = ["*"]

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = "app.log"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"

settings = Settings()
