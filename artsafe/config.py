from pydantic_settings import BaseSettings
from typing import List, Union
from pydantic import field_validator


class Settings(BaseSettings):
    APP_NAME: str = "Art Is Safe Backend"
    APP_ENV: str = "development"
    APP_DEBUG: bool = True
    APP_VERSION: str = "1.0.0"
    API_V1_PREFIX: str = "/api/v1"

    HOST: str = "0.0.0.0"
    PORT: int = 8000
    CORS_ORIGINS: Union[List[str], str] = ["http://localhost:3000"]
    SITE_URL: str = "http://localhost:3000"

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            # Handle comma-separated string from environment variables
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    # Supabase Configuration
    SUPABASE_URL: str
    SUPABASE_SERVICE_ROLE_KEY: str
    SUPABASE_JWT_SECRET: str
    SUPABASE_JWT_AUDIENCE: str = "authenticated"
    SUPABASE_JWT_ALGORITHM: str = "HS256"
    DISPUTE_ATTACHMENTS_BUCKET: str = "dispute-attachments"
    ALLOWED_ATTACHMENT_TYPES: List[str] = ["jpg", "jpeg", "png", "pdf", "heic"]
    MAX_ATTACHMENT_SIZE: int = 10 * 1024 * 1024  # 10MB

    DATABASE_URL: str

    STRIPE_SECRET_KEY: str
    STRIPE_WEBHOOK_SECRET: str
    STRIPE_CURRENCY: str = "dkk"

    # Escrow fee rule: commission on the total, VAT on the commission
    PLATFORM_COMMISSION_PERCENT: int = 20
    COMMISSION_VAT_PERCENT: int = 25

    OFFER_EXPIRY_DAYS: int = 7
    PAYMENT_WINDOW_HOURS: int = 48
    ESCROW_APPROVAL_WINDOW_DAYS: int = 14
    ESCROW_REMINDER_DAYS_BEFORE: int = 7
    PRICE_DEVIATION_ALERT_PERCENT: float = 20.0

    # Price evaluation
    PRICE_EVALUATION_MAX_AGE_YEARS: int = 5
    PRICE_EVALUATION_MIN_COMPARABLES: int = 3
    PRICE_UNDERPRICED_THRESHOLD_PERCENT: float = -20.0
    PRICE_OVERPRICED_THRESHOLD_PERCENT: float = 30.0
    MARKET_SALES_FETCH_LIMIT: int = 100
    PRICE_EVALUATION_CONCURRENCY: int = 4
    PRICE_EVALUATION_REQUEST_DELAY_SECONDS: float = 0.1

    # Founder dashboard
    FOUNDER_PROJECT_ID: str = "00000000-0000-0000-0000-000000000002"
    FOUNDER_CASH_RESERVES: float = 5000.0

    CRON_SECRET: str = ""

    # Email Service (SendGrid)
    SENDGRID_API_KEY: str = ""
    EMAIL_FROM_ADDRESS: str = "noreply@artissafe.dk"
    EMAIL_FROM_NAME: str = "Art Is Safe"
    EMAIL_ENABLED: bool = True
    EMAIL_MAX_RETRIES: int = 3
    EMAIL_BATCH_SIZE: int = 10

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
