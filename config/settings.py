from pydantic_settings import BaseSettings
from typing import List, Optional
import json
import socket


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "sqlite:///./gymhub.db"
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 10
    DATABASE_ECHO: bool = False

    # JWT
    JWT_SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    JWT_REFRESH_TOKEN_EXPIRE_DAYS: int = 30
    MEMBER_QR_TOKEN_EXPIRE_MINUTES: int = 5

    # Security
    BACKEND_CORS_ORIGINS: str = '["http://localhost:3000"]'

    @property
    def cors_origins(self) -> List[str]:
        try:
            origins = json.loads(self.BACKEND_CORS_ORIGINS)
        except ValueError:
            return ["http://localhost:3000"]
        if isinstance(origins, str):
            return [origins]
        return list(origins)

    # Application
    APP_NAME: str = "GymHub"
    APP_VERSION: str = "1.0.0"
    API_V1_PREFIX: str = "/api"
    DEBUG: bool = True

    # Billing
    DEFAULT_CURRENCY: str = "SAR"
    SUPPORTED_CURRENCIES: str = '["SAR","USD","AED","EUR"]'
    DEFAULT_VAT_RATE: float = 15.0
    INVOICE_PAYMENT_DUE_DAYS: int = 7

    @property
    def supported_currencies_list(self) -> List[str]:
        return json.loads(self.SUPPORTED_CURRENCIES)

    # Attendance
    AUTO_CHECKOUT_AFTER_HOURS: int = 4

    # Token housekeeping
    TOKEN_RETENTION_DAYS: int = 7

    # Webhooks
    WEBHOOK_MAX_ATTEMPTS: int = 5
    WEBHOOK_RETRY_BASE_SECONDS: int = 60
    WEBHOOK_RETRY_MAX_SECONDS: int = 6 * 60 * 60
    WEBHOOK_TIMEOUT_SECONDS: int = 10
    WEBHOOK_BATCH_SIZE: int = 100
    WEBHOOK_RESPONSE_BODY_LIMIT: int = 1000

    # Scheduler
    SCHEDULER_ENABLED: bool = True
    INSTANCE_ID: Optional[str] = None

    @property
    def instance_name(self) -> str:
        return self.INSTANCE_ID or socket.gethostname()

    # Pagination
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
