from pydantic_settings import BaseSettings
from typing import Optional

class Settings(BaseSettings):
    APP_ENV: str = "development"
    DATABASE_URL: str = "sqlite:///./examprep.db"

    # Fernet key used to encrypt pending registration payloads at rest
    FERNET_KEY: str
    JWT_SECRET_KEY: str
    ACCESS_TOKEN_EXPIRE_HOURS: int = 24
    # When set, POST /admin/setup requires it in X-Setup-Key
    ADMIN_SETUP_KEY: str = ""

    OTP_EXPIRY_SECONDS: int = 120
    OTP_MAX_ATTEMPTS: int = 5

    # Razorpay
    RAZORPAY_KEY_ID: str = ""
    RAZORPAY_KEY_SECRET: str = ""
    RAZORPAY_API_URL: str = "https://api.razorpay.com/v1"
    GATEWAY_TIMEOUT_SECONDS: float = 10.0

    # Transactional email HTTP API
    EMAIL_API_URL: str = ""
    EMAIL_API_KEY: str = ""
    EMAIL_FROM: str = "JEE-NEET Preparation <no-reply@examprep.in>"

    # Redis Configuration
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_PASSWORD: Optional[str] = None
    REDIS_DB: int = 0

    # Comma-separated list of allowed origins
    CORS_ORIGINS: str = "http://localhost:3000"

    class Config:
        env_file = ".env"

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into list"""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

settings = Settings()
