from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    APP_NAME: str = "couponengine"
    version: str = "0.1.0"
    DEBUG: bool = False
    APP_DOMAIN: str = "example.com"
    APP_DATABASE_DSN: str = "sqlite:////tmp/coupons.db"
    REDIS_URL: str = "redis://localhost:6379"

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    # Validation service the session state talks to
    COUPON_VALIDATION_URL: str = "http://localhost:8000/v1/coupons/validate"
    COUPON_VALIDATION_TIMEOUT: float = 10.0

    # Session persistence
    COUPON_PERSISTENCE_ENABLED: bool = True
    COUPON_STORAGE_PREFIX: str = "couponengine"
    COUPON_SESSION_TTL_SECONDS: int = 60 * 60 * 24
    COUPON_HISTORY_SIZE: int = 10
    COUPON_RECENT_CODES_SIZE: int = 5

    # Display
    DEFAULT_CURRENCY_SYMBOL: str = "₹"


settings = Settings()
