from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field(..., alias="DATABASE_URL")

    jwt_secret_key: str = Field(..., alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field("HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(60 * 24 * 7, alias="ACCESS_TOKEN_EXPIRE_MINUTES")

    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    # Dues engine
    due_day_of_month: int = Field(15, alias="DUE_DAY_OF_MONTH", ge=1, le=28)
    rent_fee_type: str = Field("Monthly Rent", alias="RENT_FEE_TYPE")
    inactive_retention_days: int = Field(30, alias="INACTIVE_RETENTION_DAYS", ge=0)
    lock_retry_attempts: int = Field(1, alias="LOCK_RETRY_ATTEMPTS", ge=0)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
