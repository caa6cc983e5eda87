"""
Configuration management for the leave lifecycle backend
"""
from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from typing import Optional, List


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Required settings
    DATABASE_URL: str = Field(..., description="SQLAlchemy database URL")
    JWT_SECRET_KEY: str = Field(..., description="JWT secret key for token verification")

    # Optional settings with defaults
    JWT_ALGORITHM: str = Field(default="HS256", description="JWT algorithm")
    JWT_EXPIRE_MINUTES: int = Field(default=120, description="JWT token expiration in minutes")

    APP_ENV: str = Field(default="local", description="Application environment: local, staging, prod")
    LOG_LEVEL: str = Field(default="INFO", description="Logging level: DEBUG, INFO, WARNING, ERROR")

    ALLOWED_ORIGINS: str = Field(
        default="*",
        description="Comma-separated list of allowed CORS origins. Use '*' for local only."
    )

    VERSION: Optional[str] = Field(default=None, description="Application version (git SHA or semver)")

    # Leave policy
    LOP_BALANCE_CAP: float = Field(default=10, description="Ceiling applied to the LOP balance on every credit")
    LOP_DEFAULT_BALANCE: float = Field(default=10, description="LOP balance of a newly initialised ledger row")
    LOP_MONTHLY_CAP: float = Field(default=5, description="Maximum LOP days per calendar month")
    CASUAL_MONTHLY_CAP: float = Field(default=10, description="Maximum casual days per calendar month")
    CASUAL_BALANCE_CEILING: float = Field(default=99, description="Upper bound for the casual balance")
    SICK_BACKDATE_DAYS: int = Field(default=3, description="How many days in the past a sick leave may start")
    SICK_FORWARD_DAYS: int = Field(default=1, description="How many days ahead a sick leave may start")

    # Medical certificate blob store
    CERTIFICATE_KEY_PREFIX: str = Field(
        default="medical-certificates/",
        description="Only certificate keys under this prefix are deleted with their leave request"
    )
    CERTIFICATE_STORAGE_DIR: str = Field(default="./storage", description="Root directory of the certificate store")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True

    @field_validator("APP_ENV")
    @classmethod
    def validate_app_env(cls, v: str) -> str:
        """Validate APP_ENV"""
        allowed = ["local", "staging", "prod"]
        if v not in allowed:
            raise ValueError(f"APP_ENV must be one of {allowed}")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate LOG_LEVEL"""
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed:
            raise ValueError(f"LOG_LEVEL must be one of {allowed}")
        return v.upper()

    @field_validator("LOP_BALANCE_CAP", "LOP_MONTHLY_CAP", "CASUAL_MONTHLY_CAP", "CASUAL_BALANCE_CEILING")
    @classmethod
    def validate_positive_limit(cls, v: float) -> float:
        """Leave limits must be positive"""
        if v <= 0:
            raise ValueError("Leave limits must be greater than zero")
        return v

    def validate_production(self) -> None:
        """
        Validate settings for production environment

        Raises:
            ValueError: If production settings are invalid
        """
        if self.APP_ENV == "prod":
            if len(self.JWT_SECRET_KEY) < 32:
                raise ValueError(
                    "JWT_SECRET_KEY must be at least 32 characters in production environment"
                )
            if self.ALLOWED_ORIGINS == "*" or not self.ALLOWED_ORIGINS:
                raise ValueError(
                    "ALLOWED_ORIGINS must be explicitly set (not '*') in production environment"
                )

    def get_allowed_origins_list(self) -> List[str]:
        """
        Get list of allowed CORS origins

        Returns:
            List of allowed origins (or ['*'] for local)
        """
        if self.ALLOWED_ORIGINS == "*":
            return ["*"]
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",") if origin.strip()]


settings = Settings()

if settings.APP_ENV == "prod":
    settings.validate_production()
