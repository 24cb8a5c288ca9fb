"""
Freight Calc Core - Configuration Management

Settings for the calculation service, loaded from environment variables
and an optional .env file:
- Runtime environment and debug mode
- Logging level and format
- API metadata and CORS origins
- Calculation defaults (currency, safety thresholds)
"""

from typing import List
from pydantic import Field
from pydantic_settings import BaseSettings
from functools import lru_cache
import logging

logger = logging.getLogger(__name__)

VALID_ENVIRONMENTS = ("development", "staging", "production")
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Uses pydantic-settings for validation and type coercion.
    """

    # ==================== ENVIRONMENT ====================
    ENVIRONMENT: str = Field(
        default="development",
        description="Runtime environment: development, staging, production"
    )
    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode (auto-enabled in development)"
    )

    # ==================== LOGGING ====================
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level: DEBUG, INFO, WARNING, ERROR"
    )
    LOG_JSON: bool = Field(
        default=False,
        description="Force JSON log output outside production"
    )

    # ==================== API ====================
    API_TITLE: str = Field(
        default="Freight Calc Core API",
        description="API title for OpenAPI docs"
    )
    API_VERSION: str = Field(
        default="1.0.0",
        description="API version"
    )
    CORS_ORIGINS: str = Field(
        default="",
        description="Comma-separated list of allowed origins"
    )

    # ==================== CALCULATIONS ====================
    DEFAULT_CURRENCY: str = Field(
        default="IDR",
        description="Currency assumed for fees entered without one"
    )
    LIFT_UTILIZATION_THRESHOLD: float = Field(
        default=80.0,
        description="Crane utilization (%) above which a lift is not considered safe"
    )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True

    # ==================== COMPUTED PROPERTIES ====================

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT.lower() == "development"

    @property
    def debug_enabled(self) -> bool:
        """Enable debug in development or when explicitly set"""
        return self.DEBUG or self.is_development

    @property
    def json_logs(self) -> bool:
        return self.LOG_JSON or self.is_production

    @property
    def cors_origins_list(self) -> List[str]:
        """
        Parse CORS_ORIGINS into a list.

        Outside production the local frontend dev servers are always allowed.
        """
        if self.CORS_ORIGINS == "*":
            return ["*"]

        origins = [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

        if not self.is_production:
            for dev_origin in ("http://localhost:3000", "http://127.0.0.1:3000"):
                if dev_origin not in origins:
                    origins.append(dev_origin)

        return origins

    def validate_production_config(self) -> List[str]:
        """
        Validate configuration for production deployment.
        Returns list of validation errors.
        """
        errors = []

        if self.ENVIRONMENT.lower() not in VALID_ENVIRONMENTS:
            errors.append(f"ENVIRONMENT must be one of {', '.join(VALID_ENVIRONMENTS)}")

        if self.LOG_LEVEL.upper() not in VALID_LOG_LEVELS:
            errors.append(f"LOG_LEVEL must be one of {', '.join(VALID_LOG_LEVELS)}")

        if not 0 < self.LIFT_UTILIZATION_THRESHOLD <= 100:
            errors.append("LIFT_UTILIZATION_THRESHOLD must be between 0 and 100")

        if self.is_production:
            if self.CORS_ORIGINS == "*":
                errors.append("CORS_ORIGINS cannot be '*' in production")
            if self.DEBUG:
                errors.append("DEBUG should be False in production")

        return errors


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Settings are loaded once and cached for the application lifetime.
    """
    settings = Settings()

    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Debug: {settings.debug_enabled}")

    if settings.is_production:
        errors = settings.validate_production_config()
        if errors:
            for error in errors:
                logger.error(f"Configuration error: {error}")
            raise ValueError(f"Production configuration invalid: {', '.join(errors)}")

    return settings


# ==================== CORS CONFIGURATION ====================

def get_cors_config() -> dict:
    """Keyword arguments for CORSMiddleware."""
    settings = get_settings()
    origins = settings.cors_origins_list

    return {
        "allow_origins": origins,
        # Browsers reject credentials with a wildcard origin
        "allow_credentials": origins != ["*"],
        "allow_methods": ["GET", "POST", "OPTIONS"],
        "allow_headers": [
            "Authorization",
            "Content-Type",
            "Accept",
            "Origin",
            "X-Request-ID",
        ],
        "expose_headers": ["X-Request-ID"],
        "max_age": 600,
    }


# ==================== ENVIRONMENT VALIDATION ====================

def validate_environment() -> dict:
    """
    Check the loaded settings.

    Returns a status dict with errors (blocking) and warnings.
    """
    settings = get_settings()

    status = {
        "valid": True,
        "environment": settings.ENVIRONMENT,
        "errors": [],
        "warnings": [],
    }

    errors = settings.validate_production_config()
    if errors:
        status["errors"].extend(errors)
        status["valid"] = False

    if not settings.CORS_ORIGINS:
        status["warnings"].append("CORS_ORIGINS not set, only local dev origins allowed")

    if settings.CORS_ORIGINS == "*" and not settings.is_production:
        status["warnings"].append("CORS_ORIGINS is '*', all origins allowed")

    return status
