"""
Application settings loaded from environment variables.
Uses pydantic-settings for type-safe configuration.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with defaults for development."""

    # Database
    # Single-file SQLite by default; PostgreSQL URLs (postgresql+psycopg://...) work too.
    database_url: str = "sqlite:///./trazabilidad.db"
    sql_echo: bool = False

    # Server
    rest_api_port: int = 8000

    # CORS: comma-separated list of allowed origins (empty uses the local frontend)
    allowed_origins: str = ""

    # Environment
    environment: str = "development"
    debug: bool = True

    # Lots
    default_weight_unit: str = "kg"
    # Decimal places kept when scaling planned recipe quantities to a lot
    lot_weight_precision: int = 3

    # Labels
    allergen_marker: str = "*"
    label_date_format: str = "%d/%m/%Y"
    # Nesting levels followed when flattening sub-recipes onto a label
    label_max_depth: int = 16

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False

    def validate_production_settings(self) -> list[str]:
        """
        Validate settings that must not keep development defaults in production.
        Returns a list of validation errors. Empty list means all checks pass.
        """
        errors = []

        if self.environment == "production":
            if self.debug:
                errors.append("DEBUG must be False in production")

            if self.sql_echo:
                errors.append("SQL_ECHO must be False in production")

            if not self.allowed_origins:
                errors.append("ALLOWED_ORIGINS must be set in production (comma-separated list)")

        if self.label_max_depth < 1:
            errors.append("LABEL_MAX_DEPTH must be at least 1")

        return errors


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience exports
settings = get_settings()

# Direct access to commonly used settings
DATABASE_URL = settings.database_url
