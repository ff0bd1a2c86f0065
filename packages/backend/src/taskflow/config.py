"""Application configuration via environment variables.

Uses pydantic-settings to load config from env vars with TASKFLOW_ prefix
(or a local .env file). Nothing here raises on a missing value: the store
address and signing secret are reported at startup by main.lifespan, and
the process keeps running so the health endpoint stays reachable.
"""

from pydantic_settings import BaseSettings

REQUIRED_SETTINGS = ("database_url", "jwt_secret")


class Settings(BaseSettings):
    """All app configuration. Set via TASKFLOW_* env vars."""

    # Store
    database_url: str = ""
    store_connect_attempts: int = 5
    store_connect_delay_seconds: float = 5.0
    store_connect_timeout_seconds: float = 5.0
    auto_create_schema: bool = False

    # Redis (rate limiting only)
    redis_url: str = "redis://localhost:6379/0"

    # Auth
    jwt_secret: str = ""
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24 * 7
    bcrypt_rounds: int = 12

    # Server
    environment: str = "development"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 5000
    api_prefix: str = "/api"

    # CORS
    cors_origins: list[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
    ]

    # Rate limiting
    rate_limit_rpm: int = 100  # requests per minute per IP
    rate_limit_auth_rpm: int = 10  # login/register

    model_config = {
        "env_prefix": "TASKFLOW_",
        "env_file": ".env",
        "extra": "ignore",
    }

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def missing_required(self) -> list[str]:
        """Names of required settings that are unset or blank."""
        return [
            name for name in REQUIRED_SETTINGS
            if not str(getattr(self, name)).strip()
        ]


# Singleton used by the default app
settings = Settings()
