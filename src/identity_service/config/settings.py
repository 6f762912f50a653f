"""Runtime settings loaded from environment variables."""

from functools import lru_cache
from typing import Annotated

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from identity_service.config.jwt_options import JwtOptions

NonEmptyStr = Annotated[str, Field(min_length=1)]
PositiveInt = Annotated[int, Field(gt=0)]
PositiveFloat = Annotated[float, Field(gt=0.0)]


class Settings(BaseSettings):
    """Environment-driven application settings."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: NonEmptyStr = Field(validation_alias="DATABASE_URL")
    jwt_issuer: str = Field(default="", validation_alias="JWT_ISSUER")
    jwt_audience: str = Field(default="", validation_alias="JWT_AUDIENCE")
    jwt_signing_key: str = Field(default="", validation_alias="JWT_SIGNING_KEY")
    access_token_lifetime_minutes: PositiveInt = Field(
        default=15,
        validation_alias="ACCESS_TOKEN_LIFETIME_MINUTES",
    )
    refresh_token_lifetime_days: PositiveInt = Field(
        default=7,
        validation_alias="REFRESH_TOKEN_LIFETIME_DAYS",
    )
    password_hash_iterations: int = Field(
        default=100_000,
        ge=10_000,
        validation_alias="PASSWORD_HASH_ITERATIONS",
    )
    default_registration_roles: str = Field(
        default="Manager,Cashier",
        validation_alias="DEFAULT_REGISTRATION_ROLES",
    )
    refresh_token_retention_days: PositiveInt = Field(
        default=30,
        validation_alias="REFRESH_TOKEN_RETENTION_DAYS",
    )
    token_reaper_interval_seconds: PositiveFloat = Field(
        default=3600.0,
        validation_alias="TOKEN_REAPER_INTERVAL_SECONDS",
    )
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    def registration_roles(self) -> tuple[str, ...]:
        """Return the comma-separated default registration roles as a tuple."""

        return tuple(
            role.strip() for role in self.default_registration_roles.split(",") if role.strip()
        )

    def jwt_options(self) -> JwtOptions:
        """Build and validate the immutable JWT configuration value."""

        return JwtOptions(
            issuer=self.jwt_issuer,
            audience=self.jwt_audience,
            signing_key=self.jwt_signing_key,
            access_token_lifetime_minutes=self.access_token_lifetime_minutes,
            refresh_token_lifetime_days=self.refresh_token_lifetime_days,
        ).validate()


@lru_cache(maxsize=1)
def load_settings() -> Settings:
    """Load and cache application settings."""

    return Settings()  # type: ignore[call-arg]
