from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr, computed_field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_ADMIN_PASSWORD = "password"


class Settings(BaseSettings):
    """Application configuration sourced from environment variables."""

    model_config = SettingsConfigDict(env_file=(".env",), env_file_encoding="utf-8", extra="ignore")

    app_env: Literal["development", "production", "test"] = "development"
    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "INFO"
    log_json: bool = False
    log_file: str | None = None
    allowed_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])
    # Auth/JWT settings. The secret has no default: the process refuses to start without it.
    jwt_secret: SecretStr = Field(description="Secret key for signing access tokens")
    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    access_token_exp_minutes: int = Field(default=24 * 60, gt=0, description="Access token lifetime in minutes")
    admin_username: str = "admin"
    admin_password: SecretStr = SecretStr(DEFAULT_ADMIN_PASSWORD)
    # Cluster access
    kube_config_path: str | None = None
    kube_context: str | None = None
    in_cluster: bool = False
    kube_request_timeout_seconds: float = Field(default=15.0, gt=0)
    metrics_enabled: bool = True

    @field_validator("jwt_secret")
    @classmethod
    def _secret_not_blank(cls, value: SecretStr) -> SecretStr:
        if not value.get_secret_value().strip():
            raise ValueError("JWT_SECRET must be a non-empty string")
        return value

    @model_validator(mode="after")
    def _no_default_password_in_production(self) -> "Settings":
        if self.app_env == "production" and self.admin_password.get_secret_value() == DEFAULT_ADMIN_PASSWORD:
            raise ValueError("ADMIN_PASSWORD must be changed from the default in production")
        return self

    @computed_field
    @property
    def is_debug(self) -> bool:
        return self.app_env == "development"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()  # type: ignore[call-arg]
