"""
Application configuration using Pydantic Settings.
Loads configuration from environment variables with sensible defaults.
"""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from lider_gateway.constants import AppLevel


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_level: AppLevel = AppLevel.DEVELOPMENT

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = 3000
    api_key: str = ""

    # Relay targets
    lider_url: str = "http://localhost:8080"
    eta_url: str = "http://localhost:8081"
    relay_timeout_seconds: float = 15.0

    # Job queue / scheduler
    job_cron_expression: str = "0 * * * * *"
    job_max_retries: int = 3
    job_dispatch_timeout_seconds: float = 30.0
    scheduler_enabled: bool = True

    # LDAP
    ldap_url: str | None = None
    ldap_bind_dn: str | None = None
    ldap_bind_password: str | None = None
    ldap_search_base: str | None = None
    ldap_username_attribute: str = "uid"
    ldap_timeout_seconds: int = 15
    ldap_config_file: str | None = None

    # Error translation
    fallback_language: str = "en"

    # Rate Limiting
    rate_limit_requests_per_minute: int = 3000

    # Observability
    otel_enabled: bool = False
    otel_exporter_otlp_endpoint: str = "http://localhost:4317"
    otel_service_name: str = "lider-gateway"
    log_level: str = "INFO"
    log_format: str = "json"  # json or console

    @property
    def is_production(self) -> bool:
        return self.app_level == AppLevel.PRODUCTION

    def ldap_options(self) -> dict[str, str]:
        """
        Merge LDAP settings from the environment with the optional key=value file.

        Keys in the file use the upper-case environment names
        (``LDAP_URL``, ``LDAP_BIND_DN``, ...) and win over environment values.

        Returns:
            Mapping of lower-case setting name to value.
        """
        options = {
            "ldap_url": self.ldap_url,
            "ldap_bind_dn": self.ldap_bind_dn,
            "ldap_bind_password": self.ldap_bind_password,
            "ldap_search_base": self.ldap_search_base,
            "ldap_username_attribute": self.ldap_username_attribute,
        }
        if self.ldap_config_file:
            for key, value in load_key_value_file(self.ldap_config_file).items():
                options[key.lower()] = value
        return {key: value for key, value in options.items() if value}


def load_key_value_file(path: str | Path) -> dict[str, str]:
    """
    Read a ``key=value`` configuration file.

    Blank lines, ``#`` comments, lines without ``=`` and entries with an
    empty key or value are skipped. Keys and values are stripped.

    Args:
        path: Path to the file.

    Returns:
        Parsed entries in file order.

    Raises:
        OSError: If the file cannot be read.
    """
    entries: dict[str, str] = {}
    for line in Path(path).read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        key, value = key.strip(), value.strip()
        if key and value:
            entries[key] = value
    return entries


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
