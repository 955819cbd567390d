"""
Application Configuration - Pydantic Settings for type-safe config.

NO DICTIONARIES - All configuration is strongly typed.
FAIL FAST - Critical config is validated at startup.
"""

import sys

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when critical configuration is missing or invalid."""

    pass


def strip_quotes(value: str) -> str:
    """Remove one pair of surrounding double quotes left by some .env writers."""
    if value.startswith('"'):
        value = value[1:]
    if value.endswith('"'):
        value = value[:-1]
    return value


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Configuration
    api_host: str = "0.0.0.0"
    port: int = 3000
    api_title: str = "Receipt Reward Engine"
    api_version: str = "0.1.0"
    api_description: str = "Validates store receipts and authorizes token rewards"

    # Minting service (thirdweb Engine) - NO DEFAULT for the URL
    thirdweb_engine_url: str = ""
    thirdweb_engine_backend_wallet: str = ""
    thirdweb_chain_id: str = ""
    thirdweb_api_secret_key: str = ""
    engine_timeout_seconds: float = 30.0

    # Apple App Store Server API
    apple_app_store_issuer_id: str = ""
    apple_app_store_key_id: str = ""
    apple_app_store_bundle_id: str = ""
    apple_private_key_path: str = "subscription-key.p8"
    apple_environment: str = "sandbox"  # sandbox or production
    apple_verify_jws_signature: bool = False
    apple_root_ca_path: str = "AppleRootCA-G3.cer"

    # Google Play Developer API
    google_service_account_file: str = "service-account-file.json"

    # Receipt validation
    receipt_freshness_seconds: int = 300
    provider_timeout_seconds: float = 30.0
    reward_catalog_path: str | None = None  # JSON file; built-in catalog when unset

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"  # json or console

    # Observability - Metrics
    metrics_enabled: bool = True

    # Observability - Tracing
    tracing_enabled: bool = False
    otlp_endpoint: str = "http://otel-collector:4317"
    otlp_insecure: bool = True
    service_name: str = "receipt-reward-engine"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator(
        "thirdweb_engine_url",
        "thirdweb_engine_backend_wallet",
        "thirdweb_chain_id",
        "thirdweb_api_secret_key",
        "apple_app_store_issuer_id",
        "apple_app_store_key_id",
        "apple_app_store_bundle_id",
        mode="before",
    )
    @classmethod
    def unquote(cls, v: object) -> object:
        """Strip surrounding quotes from string values."""
        if isinstance(v, str):
            return strip_quotes(v.strip())
        return v

    @model_validator(mode="after")
    def validate_critical_config(self) -> "Settings":
        """
        FAIL FAST: Validate critical configuration at startup.

        The app MUST NOT start if critical config is missing.
        This prevents silent failures that only manifest at runtime.
        """
        errors: list[str] = []

        # Without an engine URL no reward can ever be issued
        if not self.thirdweb_engine_url:
            errors.append("THIRDWEB_ENGINE_URL is required but empty or missing")
        elif not self.thirdweb_engine_url.startswith(("http://", "https://")):
            errors.append(
                f"THIRDWEB_ENGINE_URL must be an http(s) URL, got: {self.thirdweb_engine_url[:20]}..."
            )

        if self.apple_environment.lower() not in ("sandbox", "production"):
            errors.append("APPLE_ENVIRONMENT must be 'sandbox' or 'production'")

        if self.log_format not in ("json", "console"):
            errors.append("LOG_FORMAT must be 'json' or 'console'")

        if self.receipt_freshness_seconds <= 0:
            errors.append("RECEIPT_FRESHNESS_SECONDS must be positive")

        # If we have errors, fail immediately with clear messaging
        if errors:
            error_msg = "\n".join(
                [
                    "",
                    "=" * 60,
                    "CRITICAL CONFIGURATION ERROR - APPLICATION CANNOT START",
                    "=" * 60,
                    *[f"  ✗ {e}" for e in errors],
                    "=" * 60,
                    "",
                ]
            )
            print(error_msg, file=sys.stderr)
            raise ConfigurationError(error_msg)

        return self

    @property
    def engine_base_url(self) -> str:
        """Engine URL without a trailing slash."""
        return self.thirdweb_engine_url.rstrip("/")


# Global settings instance - validates at import time
settings = Settings()
