"""
Configuration Management Module

This module handles loading, validating, and providing access to application configuration
from environment variables (.env file).

Uses Pydantic Settings for automatic validation and type conversion.

Key Features:
- Loads configuration from .env file
- Keeps API credentials as SecretStr so they never appear in reprs or logs
- Converts the comma-separated exchange list to a Python list
- Tunables for transport retries, history paging delay and symbol cache TTL

Usage:
    from core.config import settings

    print(settings.bitfinex_base_url)
    credential = settings.credential_for("bitfinex")
"""

from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, SecretStr

SUPPORTED_EXCHANGES = ("binance", "bitfinex", "bittrex", "abucoins")


class Settings(BaseSettings):
    """
    Application Settings

    Values are automatically loaded from environment variables or .env file.

    Attributes:
        <exchange>_base_url: REST endpoint root for each supported exchange
        <exchange>_api_key / <exchange>_secret_key: account credentials (optional;
            only needed for private operations)
        abucoins_passphrase: third credential part required by Abucoins
        enabled_exchanges: Comma-separated list of exchanges the manager builds
        request_timeout: Timeout for HTTP requests in seconds
        max_retries: Transport attempts on 429/418/503, timeouts and connection errors
        retry_backoff: Backoff multiplier; attempt N waits retry_backoff * N seconds
        pagination_delay: Pause between history pages (seconds)
        symbol_cache_ttl: Lifetime of the cached symbol list (seconds)
        strict_order_status: Raise on unrecognized order status instead of
            mapping it to Unknown
    """

    # ============================================
    # Binance API Configuration
    # ============================================

    binance_base_url: str = Field(
        default="https://api.binance.com",
        description="Binance spot REST API base URL"
    )

    binance_api_key: SecretStr = Field(default=SecretStr(""))

    binance_secret_key: SecretStr = Field(default=SecretStr(""))

    # ============================================
    # Bitfinex API Configuration
    # ============================================

    bitfinex_base_url: str = Field(
        default="https://api.bitfinex.com",
        description="Bitfinex REST API base URL (v2 paths are appended)"
    )

    bitfinex_api_key: SecretStr = Field(default=SecretStr(""))

    bitfinex_secret_key: SecretStr = Field(default=SecretStr(""))

    # ============================================
    # Bittrex API Configuration
    # ============================================

    bittrex_base_url: str = Field(
        default="https://bittrex.com/api/v1.1",
        description="Bittrex v1.1 REST API base URL"
    )

    bittrex_api_key: SecretStr = Field(default=SecretStr(""))

    bittrex_secret_key: SecretStr = Field(default=SecretStr(""))

    # ============================================
    # Abucoins API Configuration
    # ============================================

    abucoins_base_url: str = Field(
        default="https://api.abucoins.com",
        description="Abucoins REST API base URL"
    )

    abucoins_api_key: SecretStr = Field(default=SecretStr(""))

    abucoins_secret_key: SecretStr = Field(
        default=SecretStr(""),
        description="Base64 encoded secret as issued by Abucoins"
    )

    abucoins_passphrase: SecretStr = Field(default=SecretStr(""))

    enabled_exchanges: str = Field(
        default="binance,bitfinex,bittrex,abucoins",
        description="Comma-separated list of exchanges to build"
    )

    # ============================================
    # Application Configuration
    # ============================================

    app_host: str = Field(
        default="0.0.0.0",
        description="FastAPI server host address"
    )

    app_port: int = Field(
        default=8000,
        description="FastAPI server port"
    )

    environment: str = Field(
        default="development",
        description="Application environment (development, production)"
    )

    debug: bool = Field(
        default=True,
        description="Enable debug mode"
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="Comma-separated list of allowed CORS origins"
    )

    # ============================================
    # Transport & Paging
    # ============================================

    request_timeout: int = Field(
        default=30,
        description="HTTP request timeout in seconds"
    )

    max_retries: int = Field(
        default=3,
        description="Transport attempts before giving up"
    )

    retry_backoff: float = Field(
        default=1.5,
        description="Backoff multiplier between transport attempts"
    )

    pagination_delay: float = Field(
        default=1.0,
        description="Delay between history pages in seconds"
    )

    symbol_cache_ttl: int = Field(
        default=3600,
        description="Symbol list cache lifetime in seconds"
    )

    strict_order_status: bool = Field(
        default=False,
        description="Fail on unrecognized order status values"
    )

    # ============================================
    # Pydantic Settings Configuration
    # ============================================

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        case_sensitive=False
    )

    # ============================================
    # Custom Properties
    # ============================================

    @property
    def exchanges_list(self) -> List[str]:
        """
        Convert comma-separated exchange string to a list.

        Example:
            >>> settings.exchanges_list
            ['binance', 'bitfinex', 'bittrex', 'abucoins']
        """
        return [e.strip().lower() for e in self.enabled_exchanges.split(",") if e.strip()]

    @property
    def cors_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    def base_url_for(self, exchange: str) -> str:
        return getattr(self, f"{exchange.lower()}_base_url")

    def credential_for(self, exchange: str):
        """
        Build the immutable credential for an exchange.

        Missing values stay empty; the credential only complains when a
        private operation actually needs it.

        Returns:
            Credential
        """
        # Imported lazily: core.auth pulls in core.logging, which reads settings
        from core.auth.credentials import Credential

        name = exchange.lower()
        passphrase = getattr(self, f"{name}_passphrase", None)
        return Credential(
            api_key=getattr(self, f"{name}_api_key"),
            secret=getattr(self, f"{name}_secret_key"),
            passphrase=passphrase if passphrase and passphrase.get_secret_value() else None,
        )


# ============================================
# Global Settings Instance
# ============================================

settings = Settings()


# ============================================
# Configuration Validation
# ============================================

def validate_configuration(config: Settings = None) -> None:
    """
    Validate critical configuration settings on application startup.

    Raises:
        ConfigurationError: If a setting is missing or invalid

    Credentials are reported only as configured / not configured.
    """
    # Import here to avoid circular import (logging.py imports config.py)
    from core.logging import logger
    from core.errors import ConfigurationError

    config = config or settings

    for name in config.exchanges_list:
        if name not in SUPPORTED_EXCHANGES:
            raise ConfigurationError(
                f"Unknown exchange '{name}' in ENABLED_EXCHANGES. "
                f"Must be one of: {', '.join(SUPPORTED_EXCHANGES)}"
            )

    if not (1 <= config.app_port <= 65535):
        raise ConfigurationError(f"Invalid port number: {config.app_port}. Must be between 1 and 65535")

    valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    if config.log_level.upper() not in valid_log_levels:
        raise ConfigurationError(
            f"Invalid LOG_LEVEL: '{config.log_level}'. "
            f"Must be one of: {', '.join(valid_log_levels)}"
        )

    if config.max_retries < 1:
        raise ConfigurationError("MAX_RETRIES must be at least 1")

    if config.pagination_delay < 0:
        raise ConfigurationError("PAGINATION_DELAY cannot be negative")

    logger.info("Configuration validated successfully")
    for name in config.exchanges_list:
        has_keys = bool(getattr(config, f"{name}_api_key").get_secret_value())
        logger.info(
            f"{name}: {config.base_url_for(name)} | "
            f"credentials {'configured' if has_keys else 'not configured'}"
        )
    logger.info(f"Server: {config.app_host}:{config.app_port}")
    logger.info(f"Log level: {config.log_level.upper()}")
