"""
Unit Tests for Configuration Module

These tests verify that the configuration system works correctly:
- Default values are applied when nothing is set
- Credentials are built per exchange and stay masked
- Validation catches invalid configurations before anything is sent

Run with:
    pytest tests/unit/test_config.py -v
"""

import pytest

from core.config import SUPPORTED_EXCHANGES, Settings, validate_configuration
from core.errors import ConfigurationError


def make_settings(**overrides) -> Settings:
    """Settings that ignore the developer's .env file."""
    return Settings(_env_file=None, **overrides)


class TestDefaults:

    def test_base_urls(self):
        config = make_settings()
        for name in SUPPORTED_EXCHANGES:
            assert config.base_url_for(name).startswith("https://")
        assert config.base_url_for("BITTREX") == "https://bittrex.com/api/v1.1"

    def test_transport_defaults(self):
        config = make_settings()
        assert config.max_retries == 3
        assert config.retry_backoff == 1.5
        assert config.pagination_delay == 1.0
        assert config.strict_order_status is False

    def test_all_exchanges_enabled(self):
        assert make_settings().exchanges_list == list(SUPPORTED_EXCHANGES)


class TestExchangeList:

    def test_parsing_strips_and_lowercases(self):
        config = make_settings(enabled_exchanges=" Bittrex, ,ABUCOINS ")
        assert config.exchanges_list == ["bittrex", "abucoins"]

    def test_cors_origins(self):
        config = make_settings(cors_origins="http://a, http://b")
        assert config.cors_origins_list == ["http://a", "http://b"]


class TestCredentials:

    def test_credential_for(self):
        config = make_settings(bittrex_api_key="k", bittrex_secret_key="s")
        credential = config.credential_for("bittrex")
        assert credential.api_key.get_secret_value() == "k"
        assert credential.secret.get_secret_value() == "s"
        assert credential.passphrase is None
        assert credential.is_configured

    def test_abucoins_passphrase(self):
        config = make_settings(abucoins_api_key="k", abucoins_secret_key="czM=", abucoins_passphrase="p")
        credential = config.credential_for("abucoins")
        assert credential.passphrase.get_secret_value() == "p"

    def test_missing_credentials_are_empty(self):
        credential = make_settings().credential_for("binance")
        assert not credential.is_configured

    def test_secrets_are_masked(self):
        config = make_settings(binance_secret_key="super-secret")
        assert "super-secret" not in repr(config)
        assert "super-secret" not in str(config.credential_for("binance"))


class TestValidation:

    def test_defaults_are_valid(self):
        validate_configuration(make_settings())

    def test_unknown_exchange(self):
        with pytest.raises(ConfigurationError, match="Unknown exchange 'kraken'"):
            validate_configuration(make_settings(enabled_exchanges="bittrex,kraken"))

    def test_invalid_port(self):
        with pytest.raises(ConfigurationError, match="Invalid port"):
            validate_configuration(make_settings(app_port=70000))

    def test_invalid_log_level(self):
        with pytest.raises(ConfigurationError, match="LOG_LEVEL"):
            validate_configuration(make_settings(log_level="LOUD"))

    def test_retries_must_be_positive(self):
        with pytest.raises(ConfigurationError):
            validate_configuration(make_settings(max_retries=0))

    def test_negative_pagination_delay(self):
        with pytest.raises(ConfigurationError):
            validate_configuration(make_settings(pagination_delay=-1))

    def test_credentials_are_not_logged(self, caplog):
        config = make_settings(bittrex_api_key="visible-key", bittrex_secret_key="hidden")
        with caplog.at_level("INFO"):
            validate_configuration(config)
        assert "bittrex" in caplog.text
        assert "credentials configured" in caplog.text
        assert "visible-key" not in caplog.text
        assert "hidden" not in caplog.text
