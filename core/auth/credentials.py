"""
API Credentials

An immutable key/secret(/passphrase) triple for one account on one exchange.
Values are ``SecretStr`` so they are masked in reprs, logs and tracebacks.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr

from core.errors import ConfigurationError


class Credential(BaseModel):
    model_config = ConfigDict(frozen=True)

    api_key: SecretStr = Field(default=SecretStr(""))
    secret: SecretStr = Field(default=SecretStr(""))
    passphrase: Optional[SecretStr] = None

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key.get_secret_value() and self.secret.get_secret_value())

    def require(self, exchange: Optional[str] = None, needs_passphrase: bool = False) -> None:
        """
        Raise ConfigurationError unless everything a private call needs is set.
        """
        if not self.api_key.get_secret_value():
            raise ConfigurationError("API key is not configured", exchange)
        if not self.secret.get_secret_value():
            raise ConfigurationError("API secret is not configured", exchange)
        if needs_passphrase and not (self.passphrase and self.passphrase.get_secret_value()):
            raise ConfigurationError("API passphrase is not configured", exchange)
