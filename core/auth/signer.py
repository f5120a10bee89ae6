"""
HMAC Signer

Computes ``HMAC(secret, message)`` with the exchange's digest and renders it
as lower-case hex or standard base64. Some exchanges issue the secret itself
base64 encoded; ``SecretEncoding.BASE64`` decodes it before use.

Signing is deterministic and the secret never appears in error messages.
"""

import base64
import binascii
import hashlib
import hmac
from enum import Enum
from typing import Optional, Union

from core.errors import ConfigurationError


class DigestAlgorithm(str, Enum):
    SHA256 = "sha256"
    SHA384 = "sha384"
    SHA512 = "sha512"


class SignatureEncoding(str, Enum):
    HEX = "hex"
    BASE64 = "base64"


class SecretEncoding(str, Enum):
    RAW = "raw"
    BASE64 = "base64"


_DIGESTS = {
    DigestAlgorithm.SHA256: hashlib.sha256,
    DigestAlgorithm.SHA384: hashlib.sha384,
    DigestAlgorithm.SHA512: hashlib.sha512,
}


class Signer:
    """
    Example:
        >>> Signer(DigestAlgorithm.SHA256).sign("message", "secret")
        '8b5f48702995c1598c573db1e21866a9b825d4a794d169d7060a03605796360b'
    """

    def __init__(
        self,
        digest: DigestAlgorithm = DigestAlgorithm.SHA256,
        encoding: SignatureEncoding = SignatureEncoding.HEX,
        secret_encoding: SecretEncoding = SecretEncoding.RAW,
        exchange: Optional[str] = None,
    ):
        self.digest = DigestAlgorithm(digest)
        self.encoding = SignatureEncoding(encoding)
        self.secret_encoding = SecretEncoding(secret_encoding)
        self.exchange = exchange

    def _key(self, secret: Union[str, bytes]) -> bytes:
        if not secret:
            raise ConfigurationError("API secret is not configured", self.exchange)

        raw = secret.encode("utf-8") if isinstance(secret, str) else secret
        if self.secret_encoding == SecretEncoding.BASE64:
            try:
                return base64.b64decode(raw, validate=True)
            except (binascii.Error, ValueError):
                # deliberately no detail: the input is the secret
                raise ConfigurationError("API secret is not valid base64", self.exchange) from None
        return raw

    def sign(self, message: Union[str, bytes], secret: Union[str, bytes]) -> str:
        key = self._key(secret)
        payload = message.encode("utf-8") if isinstance(message, str) else message
        mac = hmac.new(key, payload, _DIGESTS[self.digest])

        if self.encoding == SignatureEncoding.BASE64:
            return base64.b64encode(mac.digest()).decode("ascii")
        return mac.hexdigest()
