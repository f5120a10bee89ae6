"""
Request Authenticator

Runs the signing pipeline for one credential:

    nonce -> embed nonce/key -> canonical message -> HMAC -> attach signature

The authenticator owns the credential's ``NonceGenerator``, so every signed
request from this credential gets a larger nonce than the one before.
"""

import time
from typing import Callable, Optional

from core.auth.convention import SigningConvention
from core.auth.credentials import Credential
from core.auth.nonce import NonceGenerator
from core.logging import get_logger
from core.request import PreparedRequest

logger = get_logger(__name__)


class RequestAuthenticator:
    def __init__(
        self,
        convention: SigningConvention,
        credential: Credential,
        exchange: Optional[str] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.convention = convention
        self.credential = credential
        self.exchange = exchange
        self.nonces = NonceGenerator(
            convention.nonce_style,
            clock=clock,
            offset_seconds=convention.nonce_offset_seconds,
        )
        self._builder = convention.message_builder()
        self._signer = convention.signer(exchange)
        self._decorator = convention.decorator()

    def sign(self, request: PreparedRequest) -> PreparedRequest:
        """
        Return a signed copy of ``request``.

        Raises:
            ConfigurationError: If the credential lacks a key, secret or a
                required passphrase. Nothing is sent in that case.
        """
        self.credential.require(self.exchange, needs_passphrase=self.convention.requires_passphrase)

        api_key = self.credential.api_key.get_secret_value()
        nonce = self.nonces.next()

        request = self._decorator.embed(request, api_key, nonce)
        message = self._builder.build_for(request, nonce)
        signature = self._signer.sign(message, self.credential.secret.get_secret_value())

        passphrase = self.credential.passphrase.get_secret_value() if self.credential.passphrase else None
        logger.debug(f"Signed {self.exchange} {request.method} {request.path} (nonce {nonce})")
        signed = self._decorator.decorate(request, api_key, signature, nonce, passphrase)
        return signed.model_copy(update={"signed": True})
