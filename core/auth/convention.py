"""
Signing Conventions

A ``SigningConvention`` captures everything that differs between exchanges'
authentication schemes as data, so adding an exchange means writing one
record instead of a new signing routine.
"""

from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict

from core.auth.canonical import CanonicalMessageBuilder, MessagePart
from core.auth.decorator import Placement, RequestDecorator
from core.auth.nonce import NonceStyle
from core.auth.signer import DigestAlgorithm, SecretEncoding, SignatureEncoding, Signer


class SigningConvention(BaseModel):
    """
    Attributes:
        nonce_style: Clock resolution/rendering of the nonce
        nonce_offset_seconds: Added to the local clock
        nonce_placement / nonce_field: Where the nonce travels
        message_parts: Ordered parts of the string to sign
        path_prefix: Prepended to the path inside the signed message
        body_methods: Methods whose body participates in the message
            (None means any method that carries a body)
        digest / signature_encoding / secret_encoding: HMAC parameters
        signature_placement / signature_field: Where the signature travels
        api_key_placement / api_key_field: Where the API key travels
        passphrase_field: Header for the passphrase (None if not used)
    """

    model_config = ConfigDict(frozen=True)

    nonce_style: NonceStyle = NonceStyle.UNIX_MILLISECONDS
    nonce_offset_seconds: float = 0.0
    nonce_placement: Placement = Placement.HEADER
    nonce_field: str = "nonce"

    message_parts: Tuple[MessagePart, ...]
    path_prefix: str = ""
    body_methods: Optional[Tuple[str, ...]] = None

    digest: DigestAlgorithm = DigestAlgorithm.SHA256
    signature_encoding: SignatureEncoding = SignatureEncoding.HEX
    secret_encoding: SecretEncoding = SecretEncoding.RAW

    signature_placement: Placement = Placement.HEADER
    signature_field: str = "signature"

    api_key_placement: Placement = Placement.HEADER
    api_key_field: str = "apikey"

    passphrase_field: Optional[str] = None

    @property
    def requires_passphrase(self) -> bool:
        return self.passphrase_field is not None

    def message_builder(self) -> CanonicalMessageBuilder:
        return CanonicalMessageBuilder(
            parts=self.message_parts,
            path_prefix=self.path_prefix,
            body_methods=self.body_methods,
        )

    def signer(self, exchange: Optional[str] = None) -> Signer:
        return Signer(
            digest=self.digest,
            encoding=self.signature_encoding,
            secret_encoding=self.secret_encoding,
            exchange=exchange,
        )

    def decorator(self) -> RequestDecorator:
        return RequestDecorator(
            nonce_placement=self.nonce_placement,
            nonce_field=self.nonce_field,
            api_key_placement=self.api_key_placement,
            api_key_field=self.api_key_field,
            signature_placement=self.signature_placement,
            signature_field=self.signature_field,
            passphrase_field=self.passphrase_field,
        )
