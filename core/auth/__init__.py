"""
Request Authentication

Building blocks that turn an unsigned ``PreparedRequest`` into a signed one:

- nonce: strictly increasing per-credential nonce values
- canonical: the exact byte string an exchange expects to be signed
- signer: HMAC digest and output encoding
- decorator: where nonce, key and signature are placed on the request
- convention: one declarative record per exchange tying the above together
- authenticator: runs the pipeline for one credential
"""

from core.auth.authenticator import RequestAuthenticator
from core.auth.canonical import CanonicalMessageBuilder, MessagePart
from core.auth.convention import SigningConvention
from core.auth.credentials import Credential
from core.auth.decorator import Placement, RequestDecorator
from core.auth.nonce import NonceGenerator, NonceStyle
from core.auth.signer import DigestAlgorithm, SecretEncoding, SignatureEncoding, Signer

__all__ = [
    "CanonicalMessageBuilder",
    "Credential",
    "DigestAlgorithm",
    "MessagePart",
    "NonceGenerator",
    "NonceStyle",
    "Placement",
    "RequestAuthenticator",
    "RequestDecorator",
    "SecretEncoding",
    "SignatureEncoding",
    "Signer",
    "SigningConvention",
]
