"""
Request Decorator

Places authentication material on a request. It works in two steps around
signing:

1. ``embed()`` puts the nonce and API key into the query or body when the
   exchange signs them (Binance ``timestamp``, Bittrex ``apikey``/``nonce``).
   These go first, ahead of the operation's own parameters.
2. ``decorate()`` adds the signature and any header-located items.

Both steps replace an existing entry of the same name instead of appending,
so running them twice yields the same request.
"""

from enum import Enum
from typing import Any, Optional

from core.request import PreparedRequest


class Placement(str, Enum):
    HEADER = "header"
    QUERY = "query"
    BODY = "body"
    NONE = "none"


def _place(request: PreparedRequest, placement: Placement, name: str, value: Any, first: bool) -> PreparedRequest:
    if placement == Placement.HEADER:
        return request.with_header(name, str(value))
    if placement == Placement.QUERY:
        return request.with_param(name, value, first=first)
    if placement == Placement.BODY:
        return request.with_body_field(name, value, first=first)
    return request


class RequestDecorator:
    """
    Args:
        nonce_placement / nonce_field: Where the nonce travels
        api_key_placement / api_key_field: Where the API key travels
        signature_placement / signature_field: Where the signature travels
        passphrase_field: Header carrying the passphrase, if any
    """

    def __init__(
        self,
        nonce_placement: Placement,
        nonce_field: str,
        api_key_placement: Placement,
        api_key_field: str,
        signature_placement: Placement,
        signature_field: str,
        passphrase_field: Optional[str] = None,
    ):
        self.nonce_placement = Placement(nonce_placement)
        self.nonce_field = nonce_field
        self.api_key_placement = Placement(api_key_placement)
        self.api_key_field = api_key_field
        self.signature_placement = Placement(signature_placement)
        self.signature_field = signature_field
        self.passphrase_field = passphrase_field

    def embed(self, request: PreparedRequest, api_key: str, nonce: Any) -> PreparedRequest:
        """Insert signed-over (query/body) nonce and key ahead of other fields."""
        # key is placed last so it ends up first when both are prepended
        if self.nonce_placement in (Placement.QUERY, Placement.BODY):
            request = _place(request, self.nonce_placement, self.nonce_field, nonce, first=True)
        if self.api_key_placement in (Placement.QUERY, Placement.BODY):
            request = _place(request, self.api_key_placement, self.api_key_field, api_key, first=True)
        return request

    def decorate(
        self,
        request: PreparedRequest,
        api_key: str,
        signature: str,
        nonce: Any,
        passphrase: Optional[str] = None,
    ) -> PreparedRequest:
        """Attach header items and the signature."""
        if self.api_key_placement == Placement.HEADER:
            request = request.with_header(self.api_key_field, api_key)
        if self.nonce_placement == Placement.HEADER:
            request = request.with_header(self.nonce_field, str(nonce))
        if self.passphrase_field and passphrase:
            request = request.with_header(self.passphrase_field, passphrase)
        return _place(request, self.signature_placement, self.signature_field, signature, first=False)
