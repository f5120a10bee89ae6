"""
Shared fixtures for the unit tests.

``FakeTransport`` stands in for HttpTransport: it records every
PreparedRequest it is asked to send and answers from a queue of canned
responses, so client tests can assert on the exact signed request.
"""

import json
from decimal import Decimal
from typing import Any, List

import pytest

from core.auth import Credential
from core.request import PreparedRequest
from core.transport import RawResponse

FIXED_CLOCK = 1700000000.0


class FakeTransport:
    def __init__(self, *responses: Any):
        self.sent: List[PreparedRequest] = []
        self.responses = list(responses)
        self.opened = False
        self.closed = False

    def reply(self, data: Any, status: int = 200) -> "FakeTransport":
        self.responses.append((status, data))
        return self

    async def open(self) -> None:
        self.opened = True

    async def close(self) -> None:
        self.closed = True

    async def send(self, request: PreparedRequest) -> RawResponse:
        self.sent.append(request)
        if not self.responses:
            raise AssertionError(f"unexpected request {request.method} {request.path_and_query}")
        status, data = self.responses.pop(0)
        if isinstance(data, str):
            text = data
        else:
            text = json.dumps(data, default=str)
        try:
            decoded = json.loads(text, parse_float=Decimal)
        except ValueError:
            decoded = None
        return RawResponse(status=status, data=decoded, text=text)

    @property
    def last(self) -> PreparedRequest:
        return self.sent[-1]


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def credential():
    return Credential(api_key="test-key", secret="test-secret")


@pytest.fixture
def make_client(transport):
    """Factory for clients with a fixed clock, no page delay and the fake transport."""

    def build(exchange_class, credential=None, **kwargs):
        return exchange_class(
            credential=credential,
            transport=transport,
            page_delay=0,
            clock=lambda: FIXED_CLOCK,
            **kwargs,
        )

    return build
