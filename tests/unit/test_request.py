"""
Unit Tests for PreparedRequest

Run with:
    pytest tests/unit/test_request.py -v
"""

from decimal import Decimal

from core.request import BodyFormat, PreparedRequest, encode_query


class TestEncodeQuery:

    def test_keeps_order_and_skips_none(self):
        assert encode_query([("b", 1), ("skip", None), ("a", "x")]) == "b=1&a=x"

    def test_decimal_never_uses_exponent(self):
        assert encode_query([("qty", Decimal("1E-8"))]) == "qty=0.00000001"

    def test_booleans_are_lowercase(self):
        assert encode_query([("flag", True)]) == "flag=true"

    def test_reserved_characters_are_escaped(self):
        assert encode_query([("address", "a b/c")]) == "address=a%20b%2Fc"


class TestPreparedRequest:

    def test_normalizes_method_and_path(self):
        request = PreparedRequest(method="post", base_url="https://api.example.com/", path="orders")
        assert request.method == "POST"
        assert request.url == "https://api.example.com/orders"

    def test_url_with_query(self):
        request = PreparedRequest(base_url="https://h", path="/p", params=(("a", 1),))
        assert request.path_and_query == "/p?a=1"
        assert request.url == "https://h/p?a=1"

    def test_get_has_no_body(self):
        request = PreparedRequest(base_url="https://h", path="/p", body_fields=(("a", 1),))
        assert request.body == ""
        assert request.content_type is None

    def test_empty_json_body_renders_braces(self):
        request = PreparedRequest(method="POST", base_url="https://h", path="/p")
        assert request.body == "{}"
        assert request.content_type == "application/json"

    def test_form_body(self):
        request = PreparedRequest(
            method="POST", base_url="https://h", path="/p",
            body_fields=(("symbol", "BTCUSDT"), ("quantity", Decimal("0.5"))),
            body_format=BodyFormat.FORM,
        )
        assert request.body == "symbol=BTCUSDT&quantity=0.5"
        assert request.content_type == "application/x-www-form-urlencoded"

    def test_json_body_renders_decimals_as_strings(self):
        request = PreparedRequest(
            method="POST", base_url="https://h", path="/p",
            body_fields=(("amount", Decimal("-0.25")), ("id", 5)),
        )
        assert request.body == '{"amount":"-0.25","id":5}'

    def test_with_param_replaces_in_place(self):
        request = PreparedRequest(base_url="https://h", path="/p", params=(("a", 1), ("b", 2)))
        updated = request.with_param("a", 9).with_param("c", 3, first=True)
        assert updated.query == "c=3&a=9&b=2"
        assert request.query == "a=1&b=2"

    def test_header_lookup_is_case_insensitive(self):
        request = PreparedRequest(base_url="https://h", path="/p").with_header("X-Key", "v")
        assert request.header("x-key") == "v"
        assert request.header("missing") is None
