"""Tests for MCP payment helpers."""

import json
from types import SimpleNamespace

from cronos402.common import build_payment_requirements
from cronos402.mcp.types import MCPToolResult
from cronos402.mcp.utils import (
    attach_payment_response_to_meta,
    attach_payment_to_meta,
    convert_mcp_result,
    create_client_error_result,
    create_payment_required_result,
    extract_payment_required_from_result,
    extract_payment_response_from_meta,
    extract_payment_token,
    to_tool_result,
)
from cronos402.networks import CRONOS_TESTNET
from cronos402.types import PaymentResponse

from conftest import PAYER, RECIPIENT, MockMCPResult


def accepts():
    return build_payment_requirements("weather", None, "0.01", {CRONOS_TESTNET: RECIPIENT})


class TestPaymentToken:
    def test_meta_first(self):
        assert extract_payment_token({"x402/payment": "a"}, {"X-PAYMENT": "b"}) == "a"

    def test_header_fallback(self):
        assert extract_payment_token({}, {"x-payment": "b"}) == "b"
        assert extract_payment_token(None, {"X-Payment": "b"}) == "b"

    def test_missing_or_empty(self):
        assert extract_payment_token(None) is None
        assert extract_payment_token({"x402/payment": ""}, {"X-PAYMENT": ""}) is None
        assert extract_payment_token({"x402/payment": 42}) is None

    def test_attach_payment_copies_meta(self):
        meta = {"trace": "1"}
        assert attach_payment_to_meta(meta, "tok") == {"trace": "1", "x402/payment": "tok"}
        assert meta == {"trace": "1"}
        assert attach_payment_to_meta(None, "tok") == {"x402/payment": "tok"}


class TestPaymentRequired:
    def test_create_and_extract(self):
        result = create_payment_required_result(
            1, "PAYMENT_REQUIRED", accepts(), payer=None, hint="pay me"
        )

        payload = result.meta["x402/error"]
        assert result.is_error is True
        assert payload["hint"] == "pay me"
        assert "payer" not in payload
        assert json.loads(result.content[0]["text"]) == payload

        extracted = extract_payment_required_from_result(result)
        assert extracted.error == "PAYMENT_REQUIRED"
        assert extracted.accepts == accepts()

    def test_extract_from_sdk_like_result(self):
        payload = create_payment_required_result(1, "PAYMENT_REQUIRED", accepts()).meta
        result = MockMCPResult(is_error=True, meta=payload)
        assert extract_payment_required_from_result(result).accepts[0].network == CRONOS_TESTNET

    def test_not_a_payment_rejection(self):
        assert extract_payment_required_from_result(MockMCPResult()) is None
        assert extract_payment_required_from_result(MockMCPResult(is_error=True)) is None
        empty = create_payment_required_result(1, "SETTLEMENT_FAILED", [])
        assert extract_payment_required_from_result(empty) is None

    def test_malformed_accepts(self):
        result = MockMCPResult(
            is_error=True,
            meta={"x402/error": {"x402Version": 1, "error": "x", "accepts": [{"bad": 1}]}},
        )
        assert extract_payment_required_from_result(result) is None

    def test_client_error(self):
        result = create_client_error_result(1, "PAYMENT_DECLINED", "User declined payment")
        assert result.to_dict() == {
            "content": [{"type": "text", "text": "User declined payment"}],
            "isError": True,
            "_meta": {"x402/error": {"x402Version": 1, "error": "PAYMENT_DECLINED"}},
        }


class TestPaymentResponse:
    def test_attach_and_extract(self):
        result = MCPToolResult(content=[])
        response = PaymentResponse(
            success=True, transaction="0xabc", network=CRONOS_TESTNET, payer=PAYER
        )

        attach_payment_response_to_meta(result, response)

        assert extract_payment_response_from_meta(result) == response
        assert extract_payment_response_from_meta(MCPToolResult(content=[])) is None


class TestConversion:
    def test_convert_sdk_like_content(self):
        item = SimpleNamespace(
            model_dump=lambda by_alias=True, exclude_none=True: {"type": "text", "text": "hi"}
        )
        result = convert_mcp_result(SimpleNamespace(content=[item], isError=False, meta=None))
        assert result.content == [{"type": "text", "text": "hi"}]
        assert result.meta == {}

    def test_to_tool_result(self):
        assert to_tool_result("hi").content == [{"type": "text", "text": "hi"}]
        assert to_tool_result({"temp": 21}).content == [{"type": "text", "text": '{"temp": 21}'}]
        assert to_tool_result({"content": [], "isError": True}).is_error is True
        existing = MCPToolResult(content=[])
        assert to_tool_result(existing) is existing
