"""Utility functions for MCP payment handling."""

import json
import logging
from typing import Any, Mapping, Optional, Sequence

from pydantic import ValidationError

from ..types import PaymentRequiredPayload, PaymentRequirements, PaymentResponse
from .types import (
    MCP_PAYMENT_ERROR_META_KEY,
    MCP_PAYMENT_META_KEY,
    MCP_PAYMENT_RESPONSE_META_KEY,
    PAYMENT_HEADER_NAME,
    MCPToolResult,
)

logger = logging.getLogger(__name__)


def extract_payment_token(
    meta: Optional[Mapping[str, Any]],
    headers: Optional[Mapping[str, str]] = None,
) -> Optional[str]:
    """Extract the payment token from request metadata or transport headers.

    Metadata takes precedence over the ``X-PAYMENT`` header.

    Args:
        meta: Request ``_meta`` field
        headers: Transport headers, matched case-insensitively

    Returns:
        The base64 token if present, None otherwise
    """
    if isinstance(meta, Mapping):
        token = meta.get(MCP_PAYMENT_META_KEY)
        if isinstance(token, str) and token:
            return token

    if headers:
        wanted = PAYMENT_HEADER_NAME.lower()
        for key, value in headers.items():
            if key.lower() == wanted and isinstance(value, str) and value:
                return value
    return None


def attach_payment_to_meta(
    meta: Optional[Mapping[str, Any]], token: str
) -> dict[str, Any]:
    """Return a copy of ``meta`` carrying the payment token.

    Args:
        meta: Existing request metadata
        token: Base64 payment token

    Returns:
        New meta dict with the token under ``x402/payment``
    """
    result = dict(meta) if isinstance(meta, Mapping) else {}
    result[MCP_PAYMENT_META_KEY] = token
    return result


def create_payment_required_result(
    x402_version: int,
    error: str,
    accepts: Sequence[PaymentRequirements],
    **extra: Any,
) -> MCPToolResult:
    """Build a structured payment-required rejection.

    The payload goes in ``_meta["x402/error"]``, in structured content, and as
    JSON text so clients without metadata support can still read it.
    """
    payload = PaymentRequiredPayload(
        x402_version=x402_version,
        error=error,
        accepts=list(accepts),
        **{k: v for k, v in extra.items() if v is not None},
    ).model_dump(by_alias=True, exclude_none=True)
    return MCPToolResult(
        content=[{"type": "text", "text": json.dumps(payload)}],
        is_error=True,
        meta={MCP_PAYMENT_ERROR_META_KEY: payload},
        structured_content=payload,
    )


def create_client_error_result(
    x402_version: int, error: str, message: str
) -> MCPToolResult:
    """Terminal client-side failure, such as a declined or over-cap payment."""
    return MCPToolResult(
        content=[{"type": "text", "text": message}],
        is_error=True,
        meta={MCP_PAYMENT_ERROR_META_KEY: {"x402Version": x402_version, "error": error}},
    )


def attach_payment_response_to_meta(
    result: MCPToolResult, response: PaymentResponse
) -> MCPToolResult:
    """Attach settlement response to result.

    Args:
        result: Tool result
        response: Settlement response to attach

    Returns:
        The same result, with the response in _meta
    """
    if result.meta is None:
        result.meta = {}
    result.meta[MCP_PAYMENT_RESPONSE_META_KEY] = response.model_dump(by_alias=True)
    return result


def _content_item_to_dict(item: Any) -> dict[str, Any]:
    if isinstance(item, Mapping):
        return dict(item)
    if hasattr(item, "model_dump"):
        return item.model_dump(by_alias=True, exclude_none=True)
    return {"type": "text", "text": str(item)}


def result_meta(result: Any) -> dict[str, Any]:
    """Read ``_meta`` from a dict, an MCPToolResult or an MCP SDK result."""
    if isinstance(result, Mapping):
        meta = result.get("_meta")
    else:
        meta = getattr(result, "meta", None)
        if meta is None:
            meta = getattr(result, "_meta", None)
    if meta is None:
        return {}
    if hasattr(meta, "model_dump"):
        return meta.model_dump(by_alias=True)
    return dict(meta) if isinstance(meta, Mapping) else {}


def result_is_error(result: Any) -> bool:
    if isinstance(result, Mapping):
        return bool(result.get("isError", result.get("is_error", False)))
    if hasattr(result, "is_error"):
        return bool(result.is_error)
    return bool(getattr(result, "isError", False))


def convert_mcp_result(result: Any) -> MCPToolResult:
    """Normalize a dict, MCPToolResult or MCP SDK CallToolResult.

    Args:
        result: Any tool result shape

    Returns:
        MCPToolResult with content items as plain dicts
    """
    if isinstance(result, MCPToolResult):
        return result
    if isinstance(result, Mapping):
        content = result.get("content", [])
        structured = result.get("structuredContent", result.get("structured_content"))
    else:
        content = getattr(result, "content", None) or []
        structured = getattr(result, "structuredContent", None)
        if structured is None:
            structured = getattr(result, "structured_content", None)
    return MCPToolResult(
        content=[_content_item_to_dict(item) for item in content],
        is_error=result_is_error(result),
        meta=result_meta(result),
        structured_content=structured,
    )


def to_tool_result(value: Any) -> MCPToolResult:
    """Coerce a tool handler's return value into an MCPToolResult.

    Dicts with a ``content`` key are taken as MCP results, strings become a
    single text item and anything else is serialized as JSON text.
    """
    if isinstance(value, MCPToolResult):
        return value
    if isinstance(value, Mapping) and "content" in value:
        return convert_mcp_result(value)
    if hasattr(value, "content") and (
        hasattr(value, "isError") or hasattr(value, "is_error")
    ):
        return convert_mcp_result(value)
    if isinstance(value, str):
        return MCPToolResult(content=[{"type": "text", "text": value}])
    return MCPToolResult(
        content=[{"type": "text", "text": json.dumps(value, default=str)}]
    )


def extract_payment_required_from_result(
    result: Any,
) -> Optional[PaymentRequiredPayload]:
    """Extract a payment-required rejection from a tool result.

    Only error results whose ``_meta["x402/error"]`` carries a non-empty
    ``accepts`` list qualify.

    Args:
        result: Tool result in any supported shape

    Returns:
        PaymentRequiredPayload if found, None otherwise
    """
    if not result_is_error(result):
        return None
    error = result_meta(result).get(MCP_PAYMENT_ERROR_META_KEY)
    if not isinstance(error, Mapping):
        return None
    accepts = error.get("accepts")
    if not isinstance(accepts, list) or not accepts:
        return None
    try:
        return PaymentRequiredPayload.model_validate(dict(error))
    except ValidationError as e:
        logger.warning(f"Ignoring malformed payment requirements: {e}")
        return None


def extract_payment_response_from_meta(result: Any) -> Optional[PaymentResponse]:
    """Extract the settlement annotation from a tool result, if any."""
    data = result_meta(result).get(MCP_PAYMENT_RESPONSE_META_KEY)
    if not isinstance(data, Mapping):
        return None
    try:
        return PaymentResponse.model_validate(dict(data))
    except ValidationError:
        return None
