import base64
import binascii
import json
from typing import Any, Union

from pydantic import BaseModel, ValidationError

from cronos402.exceptions import InvalidPaymentError
from cronos402.types import PaymentHeader, PaymentResponse


def safe_base64_encode(data: Union[str, bytes]) -> str:
    """Safely encode string or bytes to base64 string.

    Args:
        data: String or bytes to encode

    Returns:
        Base64 encoded string
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    return base64.b64encode(data).decode("utf-8")


def safe_base64_decode(data: str) -> str:
    """Safely decode base64 string to bytes and then to utf-8 string.

    Args:
        data: Base64 encoded string

    Returns:
        Decoded utf-8 string
    """
    return base64.b64decode(data, validate=True).decode("utf-8")


def canonical_json(data: Union[BaseModel, dict[str, Any]]) -> str:
    """Serialize to compact JSON with sorted keys, camelCase for models."""
    if isinstance(data, BaseModel):
        data = data.model_dump(by_alias=True, exclude_none=True)
    return json.dumps(data, sort_keys=True, separators=(",", ":"))


def encode_payment_header(header: Union[PaymentHeader, dict[str, Any]]) -> str:
    """Encode a payment header into the base64 token sent by clients.

    Args:
        header: Payment header model or its camelCase dict form

    Returns:
        Base64 encoded token
    """
    return safe_base64_encode(canonical_json(header))


def decode_payment_header(token: str) -> PaymentHeader:
    """Decode a base64 payment token.

    Args:
        token: Base64 encoded payment header

    Returns:
        Decoded PaymentHeader

    Raises:
        InvalidPaymentError: If the token is not base64, not JSON, or is
            missing required fields
    """
    try:
        data = json.loads(safe_base64_decode(token))
    except (binascii.Error, UnicodeDecodeError, ValueError, TypeError) as e:
        raise InvalidPaymentError(f"Malformed payment token: {e}") from e
    if not isinstance(data, dict):
        raise InvalidPaymentError("Malformed payment token: expected a JSON object")
    try:
        return PaymentHeader.model_validate(data)
    except ValidationError as e:
        raise InvalidPaymentError(f"Invalid payment header: {e}") from e


def encode_payment_response(response: PaymentResponse) -> str:
    """Encode a settlement annotation to a base64 header value."""
    return safe_base64_encode(canonical_json(response))


def decode_payment_response(header: str) -> PaymentResponse:
    """Decode a base64 settlement annotation header value."""
    return PaymentResponse.model_validate_json(safe_base64_decode(header))
