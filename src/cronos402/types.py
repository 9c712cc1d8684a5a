from __future__ import annotations

from decimal import Decimal
from typing import Any, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


# Price can be a USD string ("$0.01", "0.01"), a number or a Decimal
Money = Union[str, int, float, Decimal]
Price = Union[Money, dict[str, Any]]  # dict: {"amount": ...}

# operation name -> price, fixed at server setup
PricedOperationTable = Mapping[str, Price]


class ErrorReason:
    """Machine-readable error kinds carried in ``x402/error`` payloads."""

    PRICE_COMPUTE_FAILED = "PRICE_COMPUTE_FAILED"
    PAYMENT_REQUIRED = "PAYMENT_REQUIRED"
    INVALID_PAYMENT = "INVALID_PAYMENT"
    UNABLE_TO_MATCH_PAYMENT_REQUIREMENTS = "UNABLE_TO_MATCH_PAYMENT_REQUIREMENTS"
    SETTLEMENT_FAILED = "SETTLEMENT_FAILED"
    UNSUPPORTED_NETWORK = "UNSUPPORTED_NETWORK"
    # client side
    PAYMENT_DECLINED = "PAYMENT_DECLINED"
    PAYMENT_AMOUNT_EXCEEDED = "PAYMENT_AMOUNT_EXCEEDED"


class EIP712Domain(BaseModel):
    """EIP-712 domain information for token signing"""

    name: str
    version: str
    chain_id: int
    verifying_contract: str

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        frozen=True,
    )


class PaymentRequirements(BaseModel):
    """One acceptable way to pay for one tool invocation."""

    scheme: str = "exact"
    network: str
    max_amount_required: str
    pay_to: str
    asset: str
    max_timeout_seconds: int = 300
    resource: Optional[str] = None
    mime_type: Optional[str] = None
    description: Optional[str] = None
    extra: Optional[EIP712Domain] = None

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        frozen=True,
    )

    @field_validator("max_amount_required")
    def validate_max_amount_required(cls, v):
        try:
            amount = int(v)
        except ValueError:
            raise ValueError(
                "max_amount_required must be an integer encoded as a string"
            )
        if amount <= 0:
            raise ValueError("max_amount_required must be positive")
        return v


class ExactEvmPayload(BaseModel):
    """Flat EIP-3009 TransferWithAuthorization payload for the exact scheme."""

    from_: str = Field(alias="from")
    to: str
    value: str
    valid_after: int
    valid_before: int
    nonce: str
    signature: str
    asset: str

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    @field_validator("value")
    def validate_value(cls, v):
        try:
            int(v)
        except ValueError:
            raise ValueError("value must be an integer encoded as a string")
        return v


class PaymentHeader(BaseModel):
    """The caller's signed payment authorization, carried as a base64 token.

    ``scheme`` selects the payload shape; only ``exact`` exists today.
    """

    x402_version: int
    scheme: Literal["exact"]
    network: str
    payload: ExactEvmPayload

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class VerifyResponse(BaseModel):
    is_valid: bool = Field(alias="isValid")
    invalid_reason: Optional[str] = Field(None, alias="invalidReason")
    payer: Optional[str] = None
    transaction: Optional[str] = None

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class SettleResponse(BaseModel):
    success: bool
    error_reason: Optional[str] = None
    transaction: Optional[str] = None
    network: Optional[str] = None
    payer: Optional[str] = None
    event: Optional[str] = None

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    @classmethod
    def from_facilitator(
        cls, data: dict[str, Any], default_network: Optional[str] = None
    ) -> SettleResponse:
        """Normalize the facilitator's settle body.

        The Cronos facilitator reports ``event``/``txHash``/``from``/``error``
        where the x402 shape uses ``success``/``transaction``/``payer``/``errorReason``.
        """
        event = data.get("event")
        return cls(
            success=event == "payment.settled" or data.get("success") is True,
            transaction=data.get("txHash") or data.get("transaction"),
            network=data.get("network") or default_network,
            payer=data.get("from") or data.get("payer"),
            error_reason=data.get("error") or data.get("errorReason"),
            event=event,
        )


class SupportedKind(BaseModel):
    x402_version: int
    scheme: str
    network: str

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class SupportedResponse(BaseModel):
    kinds: list[SupportedKind]


class PaymentRequiredPayload(BaseModel):
    """Rejection body stored under ``_meta["x402/error"]``."""

    x402_version: int
    error: str
    accepts: list[PaymentRequirements] = Field(default_factory=list)

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        extra="allow",
    )


class PaymentResponse(BaseModel):
    """Settlement annotation stored under ``_meta["x402/payment-response"]``."""

    success: bool
    transaction: Optional[str] = None
    network: Optional[str] = None
    payer: Optional[str] = None

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class AssetInfo(BaseModel):
    address: str
    symbol: str
    decimals: int


class PaymentNetworkInfo(BaseModel):
    """Per-network discovery row attached to a priced tool descriptor."""

    network: str
    recipient: str
    max_amount_required: str
    asset: AssetInfo
    type: Literal["evm"] = "evm"

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class PaymentAnnotations(BaseModel):
    payment_hint: bool = True
    payment_price_usd: str = Field(alias="paymentPriceUSD")
    payment_networks: list[PaymentNetworkInfo]
    payment_version: int

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )
