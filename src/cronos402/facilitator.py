"""HTTP-based facilitator client for the Cronos x402 facilitator."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol, Sequence

import httpx
from pydantic import ValidationError

from cronos402.common import x402_VERSION
from cronos402.encoding import encode_payment_header
from cronos402.exceptions import FacilitatorError
from cronos402.networks import (
    CRONOS,
    CRONOS_MAINNET,
    CRONOS_TESTNET,
    DEFAULT_FACILITATOR_URL,
)
from cronos402.types import (
    ErrorReason,
    PaymentHeader,
    PaymentRequirements,
    SettleResponse,
    SupportedKind,
    SupportedResponse,
    VerifyResponse,
)

logger = logging.getLogger(__name__)

DEFAULT_SUPPORTED_KINDS = [
    SupportedKind(x402_version=1, network=CRONOS_TESTNET, scheme="exact"),
    SupportedKind(x402_version=1, network=CRONOS_MAINNET, scheme="exact"),
]


class FacilitatorGateway(Protocol):
    """Protocol for facilitator clients.

    Note: verify/settle return response objects with is_valid/success=False on
    failure, they never raise.
    """

    async def verify(
        self, payload: PaymentHeader, requirements: PaymentRequirements
    ) -> VerifyResponse:
        """Verify a payment. No effect on the settlement backend."""
        ...

    async def settle(
        self, payload: PaymentHeader, requirements: PaymentRequirements
    ) -> SettleResponse:
        """Settle a payment. At most one settlement attempt per call."""
        ...

    async def supported(self) -> SupportedResponse:
        """Get supported payment kinds."""
        ...


@dataclass
class FacilitatorConfig:
    """Configuration for HTTP facilitator client."""

    url: str = DEFAULT_FACILITATOR_URL
    timeout: float = 30.0
    http_client: Optional[httpx.AsyncClient] = None
    headers: dict[str, str] = field(default_factory=dict)
    # networks this deployment forwards to the facilitator
    supported_networks: Sequence[str] = (CRONOS_TESTNET, CRONOS_MAINNET, CRONOS)


class FacilitatorClient:
    """Async HTTP client for an x402 facilitator.

    Every failure (unsupported network, transport error, non-2xx answer,
    unparsable body) is folded into the returned response with a reason string.
    """

    def __init__(self, config: Optional[FacilitatorConfig] = None) -> None:
        config = config or FacilitatorConfig()
        self._url = config.url.rstrip("/")
        self._timeout = config.timeout
        self._headers = dict(config.headers)
        self._http_client = config.http_client
        self._owns_client = config.http_client is None
        self._supported_networks = tuple(config.supported_networks)

    @property
    def url(self) -> str:
        """Get facilitator URL."""
        return self._url

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=self._timeout, follow_redirects=True
            )
        return self._http_client

    async def aclose(self) -> None:
        """Close HTTP client if we own it."""
        if self._owns_client and self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def __aenter__(self) -> FacilitatorClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    def _request_headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "X402-Version": str(x402_VERSION),
            **self._headers,
        }

    def _request_body(
        self, payload: PaymentHeader, requirements: PaymentRequirements
    ) -> dict[str, Any]:
        return {
            "x402Version": payload.x402_version or x402_VERSION,
            "paymentHeader": encode_payment_header(payload),
            "paymentRequirements": requirements.model_dump(
                by_alias=True, exclude_none=True
            ),
        }

    async def _post(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        """POST to the facilitator and return the parsed JSON body.

        Raises:
            FacilitatorError: With the failure reason string as message
        """
        try:
            response = await self._get_client().post(
                f"{self._url}/{path}", json=body, headers=self._request_headers()
            )
        except httpx.HTTPError as e:
            raise FacilitatorError(f"FACILITATOR_NETWORK_ERROR: {e}") from e

        logger.debug(f"Facilitator {path} responded {response.status_code}")
        if not response.is_success:
            raise FacilitatorError(
                f"FACILITATOR_ERROR: {response.status_code} - {response.text}"
            )
        try:
            data = response.json()
        except ValueError as e:
            raise FacilitatorError(f"FACILITATOR_INVALID_RESPONSE: {e}") from e
        if not isinstance(data, dict):
            raise FacilitatorError(
                "FACILITATOR_INVALID_RESPONSE: expected a JSON object"
            )
        return data

    async def verify(
        self, payload: PaymentHeader, requirements: PaymentRequirements
    ) -> VerifyResponse:
        """Verify a payment with the facilitator.

        Args:
            payload: Decoded payment header submitted by the client
            requirements: Requirement the header was matched against

        Returns:
            VerifyResponse, with is_valid=False and a reason on any failure
        """
        if requirements.network not in self._supported_networks:
            return VerifyResponse(
                is_valid=False, invalid_reason=ErrorReason.UNSUPPORTED_NETWORK
            )
        try:
            data = await self._post("verify", self._request_body(payload, requirements))
            return VerifyResponse.model_validate(data)
        except FacilitatorError as e:
            logger.warning(f"Facilitator verify failed: {e}")
            return VerifyResponse(is_valid=False, invalid_reason=str(e))
        except ValidationError as e:
            logger.warning(f"Facilitator verify returned an invalid body: {e}")
            return VerifyResponse(
                is_valid=False, invalid_reason=f"FACILITATOR_INVALID_RESPONSE: {e}"
            )

    async def settle(
        self, payload: PaymentHeader, requirements: PaymentRequirements
    ) -> SettleResponse:
        """Settle a payment with the facilitator.

        Args:
            payload: Decoded payment header submitted by the client
            requirements: Requirement the header was verified against

        Returns:
            SettleResponse, with success=False and a reason on any failure
        """
        if requirements.network not in self._supported_networks:
            return SettleResponse(
                success=False, error_reason=ErrorReason.UNSUPPORTED_NETWORK
            )
        try:
            data = await self._post("settle", self._request_body(payload, requirements))
        except FacilitatorError as e:
            logger.warning(f"Facilitator settle failed: {e}")
            return SettleResponse(success=False, error_reason=str(e))
        try:
            return SettleResponse.from_facilitator(
                data, default_network=requirements.network
            )
        except ValidationError as e:
            logger.warning(f"Facilitator settle returned an invalid body: {e}")
            return SettleResponse(
                success=False, error_reason=f"FACILITATOR_INVALID_RESPONSE: {e}"
            )

    async def supported(self) -> SupportedResponse:
        """Get supported payment kinds, falling back to the Cronos defaults."""
        try:
            response = await self._get_client().get(
                f"{self._url}/supported", headers=self._request_headers()
            )
            response.raise_for_status()
            return SupportedResponse.model_validate(response.json())
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Facilitator supported failed, using defaults: {e}")
            return SupportedResponse(kinds=list(DEFAULT_SUPPORTED_KINDS))
