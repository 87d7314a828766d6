"""HTTP payer channel posting requests to a payer or clearinghouse endpoint."""
from typing import Optional

import httpx

from insurance_verification.payer.payer_interface import (
    PayerChannel,
    PayerResponse,
    PayerSubmission,
    PayerTransportError,
)
from insurance_verification.config.logging_config import get_logger

logger = get_logger(__name__)


class HttpPayerGateway(PayerChannel):
    """
    Posts the submission as JSON and expects
    ``{"approved": bool, "authNumber": str | null, "message": str}`` back.
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(base_url=base_url, headers=headers, timeout=timeout)
        self.base_url = base_url
        logger.info("HTTP payer channel initialized", base_url=base_url)

    @property
    def channel_name(self) -> str:
        return "http"

    async def submit(self, submission: PayerSubmission) -> PayerResponse:
        try:
            response = await self.client.post("/prior-authorizations", json=submission.to_dict())
        except httpx.TimeoutException as e:
            raise PayerTransportError(f"Payer request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise PayerTransportError(f"Payer request failed: {e}") from e

        if response.status_code >= 400:
            logger.warning(
                "Payer returned an error status",
                request_id=submission.request_id,
                status_code=response.status_code,
            )
            raise PayerTransportError(
                f"Payer responded with HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as e:
            raise PayerTransportError(f"Payer returned a non-JSON body: {e}", status_code=response.status_code) from e
        if not isinstance(body, dict) or not isinstance(body.get("approved"), bool):
            raise PayerTransportError("Payer response is missing the 'approved' flag", status_code=response.status_code)

        approved = body["approved"]
        auth_number = body.get("authNumber") or body.get("auth_number")
        if approved and not auth_number:
            raise PayerTransportError("Payer approved without an authorization number", status_code=response.status_code)

        logger.info("Payer response received", request_id=submission.request_id, approved=approved)
        return PayerResponse(
            approved=approved,
            auth_number=auth_number if approved else None,
            message=str(body.get("message") or ""),
        )

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()
