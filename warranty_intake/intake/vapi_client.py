"""
Vapi REST client.

Only used for the call-detail fallback when a webhook arrives before the
vendor has finished producing structured output.
"""

import logging
from typing import Optional

import httpx

from ..errors import UpstreamFetchError

logger = logging.getLogger(__name__)


class VapiClient:
    """Minimal async client for GET /call/{id}."""

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = "https://api.vapi.ai",
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            api_key: Vapi private API key (sent as a Bearer token)
            base_url: API base URL
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (tests inject a MockTransport)
        """
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def fetch_call(self, call_id: str) -> dict:
        """
        Fetch a call object by id.

        Raises:
            UpstreamFetchError: on missing credentials, transport failure,
                non-2xx status, or a non-JSON body
        """
        if not self.api_key:
            raise UpstreamFetchError("Vapi API key not configured")

        logger.info(f"Fetching call data from Vapi API: {call_id}")
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.get(
                    f"/call/{call_id}",
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                )
        except httpx.HTTPError as e:
            raise UpstreamFetchError(f"Vapi API request failed: {e}", original_error=e) from e

        if response.status_code >= 400:
            raise UpstreamFetchError(
                f"Vapi API error: {response.status_code} - {response.text[:200]}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamFetchError("Vapi API returned invalid JSON", original_error=e) from e

        if not isinstance(data, dict):
            raise UpstreamFetchError("Vapi API returned an unexpected body")

        logger.info("Call data fetched from Vapi API")
        return data
