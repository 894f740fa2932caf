"""
HTTP client the conversation controller uses to reach the prompt relay.
"""

import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)


class RelayError(Exception):
    """The relay reported a failure or could not be reached."""

    def __init__(self, message: str, details: str = ""):
        super().__init__(message)
        self.message = message
        self.details = details


class RelayClient:
    """Posts prompts to `{relay_url}/generate-code`."""

    def __init__(
        self,
        relay_url: str,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.relay_url = relay_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def initialize(self):
        """Create the HTTP client."""
        self._client = httpx.AsyncClient(
            base_url=self.relay_url,
            timeout=httpx.Timeout(self._timeout),
            transport=self._transport,
        )
        logger.info("Relay client initialized (%s)", self.relay_url)

    async def close(self):
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def generate(self, prompt: str) -> str:
        """Return the generated code, or raise RelayError."""
        if not self._client:
            raise RuntimeError("Relay client not initialized")

        try:
            response = await self._client.post("/generate-code", json={"prompt": prompt})
        except httpx.HTTPError as e:
            raise RelayError(str(e) or type(e).__name__) from e

        # Error payloads arrive with a 500; the body is read either way.
        try:
            data = response.json()
        except ValueError as e:
            raise RelayError(f"Invalid response from relay (HTTP {response.status_code})") from e

        if not isinstance(data, dict):
            raise RelayError("Invalid response from relay")
        if data.get("error"):
            raise RelayError(str(data["error"]), str(data.get("details", "")))
        code = data.get("code")
        if not isinstance(code, str):
            raise RelayError("Relay response did not contain code")
        return code
