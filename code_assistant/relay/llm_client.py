"""
LLM Client: async client for the Gemini generateContent REST API.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from ..config import LLMConfig

logger = logging.getLogger(__name__)


class GenerationError(Exception):
    """The Gemini call failed or produced no usable text."""


def _error_message(response: httpx.Response) -> str:
    """Pull the human-readable message out of a Gemini error body."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or response.reason_phrase
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    return response.reason_phrase


def extract_text(data: Dict[str, Any]) -> str:
    """
    Concatenate the text parts of the first candidate.
    Raises GenerationError when the prompt was blocked or nothing came back.
    """
    if not isinstance(data, dict):
        raise GenerationError("Malformed response from Gemini")

    candidates = data.get("candidates") or []
    if not candidates:
        feedback = data.get("promptFeedback") or {}
        reason = feedback.get("blockReason")
        if reason:
            raise GenerationError(f"Prompt was blocked: {reason}")
        raise GenerationError("Gemini returned no candidates")

    first = candidates[0] or {}
    parts = (first.get("content") or {}).get("parts")
    if parts is None:
        reason = first.get("finishReason", "UNKNOWN")
        raise GenerationError(f"Candidate has no content (finishReason={reason})")

    return "".join(part.get("text", "") for part in parts if isinstance(part, dict))


class GeminiClient:
    """
    Thin async wrapper over `models/{model}:generateContent`.
    Every failure surfaces as GenerationError; callers decide how to report it.
    """

    def __init__(self, config: LLMConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def initialize(self):
        """Create the HTTP client."""
        self._client = httpx.AsyncClient(
            base_url=self.config.base_url,
            headers={"Content-Type": "application/json"},
            timeout=httpx.Timeout(self.config.timeout, connect=10.0),
            transport=self._transport,
        )
        logger.info("Gemini client initialized (model=%s)", self.config.model)

    async def close(self):
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def generate(self, prompt: str) -> str:
        """Send a single-turn prompt and return the model's text unmodified."""
        if not self._client:
            raise RuntimeError("Gemini client not initialized")
        if not self.config.api_key:
            raise GenerationError("GEMINI_API_KEY is not configured")

        payload = {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}

        try:
            response = await self._client.post(
                f"/models/{self.config.model}:generateContent",
                json=payload,
                headers={"x-goog-api-key": self.config.api_key},
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise GenerationError(
                f"HTTP {e.response.status_code}: {_error_message(e.response)}"
            ) from e
        except httpx.HTTPError as e:
            raise GenerationError(f"{type(e).__name__}: {e}") from e
        except ValueError as e:
            raise GenerationError("Gemini response was not valid JSON") from e

        text = extract_text(data)
        logger.info("Gemini response completed (%d chars)", len(text))
        return text
