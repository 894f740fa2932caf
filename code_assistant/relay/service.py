"""
Prompt relay: wraps a prompt in the code template and forwards it to Gemini.
"""

import logging
from typing import Dict

from .llm_client import GeminiClient
from .prompts import build_code_prompt

logger = logging.getLogger(__name__)

FAILURE_MESSAGE = "Failed to generate code"


class PromptRelay:
    """
    Single-operation relay. `generate` always returns one JSON-ready payload:
    {"code": ...} on success, {"error": ..., "details": ...} on failure.
    """

    def __init__(self, llm: GeminiClient):
        self.llm = llm

    async def generate(self, prompt: str) -> Dict[str, str]:
        try:
            text = await self.llm.generate(build_code_prompt(prompt))
        except Exception as e:
            logger.error("Error: %s", e)
            return {"error": FAILURE_MESSAGE, "details": str(e)}
        return {"code": text}
