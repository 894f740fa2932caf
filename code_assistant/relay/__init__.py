"""
Prompt relay: HTTP endpoint that forwards prompts to Gemini.
"""
from .llm_client import GeminiClient, GenerationError
from .service import PromptRelay
from .server import RelayServer, create_relay_app

__all__ = ["GeminiClient", "GenerationError", "PromptRelay", "RelayServer", "create_relay_app"]
