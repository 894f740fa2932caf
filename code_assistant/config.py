"""
Centralized configuration for the Code Assistant.
All settings loaded from environment variables with sensible defaults.
"""

import os
from dataclasses import dataclass, field
from enum import Enum

from dotenv import load_dotenv


class RevealMode(str, Enum):
    """How reveal animations of different turns relate to each other."""
    EXCLUSIVE = "exclusive"    # one active turn; a new reveal preempts the old one
    CONCURRENT = "concurrent"  # every assistant turn animates independently


@dataclass
class LLMConfig:
    """Gemini API configuration."""
    api_key: str = ""
    base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    model: str = "gemini-pro"
    timeout: float = 60.0


@dataclass
class RelayConfig:
    """Prompt relay HTTP server configuration."""
    host: str = "0.0.0.0"
    port: int = 3001


@dataclass
class ControllerConfig:
    """Conversation controller configuration."""
    relay_url: str = "http://localhost:3001"
    reveal_interval: float = 0.05  # seconds between revealed lines
    copied_reset: float = 2.0  # seconds the "copied" flag stays up
    reveal_mode: RevealMode = RevealMode.EXCLUSIVE


@dataclass
class UIConfig:
    """Chat UI server configuration."""
    host: str = "0.0.0.0"
    port: int = 5173


@dataclass
class AppConfig:
    """Top-level application configuration."""
    llm: LLMConfig = field(default_factory=LLMConfig)
    relay: RelayConfig = field(default_factory=RelayConfig)
    controller: ControllerConfig = field(default_factory=ControllerConfig)
    ui: UIConfig = field(default_factory=UIConfig)

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Load configuration from environment variables (including .env file)."""
        load_dotenv()
        config = cls()

        # LLM config
        config.llm.api_key = os.getenv("GEMINI_API_KEY", config.llm.api_key)
        config.llm.base_url = os.getenv("GEMINI_BASE_URL", config.llm.base_url)
        config.llm.model = os.getenv("GEMINI_MODEL", config.llm.model)
        timeout = os.getenv("LLM_TIMEOUT")
        if timeout:
            config.llm.timeout = float(timeout)

        # Relay config
        config.relay.host = os.getenv("RELAY_HOST", config.relay.host)
        port = os.getenv("RELAY_PORT")
        if port:
            config.relay.port = int(port)

        # Controller config
        config.controller.relay_url = os.getenv("RELAY_URL", config.controller.relay_url)
        interval = os.getenv("REVEAL_INTERVAL")
        if interval:
            config.controller.reveal_interval = float(interval)
        copied_reset = os.getenv("COPIED_RESET")
        if copied_reset:
            config.controller.copied_reset = float(copied_reset)
        mode = os.getenv("REVEAL_MODE")
        if mode:
            config.controller.reveal_mode = RevealMode(mode.lower())

        # UI config
        config.ui.host = os.getenv("UI_HOST", config.ui.host)
        ui_port = os.getenv("UI_PORT")
        if ui_port:
            config.ui.port = int(ui_port)

        return config
