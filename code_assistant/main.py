"""
Main orchestrator: wires the relay, the conversation controller and the
chat UI together and runs them on one event loop.
Entry point: python -m code_assistant
"""

import argparse
import asyncio
import logging
import signal

from .chat.controller import ConversationController
from .chat.relay_client import RelayClient
from .config import AppConfig
from .presentation.server import ChatUIServer
from .relay.llm_client import GeminiClient
from .relay.server import RelayServer
from .relay.service import PromptRelay
from .shared.event_bus import EventBus

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("code_assistant")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Code Assistant")
    parser.add_argument(
        "--relay-only",
        action="store_true",
        help="Run only the /generate-code relay, without the chat UI",
    )
    return parser.parse_args(argv)


async def main(argv=None):
    """Bootstrap and run all system components."""
    args = parse_args(argv)
    config = AppConfig.from_env()
    bus = EventBus()

    # ── 1. Relay ───────────────────────────────────────────────
    llm = GeminiClient(config.llm)
    await llm.initialize()
    relay_server = RelayServer(config.relay, PromptRelay(llm))
    servers = [relay_server]

    # ── 2. Controller + chat UI ────────────────────────────────
    relay_client = None
    controller = None
    if not args.relay_only:
        relay_client = RelayClient(config.controller.relay_url)
        await relay_client.initialize()
        controller = ConversationController(config.controller, relay_client, bus)
        # The chat UI starts and stops the bus with its own lifespan.
        servers.append(ChatUIServer(config.ui, controller, bus))

    # ── 3. Graceful shutdown handling ──────────────────────────
    shutdown_event = asyncio.Event()

    def _signal_handler():
        logger.info("Shutdown signal received")
        shutdown_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _signal_handler)
        except NotImplementedError:
            pass  # Windows

    if controller is not None:
        logger.info("Open http://localhost:%d to start chatting", config.ui.port)

    serving = asyncio.gather(*(server.start() for server in servers))
    stopper = asyncio.create_task(shutdown_event.wait())
    try:
        await asyncio.wait({serving, stopper}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        pass
    finally:
        logger.info("Shutting down...")
        for server in servers:
            await server.stop()
        await asyncio.gather(serving, return_exceptions=True)
        stopper.cancel()
        if controller is not None:
            await controller.close()
        if relay_client is not None:
            await relay_client.close()
        await llm.close()
        logger.info("Bye!")


if __name__ == "__main__":
    asyncio.run(main())
