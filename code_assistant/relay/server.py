"""
FastAPI server exposing the prompt relay at POST /generate-code.
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..config import RelayConfig
from .service import PromptRelay

logger = logging.getLogger(__name__)


class GenerateRequest(BaseModel):
    prompt: str


def create_relay_app(relay: PromptRelay) -> FastAPI:
    """Build the relay application around a PromptRelay instance."""
    app = FastAPI(title="Code Assistant Relay", docs_url=None)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.post("/generate-code")
    async def generate_code(req: GenerateRequest):
        result = await relay.generate(req.prompt)
        if "error" in result:
            return JSONResponse(status_code=500, content=result)
        return result

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


class RelayServer:
    """Runs the relay app under uvicorn."""

    def __init__(self, config: RelayConfig, relay: PromptRelay):
        self.config = config
        self.app = create_relay_app(relay)
        self._server = None

    async def start(self):
        """Start the uvicorn server."""
        import uvicorn
        config = uvicorn.Config(
            self.app,
            host=self.config.host,
            port=self.config.port,
            log_level="warning",
            access_log=False,
        )
        self._server = uvicorn.Server(config)
        logger.info("Server running at http://localhost:%d", self.config.port)
        await self._server.serve()

    async def stop(self):
        """Ask uvicorn to exit its serve loop."""
        if self._server:
            self._server.should_exit = True
        logger.info("Relay server stopped")
