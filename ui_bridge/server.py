"""
UI bridge server.

Hosts the voice engine on the server's event loop and exposes it to a
rendering layer. The server has no device speech engines of its own, so by
default the engine runs manual-only (unavailable TTS/STT): every screen
converges on its manual controls, which the /ui/actions API drives.
"""
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI

from logging_setup import get_logger, Component
from voice_engine.capabilities import SpeechToTextCapability, TextToSpeechCapability
from voice_engine.engine import get_engine, shutdown_engine, start_engine
from .api import router as ui_router

logger = get_logger(Component.UI_BRIDGE)


def create_app(
    tts: Optional[TextToSpeechCapability] = None,
    stt: Optional[SpeechToTextCapability] = None,
    initial_screen: Optional[str] = None,
    **engine_kwargs: Any,
) -> FastAPI:
    """Build the app; the engine starts and stops with the app lifespan."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        engine = start_engine(tts, stt, **engine_kwargs)
        engine.show(initial_screen or engine.initial_screen())
        logger.info("UI bridge started", screen=engine.screen)
        try:
            yield
        finally:
            shutdown_engine()
            logger.info("UI bridge stopped")

    app = FastAPI(title="EduSight Voice UI Bridge", lifespan=lifespan)
    app.include_router(ui_router)

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        engine = get_engine()
        return {
            "status": "ok",
            "component": "ui_bridge",
            "screen": engine.screen,
            "tts_available": engine.output.available,
            "stt_available": engine.speech_input.available,
        }

    return app


app = create_app()
