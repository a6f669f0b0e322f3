"""
Bridgewatch Main Application
============================

FastAPI entry point for the border traffic agent.

Endpoints:
    GET  /                 - Service information
    GET  /api/status       - Unprompted traffic update
    POST /api/chat         - Answer a question {message}
    POST /api/chat/stream  - Streamed answer (server-sent events)
    GET  /api/screenshot   - Latest raw camera frame
    GET  /api/health       - Diagnostics

Streaming Events:
    data: {"text": "<chunk>"}        (repeated)
    event: result
    data: <AnalysisResult JSON>      (once)
    data: [DONE]                     (terminal marker)
"""

import json
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response, StreamingResponse
from pydantic import BaseModel, Field

from bridgewatch import __version__
from bridgewatch.config import settings
from bridgewatch.models.output import AnalysisResult
from bridgewatch.service import TrafficService


logger = logging.getLogger(__name__)


class ChatRequest(BaseModel):
    """Body of a chat request."""

    message: Optional[str] = Field(default=None, description="Question about the border")


def _failure(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"success": False, "message": message}, status_code=status_code)


def _question(body: ChatRequest) -> Optional[str]:
    if body.message is None:
        return None
    return body.message.strip() or None


def create_app(
    service: Optional[TrafficService] = None,
    run_scheduler: bool = True,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        service: Pre-built service (tests inject one with fakes);
            built from global settings when None
        run_scheduler: Start the background capture loop on startup

    Returns:
        Configured FastAPI app
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Application lifespan manager with graceful shutdown."""
        traffic = service or TrafficService(settings)
        app.state.service = traffic

        logger.info(f"Starting bridgewatch {__version__}")
        if run_scheduler:
            traffic.start()

        yield

        logger.info("Shutting down gracefully...")
        await traffic.stop()
        logger.info("Shutdown complete")

    app = FastAPI(
        title="Bridgewatch",
        description="Maseru Bridge border traffic assistant",
        version=__version__,
        lifespan=lifespan,
    )

    @app.get("/")
    async def root() -> JSONResponse:
        """Service information endpoint."""
        return JSONResponse({
            "service": "bridgewatch",
            "version": __version__,
            "status": "running",
        })

    @app.get("/api/status")
    async def status(request: Request) -> JSONResponse:
        try:
            result = await request.app.state.service.status()
        except Exception as e:
            logger.exception(f"Status request failed: {e}")
            return _failure("Failed to get traffic status", 500)
        return JSONResponse(result.model_dump(mode="json"))

    @app.post("/api/chat")
    async def chat(body: ChatRequest, request: Request) -> JSONResponse:
        question = _question(body)
        if question is None:
            return _failure("Please provide a message", 400)
        try:
            result = await request.app.state.service.ask(question)
        except Exception as e:
            logger.exception(f"Chat request failed: {e}")
            return _failure("Failed to process your question", 500)
        return JSONResponse(result.model_dump(mode="json"))

    @app.post("/api/chat/stream")
    async def chat_stream(body: ChatRequest, request: Request) -> Response:
        question = _question(body)
        if question is None:
            return _failure("Please provide a message", 400)

        traffic: TrafficService = request.app.state.service

        async def events() -> AsyncIterator[str]:
            async for item in traffic.ask_stream(question):
                if isinstance(item, AnalysisResult):
                    yield f"event: result\ndata: {item.model_dump_json()}\n\n"
                else:
                    yield f"data: {json.dumps({'text': item})}\n\n"
            yield "data: [DONE]\n\n"

        return StreamingResponse(
            events(),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )

    @app.get("/api/screenshot")
    async def screenshot(request: Request) -> Response:
        frame = request.app.state.service.latest_frame()
        if frame is None:
            return _failure("No screenshot available", 503)
        return Response(content=frame.image, media_type=frame.media_type)

    @app.get("/api/health")
    async def health(request: Request) -> JSONResponse:
        return JSONResponse(request.app.state.service.health())

    return app


app = create_app()


# =============================================================================
# Main Entry Point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "bridgewatch.main:app",
        host=settings.server.host,
        port=settings.server.port,
        reload=False,
    )
