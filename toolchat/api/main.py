"""
FastAPI application for toolchat.

Routes:
    POST /api/chat   stream a turn as Server-Sent Events
    GET  /api/tools  capability catalog
    GET  /health     liveness and version

Usage:
    uvicorn toolchat.api.main:app --reload --port 8000
    toolchat-server
    LOG_LEVEL=DEBUG toolchat-server
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..config import config
from ..tools.registry import ToolRegistry
from ..tracing import TracingClient, init_tracing_client, shutdown_tracing
from .routes import chat, health, tools


def configure_logging():
    """Configure logging based on LOG_LEVEL environment variable."""
    log_level = getattr(logging, config.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logging.getLogger("toolchat").setLevel(log_level)


configure_logging()
logger = logging.getLogger(__name__)


def _log_startup(tracing_client: TracingClient) -> None:
    inference = config.inference
    logger.info(
        f"Inference: model={inference.model} base_url={inference.base_url} "
        f"max_steps={inference.max_steps} parallel_tool_calls={inference.parallel_tool_calls}"
    )
    catalog = tools.get_capabilities()
    defaults = [c.id for c in catalog if c.default_enabled]
    logger.info(f"Catalog: {len(catalog)} capabilities, enabled by default: {', '.join(defaults) or 'none'}")
    logger.info(f"Registered tools: {', '.join(ToolRegistry.all_tools()) or 'none'}")
    if tracing_client.enabled:
        logger.info(f"Langfuse tracing: enabled ({config.langfuse.host or 'https://cloud.langfuse.com'})")
    else:
        logger.info(f"Langfuse tracing: disabled ({tracing_client.error})")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start tracing and log the configuration; close the engine on exit."""
    logger.info(f"Starting toolchat API server v{__version__}")
    _log_startup(init_tracing_client(settings=config.langfuse))

    yield

    logger.info("Shutting down toolchat API server")
    await chat.get_engine().close()
    shutdown_tracing()


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies are a 400, not FastAPI's default 422."""
    logger.warning(f"Validation error on {request.method} {request.url.path}: {exc.errors()}")
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


def create_app() -> FastAPI:
    app = FastAPI(
        title="toolchat API",
        description=(
            "Streaming chat with per-request tool selection. POST a transcript "
            "to /api/chat and read the Server-Sent Events response."
        ),
        version=__version__,
        lifespan=lifespan,
    )

    # Allow all origins; the chat UI is served separately
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router, tags=["Health"])
    app.include_router(tools.router, tags=["Tools"])
    app.include_router(chat.router, tags=["Chat"])
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    return app


app = create_app()


def run_server():
    """Entry point of the ``toolchat-server`` command."""
    import uvicorn

    uvicorn.run(
        "toolchat.api.main:app",
        host=config.server.host,
        port=config.server.port,
        reload=config.server.reload,
        workers=1 if config.server.reload else config.server.workers,
    )


if __name__ == "__main__":
    run_server()
