"""
FastAPI application factory and lifecycle wiring.

Assembles the page translation API: environment, logging, CORS, request ids,
error envelope handlers, the /translate router and the per-app session
registry.
"""

# Standard library
import logging
import os
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

# Third-party
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import Response

# Local application
from core.errors import (
    AppError,
    app_error_handler,
    http_exception_handler,
    invalid_segment_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from core.llm_factory import default_model
from core.providers import configure_providers, fake_mode_requested, using_fake_providers
from page_translation.config import load_scheduler_config, load_session_idle_timeout
from page_translation.errors import InvalidSegmentError
from page_translation.router import router as translation_router
from page_translation.session import SessionManager

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"
REQUEST_ID_HEADER = "X-Request-Id"

_DEV_ORIGINS = (
    "http://localhost:5173",  # Vite dev server
    "http://127.0.0.1:5173",
    "http://localhost:3000",
    "http://127.0.0.1:3000",
)


def _load_environment() -> None:
    """Load environment variables from config.env at the project root."""
    project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    load_dotenv(dotenv_path=os.path.join(project_root, "config.env"))


def _configure_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logger.info(
        "GOOGLE_API_KEY: %s, TRANSLATION_MODEL: %s, fake providers requested: %s",
        "Loaded" if os.getenv("GOOGLE_API_KEY") else "Not Found",
        default_model(),
        fake_mode_requested(),
    )


def _cors_origins() -> list[str]:
    """Comma-separated CORS_ORIGINS, or the local dev servers when unset."""
    configured = [
        origin.strip()
        for origin in os.getenv("CORS_ORIGINS", "").split(",")
        if origin.strip()
    ]
    if configured:
        return configured
    logger.info("CORS: Using development origins (set CORS_ORIGINS for production)")
    return list(_DEV_ORIGINS)


def _install_middleware(app: FastAPI) -> None:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(),
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
    )

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


def _install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(InvalidSegmentError, invalid_segment_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Select providers and attach the session registry; close sessions on exit."""
    logger.info("=== Application Startup ===")
    configure_providers()
    defaults = load_scheduler_config()
    idle_timeout = load_session_idle_timeout()
    logger.info(
        "Session defaults: rpm=%d tpm=%d rpd=%d max_paragraph=%d target=%s idle_timeout=%.0fs",
        defaults.rpm_limit,
        defaults.tpm_limit,
        defaults.rpd_limit,
        defaults.max_paragraph_length,
        defaults.target_language,
        idle_timeout,
    )
    app.state.session_manager = SessionManager(idle_timeout_seconds=idle_timeout)
    yield
    logger.info("=== Application Shutdown (%d open sessions) ===", len(app.state.session_manager))
    app.state.session_manager.close_all()


async def read_root() -> dict[str, object]:
    """Health check endpoint."""
    return {
        "message": "Page Translation Scheduler API",
        "version": API_VERSION,
        "fake_providers": using_fake_providers(),
    }


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    _load_environment()
    _configure_logging()

    app = FastAPI(
        title="Page Translation Scheduler API",
        description="Rate-limited, deduplicated paragraph translation for web pages",
        version=API_VERSION,
        lifespan=app_lifespan,
    )
    _install_middleware(app)
    _install_error_handlers(app)
    app.include_router(translation_router, prefix="/translate", tags=["Page Translation"])
    app.add_api_route("/", read_root, methods=["GET"])
    return app
