"""
School Admin Backend — FastAPI Application Factory
====================================================

What:  Assembles the application: engine, store, managers, dispatch engine,
       HTTP middlewares, exception handlers and routes.
How:   create_app(settings, engine) returns a configured FastAPI instance.
       Nothing is built at import time; uvicorn runs the factory
       (``uvicorn school_admin.main:create_app --factory`` or
       ``python -m school_admin``).

Application Architecture:
    ┌─────────────────────────────────────────────────────┐
    │                   FastAPI App                       │
    │                                                     │
    │  HTTP Middleware Chain:                             │
    │  ┌────────────┐ ┌────────┐ ┌─────────┐ ┌─────────┐  │
    │  │ Rate Limit │→│ Req ID │→│ Logging │→│GZip/CORS│  │
    │  └────────────┘ └────────┘ └─────────┘ └─────────┘  │
    │                                                     │
    │  Routes:                                            │
    │  ┌──────────────────────────┐ ┌─────────────────┐   │
    │  │ /api/{module}/{fn}       │ │ GET /health     │   │
    │  │  → ApiHandler            │ └─────────────────┘   │
    │  │  → VirtualStack (mws)    │                       │
    │  │  → manager handler       │                       │
    │  └──────────────────────────┘                       │
    └─────────────────────────────────────────────────────┘

Lifecycle:
    Startup:   logging → config check → wait for the database (tenacity)
               → create tables (DB_AUTO_CREATE)
               → seed superadmin
    Shutdown:  dispose the database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from sqlalchemy.ext.asyncio import AsyncEngine
from starlette.exceptions import HTTPException as StarletteHTTPException

from school_admin import __version__
from school_admin.config import Settings, settings as default_settings
from school_admin.database import (
    build_engine,
    build_session_factory,
    dispose_engine,
    init_models,
    wait_for_database,
)
from school_admin.dispatch.api_handler import ApiHandler
from school_admin.dispatch.responses import ResponseDispatcher
from school_admin.dispatch.stack import VirtualStack
from school_admin.exceptions import SchoolAdminError
from school_admin.managers import load_managers
from school_admin.middleware.logging import RequestLoggingMiddleware
from school_admin.middleware.rate_limit import RateLimitMiddleware
from school_admin.middleware.request_id import RequestIDMiddleware, request_id_var
from school_admin.mws import build_registry
from school_admin.routes import api, health
from school_admin.services.passwords import PasswordHasher
from school_admin.services.store import DocumentStore
from school_admin.services.tokens import TokenService

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(level: str = "INFO") -> None:
    """
    Configures the root logger once for the whole process.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    """
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Third-party libraries log every operation at INFO/DEBUG
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    state = app.state
    settings: Settings = state.settings

    # ── Startup ───────────────────────────────────────────────────────────
    logger.info("=" * 60)
    logger.info("School Admin Backend %s starting up...", __version__)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Keep serving: /health stays up and token operations report the problem
        logger.error("Configuration error: %s", str(e))

    await wait_for_database(state.engine, settings)

    if settings.db_auto_create:
        await init_models(state.engine)
        logger.info("Database tables ensured")

    await state.managers["user"].seed_super_admin(settings)

    for verb, module_name, fn_name in state.api_handler.routes():
        logger.debug("route %-6s /api/%s/%s", verb.upper(), module_name, fn_name)
    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("School Admin Backend shutting down...")
    await dispose_engine(state.engine)
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def register_exception_handlers(app: FastAPI, dispatcher: ResponseDispatcher) -> None:
    """
    Errors that escape the dispatch engine still leave in the envelope.

        HTTPException (unknown path, wrong verb) → its status, detail as errors
        RequestValidationError                   → 400
        SchoolAdminError                         → exc.status_code, exc.message
        Exception                                → 500, generic message
    """

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        return dispatcher.error(exc.status_code, exc.detail, headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        rid = request_id_var.get("")
        logger.warning("[%s] Request validation error: %s", rid, exc.errors())
        return dispatcher.error(400, [str(error.get("msg")) for error in exc.errors()])

    @app.exception_handler(SchoolAdminError)
    async def handle_school_admin_error(request: Request, exc: SchoolAdminError):
        rid = request_id_var.get("")
        logger.error("[%s] %s: %s | Context: %s", rid, type(exc).__name__, exc.message, exc.context)
        return dispatcher.error(exc.status_code, exc.message)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return dispatcher.error(500, "An unexpected error occurred")


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(settings: Optional[Settings] = None, engine: Optional[AsyncEngine] = None) -> FastAPI:
    """
    Builds a fully wired application.

    Args:
        settings: defaults to the environment-backed module settings
        engine:   an existing engine to share (tests pass an in-memory one);
                  built from ``settings.database_url`` when omitted
    """
    settings = settings or default_settings
    setup_logging(settings.log_level)

    engine = engine or build_engine(settings)
    store = DocumentStore(build_session_factory(engine))
    tokens = TokenService(settings)
    hasher = PasswordHasher(rounds=settings.bcrypt_rounds)
    managers = load_managers(store, tokens, hasher)

    dispatcher = ResponseDispatcher()
    stack = VirtualStack(
        registry=build_registry(),
        injectable={
            "settings": settings,
            "managers": managers,
            "store": store,
            "tokens": tokens,
        },
        prestack=settings.dispatch_prestack_list,
        dispatcher=dispatcher,
    )
    api_handler = ApiHandler(managers, stack, dispatcher=dispatcher)

    app = FastAPI(
        title="School Admin API",
        description="Multi-tenant school administration: schools, classrooms, students and users.",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.engine = engine
    app.state.store = store
    app.state.managers = managers
    app.state.dispatcher = dispatcher
    app.state.api_handler = api_handler

    # ── Register Middleware ───────────────────────────────────────────────
    # Last added runs first: RateLimit → RequestID → Logging → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=settings.cors_origins_list != ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(RateLimitMiddleware, settings=settings)

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app, dispatcher)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(health.router)
    app.include_router(api.build_router(api_handler))

    return app
