"""
Application factory.

`create_app` wires the database, the room hub, the error handlers and
every router into a FastAPI instance. Serve it with uvicorn's factory
mode: ``uvicorn hive.main:create_app --factory``.
"""
import logging
import logging.config
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from hive.api import conversations_api, fades_api, fast_api, gateway, messages_api, notebook_api
from hive.api.gateway import RoomHub
from hive.database.config.config import LOGGING, settings
from hive.database.core.session import build_engine, build_session_factory, init_db

logger = logging.getLogger(__name__)


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    field = ".".join(str(part) for part in first.get("loc", ())[1:])
    return f"{field}: {first['msg']}" if field else first["msg"]


def register_error_handlers(app: FastAPI) -> None:
    """Every error leaves the API as ``{"error": <message>}``."""

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        return JSONResponse({"error": exc.detail}, status_code=exc.status_code, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse({"error": _validation_message(exc)}, status_code=400)

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse({"error": "Internal server error"}, status_code=500)


def create_app(database_url: str | None = None, fade_room_requires_participant: bool | None = None) -> FastAPI:
    """
    Build the Hive application.

    Args:
        database_url: Overrides ``DATABASE_URL``; tests pass a temporary
            SQLite file.
        fade_room_requires_participant: Overrides
            ``FADE_ROOM_REQUIRES_PARTICIPANT``.
    """
    logging.config.dictConfig(LOGGING)

    engine = build_engine(database_url or settings.DATABASE_URL)
    init_db(engine)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Hive backend ready, frontend origin %s", settings.FRONTEND_URL)
        yield
        engine.dispose()
        logger.info("Shutting down gracefully")

    app = FastAPI(title="Hive", lifespan=lifespan)
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    app.state.hub = RoomHub()
    app.state.fade_room_requires_participant = (
        settings.FADE_ROOM_REQUIRES_PARTICIPANT
        if fade_room_requires_participant is None
        else fade_room_requires_participant
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.FRONTEND_URL],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)

    app.include_router(fast_api.router)
    app.include_router(conversations_api.router)
    app.include_router(fades_api.router)
    app.include_router(messages_api.router)
    app.include_router(notebook_api.router)
    app.include_router(gateway.router)
    return app
