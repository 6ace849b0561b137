from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from typing import Optional
import logging

from arcade_index.api import routes
from arcade_index.config import API_SECRET_KEY, APP_TITLE, APP_VERSION, CORS_ORIGINS, LOG_LEVEL
from arcade_index.db.db_factory import DatabaseFactory
from arcade_index.db.db_interface import ArcadeStore
from arcade_index.errors import ArcadeError
from arcade_index.middleware.logging_middleware import LoggingMiddleware
from arcade_index.models.schemas import error_envelope
from arcade_index.services.aggregation import AggregationEngine
from arcade_index.services.player_directory import PlayerDirectory
from arcade_index.services.score_ledger import ScoreLedger
from arcade_index.services.sync_gateway import SyncGateway

# Configure logging
logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)

_STATUS_KINDS = {401: "UNAUTHORIZED", 404: "NOT_FOUND", 409: "CONFLICT", 503: "UNAVAILABLE"}


def create_app(store: Optional[ArcadeStore] = None, api_key: Optional[str] = None) -> FastAPI:
    """
    Build the application around one store.

    The store is connected on startup and closed on shutdown. Tests pass
    their own store and key; otherwise both come from configuration.
    """
    if store is None:
        store = DatabaseFactory.create_store()

    app = FastAPI(title=APP_TITLE, version=APP_VERSION)
    app.state.store = store
    app.state.api_key = API_SECRET_KEY if api_key is None else api_key
    app.state.gateway = SyncGateway(store)
    app.state.engine = AggregationEngine(store)
    app.state.directory = PlayerDirectory(store)
    app.state.ledger = ScoreLedger(store)

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials="*" not in CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LoggingMiddleware)

    @app.on_event("startup")
    def startup_event():
        logger.info(f"{APP_TITLE} {APP_VERSION} starting with {store.name} storage")
        store.init_db()

    @app.on_event("shutdown")
    def shutdown_event():
        store.close()
        logger.info("Storage closed")

    @app.exception_handler(ArcadeError)
    async def arcade_error_handler(request: Request, exc: ArcadeError):
        return JSONResponse(status_code=exc.status_code, content=error_envelope(exc.kind, exc.message))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
        )
        return JSONResponse(status_code=400, content=error_envelope("INVALID_INPUT", problems or "Invalid request"))

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        kind = _STATUS_KINDS.get(exc.status_code, "INVALID_INPUT" if exc.status_code < 500 else "INTERNAL")
        return JSONResponse(status_code=exc.status_code, content=error_envelope(kind, str(exc.detail)))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
        return JSONResponse(status_code=500, content=error_envelope("INTERNAL", "Internal server error"))

    app.include_router(routes.router)
    return app


app = create_app()
