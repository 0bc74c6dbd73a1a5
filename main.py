"""
Entry point for the shop API.

``create_app`` is the composition root: it owns the store and the token
service and hands them to the routers through ``app.state``.

    uvicorn main:app --host 0.0.0.0 --port 8000
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

import products
import users
from auth import TokenService
from config import Settings, configure_logging, get_settings
from database import MongoStore
from errors import ApiError

logger = logging.getLogger(__name__)


def _field_errors(exc: RequestValidationError) -> dict:
    details = {}
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part != "body"]
        details[".".join(loc) or "body"] = err.get("msg", "Invalid value")
    return details


def create_app(settings: Optional[Settings] = None, store=None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)
    store = store if store is not None else MongoStore(settings.database_url, settings.database_name)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # A store that cannot be reached at startup is fatal; no retry
        app.state.store.connect()
        logger.info("Shop API ready on database %s", settings.database_name)
        yield
        app.state.store.close()
        logger.info("Shop API stopped")

    app = FastAPI(title="Shop API", lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    app.state.tokens = TokenService(settings.jwt_secret)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid request data", "details": _field_errors(exc)},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        # Unknown paths and unsupported methods share the catch-all response
        if exc.status_code in (404, 405):
            target = request.url.path
            if request.url.query:
                target += "?" + request.url.query
            logger.debug("Sorry couldn't find %s", target)
            return JSONResponse(status_code=404, content={"error": f"Sorry couldn't find {target}"})
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    @app.get("/")
    def read_root():
        return {"message": "Shop API ready"}

    @app.get("/test")
    def test_database(request: Request):
        connected = request.app.state.store.ping()
        return {
            "backend": "Running",
            "database": "Connected" if connected else "Not Available",
            "database_name": settings.database_name,
        }

    app.include_router(products.router)
    app.include_router(users.router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(app, host=settings.host, port=settings.port)
