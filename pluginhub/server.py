"""
PluginHub server

Main FastAPI application entry point.
"""

from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pluginhub import __version__
from pluginhub.api import api_router
from pluginhub.config import get_settings
from pluginhub.core.errors import PluginHubError
from pluginhub.core.hub import PluginHub
from pluginhub.lib.logger import get_logger, setup_logging
from pluginhub.lib.typed_errors import ErrorCode, parse_error

logger = get_logger(__name__)

_STATUS_BY_CODE = {
    ErrorCode.SOURCE_NOT_FOUND: 404,
    ErrorCode.PLUGIN_NOT_IN_STORE: 404,
    ErrorCode.TARGET_ALREADY_EXISTS: 409,
    ErrorCode.OPERATION_CANCELLED: 409,
    ErrorCode.PERMISSION_DENIED: 403,
    ErrorCode.BATCH_PARTIAL_FAILURE: 207,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    settings = get_settings()

    setup_logging(level=settings.log_level)

    logger.info("Starting PluginHub server...")
    logger.info(f"Store root: {settings.store_root}")

    hub = PluginHub.from_settings(settings)
    app.state.hub = hub
    logger.info(f"Editors enabled: {', '.join(e.id for e in hub.enabled_editors)}")

    yield

    logger.info("Shutting down PluginHub server...")
    app.state.hub = None


app = FastAPI(
    title="PluginHub",
    description="Content-addressed store and linker for editor extensions",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost", "http://127.0.0.1"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PluginHubError)
async def pluginhub_error_handler(request: Request, exc: PluginHubError) -> JSONResponse:
    typed = parse_error(exc)
    status = _STATUS_BY_CODE.get(typed.code, 500)
    logger.warning(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(status_code=status, content=typed.model_dump(mode="json", by_alias=True))


app.include_router(api_router)


@app.get("/")
async def root():
    return {"name": "PluginHub", "version": __version__, "docs": "/docs"}


def main():
    """Main entry point."""
    settings = get_settings()

    print(f"PluginHub server on http://{settings.host}:{settings.port}")
    print(f"Store: {settings.store_root}")

    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
