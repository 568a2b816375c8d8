from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from starlette.requests import Request

from bpmnvault import __version__
from bpmnvault.api.middleware.context import UserContextMiddleware
from bpmnvault.api.routers.health import router as health_router
from bpmnvault.config import get_settings
from bpmnvault.database import init_db
from bpmnvault.exceptions import VaultError

logger = logging.getLogger(__name__)


async def vault_error_handler(request: Request, exc: VaultError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def create_app() -> FastAPI:
    app = FastAPI(title="BpmnVault", version=__version__)
    app.add_middleware(UserContextMiddleware)
    app.add_exception_handler(VaultError, vault_error_handler)
    app.include_router(health_router, prefix="/api/v1")

    @app.on_event("startup")
    def _startup() -> None:  # pragma: no cover
        # Dev convenience: auto-create tables. Production uses migrations.
        if get_settings().ENVIRONMENT == "dev":
            init_db(create_tables=True)

    return app


app = create_app()
