"""
Application factory.

`create_app(container)` builds the FastAPI app around an initialized
ServiceContainer. Infrastructure (database, Redis, logging) is started by
`src.main`; tests pass a container backed by the in-memory store.
"""

from __future__ import annotations

import time

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from src.api.errors import install_exception_handlers
from src.api.routes import ROUTERS
from src.core.logging.logger import LogContext, get_logger
from src.core.services.container import ServiceContainer

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def create_app(container: ServiceContainer) -> FastAPI:
    app = FastAPI(title="Level Up Solo API", version="1.0.0")
    app.state.container = container

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", REQUEST_ID_HEADER],
    )

    @app.middleware("http")
    async def bind_request_context(request: Request, call_next) -> Response:
        start = time.perf_counter()
        async with LogContext(
            method=request.method,
            path=request.url.path,
            component="http",
            request_id=request.headers.get(REQUEST_ID_HEADER),
        ) as ctx:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = ctx.request_id
            logger.info(
                "Request completed",
                extra={
                    "status_code": response.status_code,
                    "duration_ms": round((time.perf_counter() - start) * 1000, 2),
                },
            )
            return response

    install_exception_handlers(app)
    for router in ROUTERS:
        app.include_router(router)

    return app
