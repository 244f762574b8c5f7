import uuid
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from kubegate import __version__
from kubegate.api.router import api_router, public_router
from kubegate.config import Settings, get_settings
from kubegate.core.request_context import request_id_var
from kubegate.exceptions import register_exception_handlers
from kubegate.services.kube_client import KubernetesService

logger = structlog.get_logger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the ASGI app.

    Settings are resolved eagerly, so a missing ``JWT_SECRET`` stops start-up here
    with a validation error instead of surfacing on the first login.
    """
    settings = settings or get_settings()
    kubernetes = KubernetesService(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("app.startup", env=settings.app_env, metrics_enabled=settings.metrics_enabled)
        yield
        await kubernetes.close()
        logger.info("app.shutdown")

    app = FastAPI(
        title="kubegate",
        description="Token-gated Kubernetes dashboard API",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.kubernetes = kubernetes

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        token = request_id_var.set(request_id)
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)
        response.headers["X-Request-ID"] = request_id
        return response

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    app.include_router(public_router)
    app.include_router(api_router)

    @app.get("/health", include_in_schema=False)
    async def liveness() -> dict[str, str]:
        return {"status": "healthy"}

    return app
