"""FastAPI application serving the auto-agent and verification endpoints."""

from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from etf_autoagent.api.agent_routes import (
    ChainFactory,
    PlannerFactory,
    create_agent_router,
)
from etf_autoagent.api.verification_routes import create_verification_router
from etf_autoagent.config import Settings
from etf_autoagent.execution.executor import ExecutorConfig
from etf_autoagent.observability.logging import get_logger, setup_logging
from etf_autoagent.observability.metrics import METRICS_CONTENT_TYPE, get_metrics_content
from etf_autoagent.verification.service import (
    VerificationError,
    VerificationService,
    build_verification_service,
)

logger = get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    verification_service: Optional[VerificationService] = None,
    planner_factory: Optional[PlannerFactory] = None,
    chain_factory: Optional[ChainFactory] = None,
    executor_config: Optional[ExecutorConfig] = None,
) -> FastAPI:
    """Builds the HTTP application.

    Args:
        settings: Configuration; read from the environment when omitted.
        verification_service: Pre-built service; built from settings when
            omitted.
        planner_factory: Planner override for the plan endpoint.
        chain_factory: Chain adapter override for execute and bridge.
        executor_config: Executor timing override.

    Returns:
        The configured FastAPI instance. ``app.state`` exposes ``settings``
        and ``verification``.

    Raises:
        ConfigurationError: When real services are forced but misconfigured.
    """
    settings = settings or Settings.from_env()
    service = verification_service or build_verification_service(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        purged = service.stores.purge_expired()
        logger.info(
            "Server starting",
            extra={
                "extra_fields": {
                    "mode": settings.service_mode.value,
                    "environment": settings.environment,
                    "purged": purged,
                }
            },
        )
        yield
        logger.info("Server stopped")

    app = FastAPI(title="ETF Auto-Agent", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.verification = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(VerificationError)
    async def verification_error_handler(request: Request, exc: VerificationError):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return JSONResponse(status_code=404, content={"error": "Endpoint not found"})
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})

    @app.get("/metrics")
    def metrics():
        return Response(content=get_metrics_content(), media_type=METRICS_CONTENT_TYPE)

    app.include_router(
        create_agent_router(
            settings,
            planner_factory=planner_factory,
            chain_factory=chain_factory,
            executor_config=executor_config,
        )
    )
    app.include_router(create_verification_router(settings, service))
    return app


def main() -> None:
    settings = Settings.from_env()
    setup_logging(settings.log_level)
    settings.validate_real_services()
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
