import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from sqlalchemy import text

from creative_factory.config import settings
from creative_factory.db.base import engine
from creative_factory.llm.client import LLMClientConfigError
from creative_factory.routers import approvals, creative
from creative_factory.services.errors import CreativePipelineError
from creative_factory.services.render_service_client import RenderServiceConfigError

logger = logging.getLogger(__name__)


def _configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def create_app() -> FastAPI:
    _configure_logging()
    app = FastAPI(
        title="Creative Factory API",
        default_response_class=ORJSONResponse,
    )

    allow_origins = sorted(set(settings.BACKEND_CORS_ORIGINS))

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(CreativePipelineError)
    async def creative_pipeline_error_handler(_request: Request, exc: CreativePipelineError) -> ORJSONResponse:
        return ORJSONResponse(status_code=exc.status_code, content=exc.to_payload())

    @app.exception_handler(LLMClientConfigError)
    async def llm_configuration_error_handler(_request: Request, exc: LLMClientConfigError) -> ORJSONResponse:
        logger.error("Generation service misconfigured", extra={"error": str(exc)})
        return ORJSONResponse(status_code=503, content={"detail": str(exc)})

    @app.exception_handler(RenderServiceConfigError)
    async def render_configuration_error_handler(
        _request: Request, exc: RenderServiceConfigError
    ) -> ORJSONResponse:
        logger.error("Render service misconfigured", extra={"error": str(exc)})
        return ORJSONResponse(status_code=503, content={"detail": str(exc)})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(_request: Request, exc: Exception) -> ORJSONResponse:
        logger.exception("Unhandled server exception", exc_info=exc)
        return ORJSONResponse(status_code=500, content={"detail": "Internal server error."})

    @app.get("/health")
    async def health() -> dict[str, bool]:
        return {"ok": True}

    @app.get("/health/db")
    def health_db() -> dict[str, str]:
        try:
            with engine.connect() as connection:
                connection.execute(text("SELECT 1"))
            return {"db": "ok"}
        except Exception as exc:  # pragma: no cover - simple runtime check
            return {"db": f"error: {exc}"}

    app.include_router(creative.router)
    app.include_router(approvals.router)

    return app


app = create_app()
