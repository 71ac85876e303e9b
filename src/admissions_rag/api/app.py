"""FastAPI application exposing the admissions assistant."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator
from uuid import uuid4

from fastapi import Depends, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from admissions_rag.api.schemas import ChatRequest, ChatResponse, ClearMemoryResponse, StatsResponse
from admissions_rag.config import Settings, get_settings
from admissions_rag.errors import AdmissionsRagError
from admissions_rag.metrics.observability import (
    bind_correlation_id,
    clear_correlation_id,
    configure_logging,
    get_logger,
)
from admissions_rag.services.query import QueryOrchestrator, build_orchestrator


def create_app(
    *,
    settings: Settings | None = None,
    orchestrator: QueryOrchestrator | None = None,
    load_knowledge_base: bool = True,
) -> FastAPI:
    settings = settings or get_settings()
    engine = orchestrator or build_orchestrator(settings)

    configure_logging(settings.log_level)
    logger = get_logger("api")

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        try:
            await engine.initialize()
            if load_knowledge_base and not engine.is_ready:
                await engine.load_knowledge_base_file(settings.knowledge_base_path)
        except AdmissionsRagError as exc:
            # the app still serves; /chat answers with the apology and /healthz reports not ready
            logger.error("startup.degraded", detail=str(exc))
        yield

    from admissions_rag import __version__

    app = FastAPI(title="Admissions RAG API", version=__version__, lifespan=lifespan)
    app.state.orchestrator = engine

    if settings.cors_allow_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(settings.cors_allow_origins),
            allow_methods=["GET", "POST", "DELETE"],
            allow_headers=["*"],
        )

    @app.middleware("http")
    async def add_correlation_id(request: Request, call_next):  # type: ignore[override]
        correlation_id = request.headers.get("X-Request-ID", uuid4().hex)
        request.state.correlation_id = correlation_id
        bind_correlation_id(correlation_id)
        try:
            response = await call_next(request)
        finally:
            clear_correlation_id()
        response.headers["X-Correlation-ID"] = correlation_id
        return response

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        correlation_id = getattr(request.state, "correlation_id", uuid4().hex)
        logger.error("unhandled.error", correlation_id=correlation_id, detail=str(exc))
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal Server Error", "correlation_id": correlation_id},
        )

    def get_orchestrator(request: Request) -> QueryOrchestrator:
        return request.app.state.orchestrator

    @app.post("/chat", response_model=ChatResponse)
    async def chat(
        payload: ChatRequest,
        service: QueryOrchestrator = Depends(get_orchestrator),
    ) -> ChatResponse:
        result = await service.query(
            payload.message,
            payload.session_id,
            payload.search_type,
            language=payload.language,
            is_voice_interaction=payload.is_voice_interaction,
        )
        return ChatResponse.model_validate(result.to_dict())

    @app.delete("/sessions/{session_id}/memory", response_model=ClearMemoryResponse)
    async def clear_memory(
        session_id: str,
        service: QueryOrchestrator = Depends(get_orchestrator),
    ) -> ClearMemoryResponse:
        cleared = service.clear_memory(session_id)
        return ClearMemoryResponse(session_id=session_id, cleared=cleared)

    @app.get("/stats", response_model=StatsResponse)
    async def stats(service: QueryOrchestrator = Depends(get_orchestrator)) -> StatsResponse:
        return StatsResponse.model_validate(service.get_stats())

    @app.get("/metrics")
    async def metrics() -> Response:
        payload = generate_latest()
        return Response(content=payload, media_type=CONTENT_TYPE_LATEST)

    @app.get("/healthz")
    async def healthcheck(service: QueryOrchestrator = Depends(get_orchestrator)) -> JSONResponse:
        body = {
            "status": "ok" if service.is_ready else "not_ready",
            "version": __version__,
            "environment": settings.environment,
        }
        code = status.HTTP_200_OK if service.is_ready else status.HTTP_503_SERVICE_UNAVAILABLE
        return JSONResponse(status_code=code, content=body)

    @app.get("/livez")
    async def liveness() -> dict[str, str]:
        return {"status": "alive"}

    return app


app = create_app()


def main() -> None:  # pragma: no cover - server entrypoint
    import uvicorn

    settings = get_settings()
    uvicorn.run(app, host=settings.api_host, port=settings.api_port, log_level=settings.log_level.lower())


if __name__ == "__main__":  # pragma: no cover
    main()
