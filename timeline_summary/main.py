import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from timeline_summary.config import settings
from timeline_summary.middleware.error_handler import ErrorHandlerMiddleware
from timeline_summary.middleware.logging import RequestLoggingMiddleware
from timeline_summary.summaries.router import router as summaries_router

structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.PrintLoggerFactory(),
)


def create_app() -> FastAPI:
    app = FastAPI(
        title="Timeline Summary Service",
        version="0.1.0",
        docs_url="/docs",
    )

    cors_origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(ErrorHandlerMiddleware)

    app.include_router(summaries_router, prefix="/api/v1")

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()
