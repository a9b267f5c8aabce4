from datetime import datetime, timezone

import structlog
from dotenv import load_dotenv
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from eem_omec.config import settings
from eem_omec.core.exceptions import (
    DataUnavailable,
    ScoringEngineError,
    SubmissionNotFound,
    UpstreamUnavailable,
)
from eem_omec.logging_config import configure_logging

# IMPORT ROUTERS
from eem_omec.routers.health import router as health_router
from eem_omec.routers.scoring import router as scoring_router
from eem_omec.routers.rubric import router as rubric_router
from eem_omec.routers.submissions import router as submissions_router
load_dotenv()

logger = structlog.get_logger(__name__)


# SWAGGER UI: tag display order
_OPENAPI_TAGS = [
    {"name": "Root"},
    {"name": "Health"},
    {"name": "Scoring"},
    {"name": "Rubric"},
    {"name": "Submissions"},
]

# FASTAPI APPLICATION CONFIGURATION
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    openapi_tags=_OPENAPI_TAGS,
)

app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])


# EXCEPTION HANDLERS
_STATUS_BY_ERROR = {
    DataUnavailable: (status.HTTP_503_SERVICE_UNAVAILABLE, "DATA_UNAVAILABLE"),
    SubmissionNotFound: (status.HTTP_404_NOT_FOUND, "SUBMISSION_NOT_FOUND"),
    UpstreamUnavailable: (status.HTTP_502_BAD_GATEWAY, "UPSTREAM_UNAVAILABLE"),
}


async def scoring_engine_exception_handler(request: Request, exc: ScoringEngineError):
    status_code, error = _STATUS_BY_ERROR.get(
        type(exc), (status.HTTP_500_INTERNAL_SERVER_ERROR, "SCORING_ENGINE_ERROR")
    )
    logger.warning(
        "request_failed",
        path=request.url.path,
        error=error,
        status_code=status_code,
        message=str(exc),
    )
    return JSONResponse(
        status_code=status_code,
        content={
            "error": error,
            "message": str(exc),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )


app.add_exception_handler(ScoringEngineError, scoring_engine_exception_handler)

# REGISTER ROUTERS (order matches _OPENAPI_TAGS / Swagger UI display order)
app.include_router(health_router)       # Health
app.include_router(scoring_router)      # Scoring
app.include_router(rubric_router)       # Rubric
app.include_router(submissions_router)  # Submissions


# ROOT ENDPOINT
@app.get("/", tags=["Root"], summary="Root endpoint")
async def root():
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": {
            "swagger": "/docs",
            "redoc": "/redoc"
        },
        "status": "running"
    }


# STARTUP EVENT
@app.on_event("startup")
async def startup_event():
    configure_logging(settings)
    logger.info(
        "startup",
        app=settings.APP_NAME,
        env=settings.APP_ENV,
        rubric=str(settings.RUBRIC_CSV_PATH),
    )


# SHUTDOWN EVENT
@app.on_event("shutdown")
async def shutdown_event():
    logger.info("shutdown", app=settings.APP_NAME)


# RUN WITH UVICORN
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "eem_omec.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
