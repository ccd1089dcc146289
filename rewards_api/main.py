from fastapi import FastAPI, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import HTTPException, RequestValidationError
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import structlog

from sqlalchemy import text

from rewards_api.config import settings
from rewards_api.database import engine, init_db, close_db
from rewards_api.exceptions import RewardsError
from rewards_api.logging_config import setup_logging
from rewards_api.middleware.correlation import CorrelationIdMiddleware

# Import models so they are registered with Base.metadata
import rewards_api.models  # noqa: F401

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info("starting_rewards_api", env=settings.ENVIRONMENT, storage=settings.STORAGE_BACKEND)
    if settings.STORAGE_BACKEND == "sql":
        await init_db()
    yield
    if settings.STORAGE_BACKEND == "sql":
        await close_db()


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    lifespan=lifespan,
)


# ---------------------------------------------------------------------------
# Global exception handlers: normalize all errors to structured format
# {"error": {"code": "...", "message": "..."}}
# ---------------------------------------------------------------------------

@app.exception_handler(RewardsError)
async def rewards_error_handler(request: Request, exc: RewardsError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("request_failed", code=exc.code, message=exc.message)
    else:
        logger.info("request_rejected", code=exc.code, message=exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    detail = exc.detail
    if isinstance(detail, str):
        detail = {"error": {"code": "HTTP_ERROR", "message": detail}}
    elif isinstance(detail, dict) and "error" not in detail:
        detail = {"error": detail}
    return JSONResponse(status_code=exc.status_code, content=detail)


def jsonable_errors(exc: RequestValidationError) -> list:
    # model_validator errors carry the raised ValueError in ctx
    return [{k: v for k, v in err.items() if k != "ctx"} for err in exc.errors()]


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "Request validation failed",
                "details": jsonable_errors(exc),
            }
        },
    )


app.add_middleware(CorrelationIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_origin_regex=settings.CORS_ORIGIN_REGEX,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "X-Requested-With", "X-Request-ID"],
)


@app.get("/health", tags=["System"])
async def health(response: Response):
    health_status = {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "checks": {"storage": settings.STORAGE_BACKEND},
    }
    if settings.STORAGE_BACKEND == "sql":
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            health_status["checks"]["db"] = "ok"
        except Exception as e:
            logger.error("health_check_db_failed", error=str(e))
            health_status["checks"]["db"] = "error"
            health_status["status"] = "unhealthy"

    if health_status["status"] == "unhealthy":
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return health_status


# --- Routers ---
from rewards_api.routes.budgets import router as budgets_router  # noqa: E402
from rewards_api.routes.base_products import router as base_products_router  # noqa: E402
from rewards_api.routes.replication import router as replication_router  # noqa: E402

app.include_router(budgets_router, prefix="/api/v1/budgets", tags=["Budgets"])
app.include_router(base_products_router, prefix="/api/v1/base-products", tags=["Base Products"])
app.include_router(replication_router, prefix="/api/v1/replication", tags=["Replication"])
