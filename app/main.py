# app/main.py
"""
FastAPI application: listing promotion, pause/resume and credit endpoints
backed by the Supabase Postgres database.
"""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.config import settings
from app.db.pool import db_pool
from app.infrastructure.observability.logging import get_logger, log_request, setup_logging
from app.middleware import CORSMiddleware, RequestContextMiddleware
from app.routes import credits, health, listings
from app.services.errors import ServiceError

# Setup logging before creating the app
setup_logging(log_level=settings.LOG_LEVEL)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the database pool on startup and close it on shutdown."""
    logger.info("Application starting", environment=settings.environment, debug=settings.debug)

    try:
        await db_pool.initialize()
    except Exception as e:
        logger.error("Failed to initialize services", error=str(e))
        raise

    yield

    logger.info("Application shutting down")
    try:
        await db_pool.close()
    except Exception as e:
        logger.error("Error closing database pool", error=str(e))


app = FastAPI(
    title="IncontriDolci Backend",
    description="Listing promotion, pause/resume and credit management",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(listings.router)
app.include_router(credits.router)


def _field_name(loc: tuple) -> str:
    return ".".join(str(part) for part in loc if part != "body")


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    missing = [_field_name(error["loc"]) for error in errors if error["type"] == "missing"]
    if missing:
        names = [name for name in missing if name]
        return f"Missing required fields: {', '.join(names)}" if names else "Missing request body"

    first = errors[0]
    field = _field_name(first["loc"])
    return f"Invalid field {field}: {first['msg']}" if field else first["msg"]


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    logger.info(
        "Request rejected",
        path=request.url.path,
        error_type=type(exc).__name__,
        error=exc.message,
        user_id=exc.user_id,
    )
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    message = _validation_message(exc)
    logger.info("Request validation failed", path=request.url.path, error=message)
    return JSONResponse(status_code=400, content={"error": message})


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log HTTP requests with timing."""
    start_time = time.time()
    response = await call_next(request)
    log_request(
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=round((time.time() - start_time) * 1000, 2),
    )
    return response


# Added last so they wrap everything above: CORS is the outermost layer
app.add_middleware(RequestContextMiddleware)
app.add_middleware(CORSMiddleware, allowed_origins=settings.CORS_ALLOWED_ORIGINS)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
