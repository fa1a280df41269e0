import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

# Import all models so every table is registered on Base before create_all
from . import (
    models,  # noqa: F401
    models_affiliate,  # noqa: F401
)
from .config import ALLOWED_ORIGINS
from .database import Base, engine
from .domain.affiliates.router import router as affiliates_router
from .domain.properties.router import router as property_sync_router
from .domain.scheduling.router import router as scheduling_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("Database tables created successfully")
    except Exception as e:
        error_msg = str(e)
        if "already exists" in error_msg or "duplicate key" in error_msg:
            logger.info("Database tables already exist (created by another worker)")
        else:
            logger.error(f"Failed to create database tables: {e}")

    try:
        from .rate_limiter import get_redis_client

        get_redis_client()
        logger.info("Redis connection established")
    except Exception as e:
        logger.warning(f"Redis connection failed - cache degrades to local only, rate limiting uses its fail mode: {e}")

    yield
    logger.info("Application shutting down...")


app = FastAPI(title="Dubai Estates Jobs API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Every error body carries success=false and an error message"""
    content = {"success": False}
    if isinstance(exc.detail, dict):
        content["error"] = exc.detail.get("message") or str(exc.detail)
        content.update({k: v for k, v in exc.detail.items() if k != "message"})
    else:
        content["error"] = exc.detail
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"❌ {request.method} {request.url.path} - Unhandled error: {exc}")
    return JSONResponse(status_code=500, content={"success": False, "error": str(exc)})


# CORS: wildcard when ALLOWED_ORIGINS is unset
cors_origins = ALLOWED_ORIGINS or ["*"]
logger.info(f"CORS allowed origins: {cors_origins}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=bool(ALLOWED_ORIGINS),
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

# Routes
app.include_router(property_sync_router)
app.include_router(scheduling_router)
app.include_router(affiliates_router)


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


@app.get("/health/cache")
async def cache_health_check():
    """Two-tier cache statistics and Redis connectivity for monitoring"""
    from .cache import cache
    from .rate_limiter import get_redis_client

    stats = cache.stats()
    try:
        redis_client = get_redis_client()
        start_time = time.time()
        redis_client.ping()
        response_time = (time.time() - start_time) * 1000
        return {"status": "healthy", "cache": stats, "redis": {"connected": True, "response_time_ms": round(response_time, 2)}}
    except Exception as e:
        return {"status": "degraded", "cache": stats, "redis": {"connected": False, "error": str(e)}}
