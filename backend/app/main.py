import asyncio
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from app.core.config import settings
from app.core.database import Base, SessionLocal, engine
from app.core.exceptions import AppError
from app.core.minio_client import initialize_minio_bucket
from app.monitoring.setup import setup_monitoring
from app.routes import admin, auth, download, files, links, users
from app.services.user_service import UserService
from app.tasks.cleanup import start_cleanup_task
from app.utils.timeutils import utcnow

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger("secure-link")


async def _bootstrap_superuser():
    if not (settings.FIRST_SUPERUSER_EMAIL and settings.FIRST_SUPERUSER_PASSWORD):
        return
    async with SessionLocal() as db:
        user = await UserService(db).ensure_superuser(
            settings.FIRST_SUPERUSER_EMAIL,
            settings.FIRST_SUPERUSER_USERNAME,
            settings.FIRST_SUPERUSER_PASSWORD,
        )
    logger.info("Superuser ready: %s", user.username)


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        async with engine.begin() as conn:
            if engine.dialect.name == "sqlite":
                await conn.execute(text("PRAGMA journal_mode=WAL;"))
            await conn.run_sync(Base.metadata.create_all)
            for table in Base.metadata.tables.values():
                logger.debug(" - Table: %s", table.name)
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error("Database initialization failed: %s", e)
        raise

    try:
        initialize_minio_bucket()
        logger.info("MinIO initialized")
    except Exception as e:
        logger.error("MinIO initialization failed: %s", e)
        raise

    await _bootstrap_superuser()

    cleanup_task = None
    if settings.SWEEP_ENABLED:
        cleanup_task = asyncio.create_task(start_cleanup_task())
        logger.info("Background cleanup task started")

    yield

    if cleanup_task is not None:
        cleanup_task.cancel()
        try:
            await cleanup_task
        except asyncio.CancelledError:
            logger.info("Cleanup task cancelled")
    logger.info("Application shutdown complete")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.PROJECT_VERSION,
    lifespan=lifespan
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("%s %s -> %s: %s", request.method, request.url.path, exc.kind, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "kind": exc.kind})


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "Content-Length"],
)

app.include_router(auth)
app.include_router(users)
app.include_router(files)
app.include_router(download)
app.include_router(links)
app.include_router(admin)

setup_monitoring(app)


@app.get("/health")
async def health_check():
    try:
        async with SessionLocal() as session:
            await session.execute(text("SELECT 1"))
        db_status = "ok"
    except Exception as e:
        db_status = f"error: {str(e)}"

    try:
        from app.core.minio_client import minio_client
        minio_client.list_buckets()
        minio_status = "ok"
    except Exception as e:
        minio_status = f"error: {str(e)}"

    return {
        "status": "running",
        "timestamp": utcnow().isoformat(),
        "database": db_status,
        "storage": minio_status
    }


if __name__ == "__main__":
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=8000,
        log_level="info",
        timeout_keep_alive=60,
        limit_concurrency=100
    )
