"""GeckoPress FastAPI entry point."""
import asyncio
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from app import database as db
from app.config import DEFAULT_IP_HASH_SALT, settings
from app.rate_limiter import rate_limiter
from app.routers import admin, api, site

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        db_dir = os.path.dirname(settings.db_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)
        db.run_migrations()
        await db.get_db()
        logger.info("Database ready at %s", settings.db_path)
    except Exception as exc:
        logger.critical("Failed to initialize database at %s: %s", settings.db_path, exc)
        raise RuntimeError(f"Database initialization failed: {exc}") from exc

    if settings.ip_hash_salt == DEFAULT_IP_HASH_SALT:
        logger.warning("IP_HASH_SALT is the default value; set a private salt in production")

    async def _cleanup_loop():
        while True:
            await asyncio.sleep(settings.rate_limit_cleanup_interval_seconds)
            try:
                await rate_limiter.cleanup()
                await db.cleanup_old_data()
            except Exception:
                logger.exception("Cleanup loop iteration failed")

    cleanup_task = asyncio.create_task(_cleanup_loop())
    cleanup_task.add_done_callback(lambda t: logger.error("Cleanup task terminated: %s", t.exception()) if not t.cancelled() and t.exception() else None)

    yield

    cleanup_task.cancel()
    try:
        await db.close_db()
    except Exception:
        logger.exception("Error closing database")


app = FastAPI(
    title="GeckoPress",
    lifespan=lifespan,
    docs_url=None,
    redoc_url=None,
    openapi_url=None,
)


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    # Admin and form responses must never be served from a shared cache.
    content_type = response.headers.get("content-type", "")
    if "text/html" in content_type or request.url.path.startswith(("/admin", "/api")):
        response.headers.setdefault("Cache-Control", "no-store")
    return response


app.mount("/static", StaticFiles(directory="static"), name="static")
app.include_router(admin.router)
app.include_router(api.router)
app.include_router(site.router)


@app.get("/health")
async def health():
    try:
        await db.get_db()
        db_ok = True
    except Exception:
        db_ok = False
    if db_ok:
        return {"status": "ok", "db": "accessible"}
    return JSONResponse(status_code=503, content={"status": "degraded", "db": "unavailable"})
