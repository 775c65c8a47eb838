from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from concurrent.futures import ThreadPoolExecutor
from typing import Optional
import logging
import time
from sqlalchemy import text
from geata_core.config import Settings
from geata_core.db import Storage
from geata_core.errors import ConflictError, DeviceAuthError, MalformedInputError, NotFoundError
from geata_core.init_db import init_db
from geata_core.logging_config import configure_logging
from geata_core.services import build_services
from .routes import auth, devices, events, gates, polling, profiles, schedules, users

logger = logging.getLogger("geata_api")

VERSION = "0.1.0"


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(NotFoundError)
    async def not_found(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content={"error": f"{exc.entity} not found"})

    @app.exception_handler(MalformedInputError)
    async def malformed(request: Request, exc: MalformedInputError):
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.exception_handler(ConflictError)
    async def conflict(request: Request, exc: ConflictError):
        return JSONResponse(status_code=409, content={"error": str(exc)})

    @app.exception_handler(DeviceAuthError)
    async def device_auth(request: Request, exc: DeviceAuthError):
        return JSONResponse(status_code=401, content={"error": str(exc)})


def create_app(settings: Optional[Settings] = None, storage: Optional[Storage] = None) -> FastAPI:
    settings = settings or Settings()
    storage = storage or Storage(settings.effective_database_url())
    executor = ThreadPoolExecutor(max_workers=max(1, settings.notify_workers), thread_name_prefix="geata-notify")

    app = FastAPI(title="Geata API", version=VERSION)
    app.state.settings = settings
    app.state.storage = storage
    app.state.services = build_services(storage, settings, executor=executor)

    # Core middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)

    # Lightweight request log middleware (skips health and the chatty device poll)
    @app.middleware("http")
    async def request_logger(request, call_next):  # type: ignore
        start = time.time()
        path = request.url.path
        if path.endswith("/health") or path.endswith("/device/poll"):
            return await call_next(request)
        response = await call_next(request)
        duration_ms = int((time.time() - start) * 1000)
        logger.info("http %s %s -> %s (%dms)", request.method, path, response.status_code, duration_ms)
        return response

    _register_error_handlers(app)

    # Group API routes under /api, while keeping root mounting for field controllers and scripts.
    routers = [
        auth.router, devices.router, gates.router, schedules.router, users.router,
        profiles.router, events.router, polling.router,
    ]
    api_router = APIRouter(prefix="/api")
    for r in routers:
        api_router.include_router(r)
    app.include_router(api_router)
    for r in routers:
        app.include_router(r)

    @app.on_event("startup")
    async def on_startup():
        init_db(storage)
        logger.info("api.start version=%s", app.version)

    @app.on_event("shutdown")
    async def on_shutdown():
        executor.shutdown(wait=False)
        storage.dispose()
        logger.info("api.stop")

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.get("/api/health")
    def api_health():
        try:
            with storage.session() as db:
                db.execute(text("SELECT 1"))
            database = "ok"
        except Exception as e:
            logger.warning("health.db error=%s", e)
            database = "error"
        return {
            "backend": "ok",
            "database": database,
            "pollSecretRequired": settings.poll_require_secret,
            "version": app.version,
        }

    return app


configure_logging()
app = create_app()

__all__ = ["app", "create_app"]
