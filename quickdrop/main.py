import asyncio
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .cleanup import cleanup_expired
from .config import load_settings
from .exceptions import QuickDropError
from .kvstore import KVStore
from .logging_config import setup_logging
from .models import AppSettings
from .routes.monitor import create_monitor_router
from .routes.transfer import TransferRouter
from .store import BlobStore

VERSION = "1.0.0"


def create_app(settings: AppSettings | None = None, clock=time.time) -> FastAPI:
    settings = settings or load_settings()
    logger = setup_logging("quickdrop", settings.log_level)

    kv = KVStore(settings.database_path, max_value_size=settings.max_value_size, clock=clock)
    store = BlobStore(
        kv,
        max_chunk_size=settings.max_chunk_size,
        max_total_size=settings.max_total_size,
        expiry_time=settings.expiry_time,
        clock=clock,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Initialise the key-value database
        await kv.init_db()
        logger.info(f"QuickDrop {VERSION} started, data in {settings.data_dir}")

        # Start background cleanup task
        cleanup_task = asyncio.create_task(cleanup_expired(store, settings.cleanup_interval))

        yield

        # Cancel cleanup task and pending sweeps on shutdown
        cleanup_task.cancel()
        try:
            await cleanup_task
        except asyncio.CancelledError:
            pass
        await store.close()

    app = FastAPI(title="QuickDrop API", version=VERSION, lifespan=lifespan)
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_credentials=False, allow_methods=["*"], allow_headers=["*"])
    app.state.settings = settings
    app.state.store = store

    @app.exception_handler(QuickDropError)
    async def quickdrop_error_handler(request: Request, exc: QuickDropError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse({"error": exc.message}, status_code=exc.status_code)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start_time = time.time()
        response = await call_next(request)
        duration = time.time() - start_time
        logger.info(
            f"{request.method} {request.url.path} status={response.status_code} duration={duration:.3f}s"
        )
        return response

    transfer_router = TransferRouter(store=store, version=VERSION)

    # Include routers
    app.include_router(transfer_router.router)
    app.include_router(create_monitor_router(store))

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "ok", "version": VERSION}

    return app


app = create_app()
