"""
HTTP entry point for the post transcript service.
Wires the queue worker into the app lifespan and mounts the API routers.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import settings
from deps import get_dispatcher, get_queue_store
from engine.dispatcher import Dispatcher
from engine.queue_store import QueueStore
from routers import credential, github, queue, transcribe
from utils.exceptions import AppError

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
    force=True
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Run the queue worker for as long as the app is serving."""
    dispatcher = get_dispatcher()
    await dispatcher.start_worker()
    logger.info(f"{settings.app_name} v{settings.version} ready")

    yield

    # Jobs are kept in memory only; one still running is closed as interrupted
    await dispatcher.stop_worker(wait_for_current=False)
    logger.info("Queue worker stopped")


app = FastAPI(
    title=settings.app_name,
    description="Transcribes the audio of Twitter/X video posts through a single-worker queue",
    version=settings.version,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type"],
)


@app.exception_handler(AppError)
async def app_error_handler(request, exc: AppError):
    """Turn application errors into a JSON body with the error type."""
    logger.debug(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "type": type(exc).__name__}
    )


app.include_router(queue.router, prefix="/api/queue", tags=["Queue"])
app.include_router(credential.router, prefix="/api/credential", tags=["Credential"])
app.include_router(transcribe.router, prefix="/api/transcribe", tags=["Transcribe"])
app.include_router(github.router, prefix="/api/github", tags=["GitHub"])


@app.get("/health")
async def health_check(
    store: QueueStore = Depends(get_queue_store),
    dispatcher: Dispatcher = Depends(get_dispatcher),
):
    """Liveness plus a snapshot of the queue worker."""
    return {
        "status": "healthy",
        "app": settings.app_name,
        "queue_size": len(store),
        "busy": store.busy,
        "current_job_id": dispatcher.current_job_id,
        "worker_running": dispatcher.is_running
    }


if __name__ == "__main__":
    import uvicorn

    logger.info(f"Serving on http://{settings.host}:{settings.port}")
    uvicorn.run(app, host=settings.host, port=settings.port, log_level="debug" if settings.debug else "info")
