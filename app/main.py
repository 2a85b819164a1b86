import logging
from pathlib import Path

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from starlette.middleware.gzip import GZipMiddleware

from app.api.deps import get_storage_backend
from app.api.v1 import gallery, upload
from app.config import Settings, get_settings, settings
from app.core.error_handlers import register_error_handlers
from app.core.logging import configure_logging
from app.middleware.logging import RequestLoggingMiddleware
from app.middleware.monitoring import MonitoringMiddleware
from app.monitoring import metrics
from app.services.health_service import get_health
from app.services.storage_service import StorageBackend

configure_logging(settings)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.APP_NAME,
    description="""
    **Photo Gallery API** - upload, resize and analyze photos

    ## Features
		* Multi-size variants (original, thumbnail, medium)
		* Local, S3 or Google Cloud Storage backends
		* Google Cloud Vision tags, faces, landmarks, text and safe search
		* Batch uploads with per-file error reporting
		* Location grouping and travel timeline
    """,
    version=settings.APP_VERSION,
    openapi_tags=[
        {"name": "upload", "description": "Photo upload and analysis"},
        {"name": "gallery", "description": "Location grouping, timeline and filters"},
        {"name": "monitoring", "description": "System monitoring"},
    ],
    docs_url="/docs",
    redoc_url="/redoc" if settings.DEBUG else None,
)

# =====================================
# Configure Middleware Stack
# =====================================

# GZIP Compression (minimum 1KB)
app.add_middleware(GZipMiddleware, minimum_size=1000)

# CORS Configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "X-Process-Time"],
    max_age=3600,
)

app.add_middleware(MonitoringMiddleware)
app.add_middleware(RequestLoggingMiddleware)

register_error_handlers(app)

# Include routers
app.include_router(upload.router, prefix=f"{settings.API_PREFIX}/upload", tags=["upload"])
app.include_router(gallery.router, prefix=settings.API_PREFIX, tags=["gallery"])

# Monitoring endpoints (internal use)
if settings.EXPOSE_METRICS:
    app.include_router(
        metrics.router,
        prefix="/internal",
        tags=["monitoring"]
    )

# Variants written by the local backend
if settings.STORAGE_TYPE == "local":
    Path(settings.UPLOAD_DIR).mkdir(parents=True, exist_ok=True)
    app.mount(settings.PUBLIC_URL_PREFIX, StaticFiles(directory=settings.UPLOAD_DIR), name="uploads")


@app.get("/health", tags=["monitoring"])
async def health_check(
        app_settings: Settings = Depends(get_settings),
        storage: StorageBackend = Depends(get_storage_backend),
):
    return get_health(app_settings, storage)
