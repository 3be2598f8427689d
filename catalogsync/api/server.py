"""FastAPI REST API server for catalogsync."""

import logging
from datetime import datetime

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from .. import __version__
from ..crawler.client import SnapshotSource
from ..settings import Settings
from ..status.service import StatusService
from ..store.cache import FreshnessCache
from ..store.catalog import CatalogError, CatalogStore
from ..store.versions import VersionIndex
from .sync_manager import SyncManager

logger = logging.getLogger(__name__)


# Request/Response Models
class StatusResponse(BaseModel):
    """Maintenance status of one catalog entry."""
    slug: str
    status: str
    message: str
    icon: str
    color: str
    badge_variant: str
    last_commit_at: datetime | None = None
    last_release_at: datetime | None = None
    version: str | None = None
    is_archived: bool = False
    days_since_last_commit: int | None = None
    days_since_last_release: int | None = None
    source: str = Field(..., description="synced, legacy, live or none")
    error: str | None = None


class VersionResponse(BaseModel):
    """Registry row for one repository."""
    name: str
    version: str
    date: str


class SyncStartRequest(BaseModel):
    limit: int | None = Field(None, ge=1, description="Only sync the first N repositories")
    include_versions: bool = Field(False, description="Also refresh versions.json")


def create_app(settings: Settings | None = None, client: SnapshotSource | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or Settings()
    if client is None:
        client = settings.build_client()

    app = FastAPI(
        title="catalogsync API",
        description="Maintenance status and metadata sync for a software catalog",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    status_service = StatusService(client, cache=FreshnessCache(ttl=settings.cache_ttl))
    version_index = VersionIndex(
        settings.versions_path, cache=FreshnessCache(ttl=settings.list_cache_ttl)
    )
    sync_manager = SyncManager(settings, client)

    def _after_sync():
        """Drop cached reads so the next request sees the synced files."""
        status_service.cache.clear()
        version_index.cache.clear()

    sync_manager.set_on_complete(_after_sync)

    def _store() -> CatalogStore:
        try:
            return CatalogStore(settings.catalog_path)
        except CatalogError as e:
            raise HTTPException(status_code=503, detail=str(e))

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "catalog": settings.catalog_path.is_dir(),
            "authenticated": settings.authenticated,
            "sync": sync_manager.get_status()["status"],
        }

    @app.get("/entries/{slug}/status", response_model=StatusResponse)
    def entry_status(slug: str):
        """Status of one entry; stored metadata first, live fetch as a fallback."""
        store = _store()
        try:
            entry = store.find(slug)
        except CatalogError as e:
            raise HTTPException(status_code=422, detail=str(e))
        if entry is None:
            raise HTTPException(status_code=404, detail=f"Entry '{slug}' not found")

        view = status_service.get_status(entry)
        return StatusResponse(slug=entry.slug, **view.to_dict())

    @app.get("/versions/{owner}/{repo}", response_model=VersionResponse)
    def get_version(owner: str, repo: str):
        """Latest recorded release for a repository."""
        row = version_index.get(f"{owner}/{repo}")
        if row is None:
            raise HTTPException(status_code=404, detail=f"No version recorded for {owner}/{repo}")
        return VersionResponse(name=row.name, version=row.version, date=row.date)

    # ---- Sync Endpoints ----

    @app.post("/sync/start")
    async def start_sync(request: SyncStartRequest | None = None):
        """Start a background sync run."""
        request = request or SyncStartRequest()
        result = sync_manager.start(limit=request.limit, include_versions=request.include_versions)
        if result.get("error"):
            raise HTTPException(status_code=409, detail=result["error"])
        return result

    @app.get("/sync/status")
    async def sync_status():
        """Current sync job status."""
        return sync_manager.get_status()

    app.state.sync_manager = sync_manager
    app.state.status_service = status_service
    app.state.version_index = version_index
    return app

