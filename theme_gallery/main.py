"""FastAPI application entry point"""

from contextlib import asynccontextmanager
from typing import Optional
import logging

from fastapi import BackgroundTasks, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware

from theme_gallery.config.database import init_db
from theme_gallery.config.settings import settings
from theme_gallery.crawlers.contracts import ListFilter
from theme_gallery.errors import NotFound
from theme_gallery.jobs.gallery_sync import run_gallery_sync
from theme_gallery.orchestrator import GalleryOrchestrator
from theme_gallery.services.catalog_store import CatalogStore

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    init_db()
    yield


app = FastAPI(
    title=settings.APP_NAME,
    description="Editor theme gallery aggregation and catalog service",
    version=settings.APP_VERSION,
    lifespan=lifespan,
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

store = CatalogStore()
orchestrator = GalleryOrchestrator(store=store)

# Store last run stats (in-memory, for simple deployment)
last_stats = {}


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
        "endpoints": {
            "health": "/api/health",
            "themes": "/api/themes?limit=&offset=",
            "theme": "/api/themes/{id}",
            "sync": "POST /api/sync?providers=",
            "stats": "/api/stats",
        }
    }


@app.get("/api/health")
async def health_check():
    """Health check endpoint for serverless platforms"""
    return {
        "status": "healthy",
        "service": "theme-gallery-crawler",
        "version": settings.APP_VERSION
    }


@app.get("/api/themes")
def list_themes(limit: int = Query(0, ge=0), offset: int = Query(0, ge=0)):
    """List stored themes ordered by name"""
    themes = store.list(ListFilter(limit=limit, offset=offset))
    return {
        "count": len(themes),
        "themes": [theme.to_dict() for theme in themes],
    }


@app.get("/api/themes/{theme_id}")
def get_theme(theme_id: str):
    """Get one stored theme"""
    try:
        return store.get(theme_id).to_dict()
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


@app.post("/api/sync")
async def sync_gallery(background_tasks: BackgroundTasks, providers: Optional[str] = None):
    """
    Trigger a gallery sync in the background

    Query params:
        providers: comma-separated provider names (default: all registered)
    """
    logger.info(f"Gallery sync triggered for providers: {providers or 'all'}")

    async def run_sync():
        try:
            stats = await run_gallery_sync(orchestrator=orchestrator, providers=providers)
            last_stats["sync"] = stats
            logger.info(f"Gallery sync completed: {stats.get('total_saved', 0)} themes saved")
        except Exception as e:
            logger.error(f"Gallery sync failed: {e}", exc_info=True)

    background_tasks.add_task(run_sync)
    return {
        "status": "started",
        "providers": providers or "all",
        "message": "Gallery sync started in background"
    }


@app.get("/api/stats")
async def get_stats():
    """Get last sync statistics"""
    return last_stats.get("sync", {
        "last_run": None,
        "total_saved": 0,
        "errors": [],
        "sources": {}
    })


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "theme_gallery.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True
    )
