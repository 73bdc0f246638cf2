from fastapi import FastAPI, Request
from contextlib import asynccontextmanager
from common.core.config import settings
from common.db.stores import build_link_cache, build_link_store, close_stores
import uvicorn
import logging
import time

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    logger.info("🚀 Starting Redirect service...")
    app.state.link_store = build_link_store(settings)
    app.state.link_cache = build_link_cache(settings)
    yield
    # Shutdown
    logger.info("🛑 Shutting down Redirect service...")
    await close_stores(settings, app.state.link_cache)

app = FastAPI(
    title="Redirect Service API",
    description="Serves short link redirects.",
    version="1.0.0",
    lifespan=lifespan
)

from redirect_service.routes.redirect import redirect_router


@app.get("/")
async def root():
    return {"message": "Redirect Service", "status": "running"}


@app.get("/health")
async def health_check(request: Request):
    """Health check endpoint."""
    store = getattr(request.app.state, "link_store", None)
    return {
        "status": "ok",
        "service": "redirect",
        "timestamp": int(time.time()),
        "store_mode": getattr(store, "mode", "primary"),
    }

app.include_router(redirect_router)

if __name__ == "__main__":
    uvicorn.run(app, host=settings.host or "0.0.0.0", port=settings.redirect_port)
