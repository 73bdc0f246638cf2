from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from common.core.config import settings
from common.core.errors import register_exception_handlers
from common.db.stores import (
    build_link_cache,
    build_link_store,
    build_setting_store,
    build_user_store,
    close_stores,
    init_stores,
)
from app.routes.auth import auth_router
from app.routes.domains import domains_router
from app.routes.links import links_router
from app.routes.monitoring import monitoring_router
from app.routes.settings import settings_router
from app.routes.users import users_router
import uvicorn
import logging
import os
import socket
import time

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    logger.info("🚀 Starting URL Shortener application...")
    app.state.link_store = build_link_store(settings)
    app.state.setting_store = build_setting_store(settings)
    app.state.user_store = build_user_store(settings)
    app.state.link_cache = build_link_cache(settings)
    try:
        await init_stores(settings, app.state.setting_store, app.state.user_store)
        logger.info("✅ Stores initialized successfully")
    except Exception as e:
        logger.error(f"❌ Failed to initialize stores: {e}")
        if not settings.fallback_enabled:
            raise
        logger.warning("Continuing startup, link requests will use the fallback store")

    yield

    # Shutdown
    logger.info("🛑 Shutting down URL Shortener application...")
    await close_stores(settings, app.state.link_cache)

app = FastAPI(
    title="URL Shortener API",
    description="Short links with UTM campaign tracking",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
register_exception_handlers(app)

# Include API routes with prefix
app.include_router(auth_router, prefix="/api", tags=["Auth"])
app.include_router(users_router, prefix="/api", tags=["Users"])
app.include_router(links_router, prefix="/api", tags=["Links"])
app.include_router(settings_router, prefix="/api", tags=["Settings"])
app.include_router(domains_router, prefix="/api", tags=["Domains"])
app.include_router(monitoring_router)


@app.get("/")
async def root():
    return {"message": "URL Shortener API", "version": "1.0.0", "status": "running"}


@app.get("/api")
async def api_index():
    return {
        "success": True,
        "message": "URL Shortener API is running",
        "version": "1.0.0",
        "endpoints": {
            "auth": "/api/auth",
            "users": "/api/users",
            "links": "/api/links",
            "settings": "/api/settings",
            "domains": "/api/domains",
            "health": "/health",
        },
    }


@app.get("/health")
async def health_check():
    """Health check endpoint for load balancer monitoring."""
    hostname = socket.gethostname()
    instance_id = settings.instance_id or os.getenv("INSTANCE_ID", hostname)

    return {
        "status": "healthy",
        "timestamp": int(time.time()),
        "instance_id": instance_id,
        "hostname": hostname,
        "version": "1.0.0"
    }

# Include redirect route at root level (without prefix) - must be last
from redirect_service.routes.redirect import redirect_router
app.include_router(redirect_router, tags=["Redirect"])

if __name__ == "__main__":
    uvicorn.run(app, host=settings.host or "0.0.0.0", port=settings.port)
