"""
Store health monitoring and fallback state reporting.
"""
from fastapi import APIRouter, Depends
from common.core.config import settings
from common.db.fallback import FallbackLinkStore
from common.db.stores import get_link_cache, get_link_store
import time
import logging

logger = logging.getLogger(__name__)
monitoring_router = APIRouter(prefix='/monitoring', tags=["Monitoring"])


@monitoring_router.get("/health/detailed")
async def detailed_health_check(store=Depends(get_link_store), cache=Depends(get_link_cache)):
    """
    Health check for load balancers and monitoring systems.
    Reports which link store currently serves requests and whether the
    primary store and the cache answer.
    """
    health_status = {
        "status": "healthy",
        "timestamp": int(time.time()),
        "checks": {}
    }

    store_check = {"backend": store.name}
    if isinstance(store, FallbackLinkStore):
        store_check.update({
            "mode": store.mode,
            "breaker_state": store.breaker.state,
            "failures": store.breaker.failures,
            "fallback_activations": store.activations,
        })
    else:
        store_check["mode"] = "primary"

    start_time = time.time()
    primary_ok = await store.ping()
    store_check["status"] = "healthy" if primary_ok else "unhealthy"
    store_check["response_time_ms"] = round((time.time() - start_time) * 1000, 2)
    health_status["checks"]["link_store"] = store_check

    if not primary_ok or store_check["mode"] != "primary":
        health_status["status"] = "degraded"

    if cache is not None:
        redis_start = time.time()
        cache_ok = await cache.ping()
        health_status["checks"]["redis"] = {
            "status": "healthy" if cache_ok else "unhealthy",
            "response_time_ms": round((time.time() - redis_start) * 1000, 2)
        }
        if not cache_ok:
            health_status["status"] = "degraded"

    if settings.store_backend == "sql":
        from common.db.sql.connection import get_pool_status
        health_status["checks"]["sql_pool"] = get_pool_status()

    return health_status
