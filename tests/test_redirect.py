import asyncio
from datetime import timedelta

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from app.services.link_service import LinkService
from common.core.errors import DisabledError, ExpiredError, NotFoundError, StoreUnavailableError, ValidationError
from common.core.redis_client import LinkCache
from common.db.memory import InMemoryLinkStore
from common.db.stores import get_link_cache, get_link_store
from common.models.schemas import Link, UTMParams, utcnow
from redirect_service.services.redirect_service import RedirectService


class BrokenLinkStore(InMemoryLinkStore):
    name = "broken"

    async def get(self, slug, include_inactive=False):
        raise StoreUnavailableError("connection refused")

    async def increment_clicks(self, slug):
        raise StoreUnavailableError("connection refused")


class PausingLinkStore(InMemoryLinkStore):
    """Holds every lookup after it read the store until ``resume`` is set."""

    def __init__(self):
        super().__init__()
        self.read_done = asyncio.Event()
        self.resume = asyncio.Event()

    async def get(self, slug, include_inactive=False):
        link = await super().get(slug, include_inactive)
        self.read_done.set()
        await self.resume.wait()
        return link


@pytest_asyncio.fixture
async def redirect_client(memory_link_store, link_cache):
    from redirect_service.main import app as redirect_app

    redirect_app.dependency_overrides[get_link_store] = lambda: memory_link_store
    redirect_app.dependency_overrides[get_link_cache] = lambda: link_cache

    async with AsyncClient(transport=ASGITransport(app=redirect_app), base_url="http://test") as c:
        yield c

    redirect_app.dependency_overrides.clear()


@pytest.mark.asyncio
async def test_resolve_merges_utm(memory_link_store):
    await memory_link_store.put(Link(
        slug="promo",
        url="https://example.com/?a=1",
        utm_params=UTMParams(utm_source="nl", utm_medium="email"),
    ))
    redirect = await RedirectService(memory_link_store).resolve("promo")
    assert redirect.link.slug == "promo"
    assert redirect.location == "https://example.com/?a=1&utm_source=nl&utm_medium=email"


@pytest.mark.asyncio
async def test_resolve_errors(memory_link_store):
    service = RedirectService(memory_link_store)
    await memory_link_store.put(Link(slug="old", url="https://example.com", expires_at=utcnow() - timedelta(seconds=1)))
    await memory_link_store.put(Link(slug="gone", url="https://example.com"))
    await memory_link_store.soft_delete("gone")

    with pytest.raises(ValidationError):
        await service.resolve("no/slash")
    with pytest.raises(NotFoundError):
        await service.resolve("missing")
    with pytest.raises(ExpiredError):
        await service.resolve("old")
    with pytest.raises(NotFoundError):
        await service.resolve("gone")


@pytest.mark.asyncio
async def test_stale_cached_inactive_link_is_disabled(memory_link_store, link_cache):
    await link_cache.set_link(Link(slug="promo", url="https://example.com", is_active=False))
    with pytest.raises(DisabledError):
        await RedirectService(memory_link_store, link_cache).resolve("promo")


@pytest.mark.asyncio
async def test_cache_is_filled_on_lookup(memory_link_store, link_cache):
    await memory_link_store.put(Link(slug="promo", url="https://example.com"))
    service = RedirectService(memory_link_store, link_cache)
    await service.resolve("promo")
    cached = await link_cache.get_link("promo")
    assert cached.url == "https://example.com"


@pytest.mark.asyncio
async def test_malformed_cache_entry_is_discarded(memory_link_store, link_cache, fake_redis):
    await fake_redis.set("link:promo", "{not json")
    await memory_link_store.put(Link(slug="promo", url="https://example.com"))
    redirect = await RedirectService(memory_link_store, link_cache).resolve("promo")
    assert redirect.location == "https://example.com"


@pytest.mark.asyncio
async def test_record_click_swallows_store_errors():
    await RedirectService(BrokenLinkStore()).record_click("promo")


@pytest.mark.asyncio
async def test_redirect_service_app(redirect_client, memory_link_store):
    await memory_link_store.put(Link(slug="promo", url="https://example.com", utm_params=UTMParams(utm_source="nl")))

    response = await redirect_client.get("/promo")
    assert response.status_code == 302
    assert response.headers["location"] == "https://example.com?utm_source=nl"
    assert (await memory_link_store.get("promo")).click_count == 1

    response = await redirect_client.get("/health")
    assert response.status_code == 200
    assert response.json()["service"] == "redirect"


@pytest.mark.asyncio
async def test_redirect_store_failure_renders_500(redirect_client):
    from redirect_service.main import app as redirect_app

    redirect_app.dependency_overrides[get_link_store] = lambda: BrokenLinkStore()
    response = await redirect_client.get("/promo")
    assert response.status_code == 500
    assert "Server Error" in response.text
    assert "connection refused" not in response.text


@pytest.mark.asyncio
async def test_disabled_page(redirect_client, link_cache):
    await link_cache.set_link(Link(slug="promo", url="https://example.com", is_active=False))
    response = await redirect_client.get("/promo")
    assert response.status_code == 410
    assert "Link Disabled" in response.text


@pytest.mark.asyncio
async def test_delete_during_lookup_does_not_recache_link(link_cache):
    store = PausingLinkStore()
    await store.put(Link(slug="promo", url="https://example.com"))

    lookup = asyncio.create_task(RedirectService(store, link_cache).resolve("promo"))
    await store.read_done.wait()

    # delete lands between the store read and the cache write
    await LinkService(store, link_cache).delete_link("promo")
    store.resume.set()
    await lookup

    assert await link_cache.get_link("promo") is None
    with pytest.raises(NotFoundError):
        await RedirectService(store, link_cache).resolve("promo")
    # a redirect instance that can only answer from the cache
    with pytest.raises(NotFoundError):
        await RedirectService(InMemoryLinkStore(), link_cache).resolve("promo")


@pytest.mark.asyncio
async def test_tombstone_expires(link_cache, fake_redis):
    await link_cache.invalidate("promo")
    assert await fake_redis.get("link:promo") == LinkCache.tombstone
    assert 0 < await fake_redis.ttl("link:promo") <= link_cache.tombstone_seconds
    assert not await link_cache.set_link(Link(slug="promo", url="https://example.com"))

    await fake_redis.delete("link:promo")
    assert await link_cache.set_link(Link(slug="promo", url="https://example.com"))
    assert (await link_cache.get_link("promo")).url == "https://example.com"
