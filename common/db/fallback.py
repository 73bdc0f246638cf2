import asyncio
import logging
from typing import Any, Dict, List, Optional

from common.core.errors import ShortenerError, StoreUnavailableError
from common.db.base import LinkStore
from common.db.memory import InMemoryLinkStore
from common.models.schemas import Link
from common.utils.circuit_breaker import CircuitBreaker, CLOSED, with_timeout

logger = logging.getLogger(__name__)

PRIMARY = "primary"
FALLBACK = "fallback"


class FallbackLinkStore(LinkStore):
    """
    Serves every call from the primary store while its circuit breaker is
    closed and switches to a process-local store when the primary becomes
    unavailable. ``mode`` reports which one is currently in charge.

    Only StoreUnavailableError (transport failures and timeouts) triggers the
    switch; not-found and conflict outcomes come back from the primary as
    usual. Writes served by the fallback are not copied back to the primary.
    """

    def __init__(
        self,
        primary: LinkStore,
        fallback: Optional[LinkStore] = None,
        breaker: Optional[CircuitBreaker] = None,
        timeout_seconds: float = 3.0,
    ):
        self.primary = primary
        self.fallback = fallback or InMemoryLinkStore()
        self.breaker = breaker or CircuitBreaker(failure_threshold=1, timeout=60, name=primary.name)
        self.timeout_seconds = timeout_seconds
        self.activations = 0

    @property
    def name(self) -> str:
        return f"{self.primary.name}+{self.fallback.name}"

    @property
    def mode(self) -> str:
        return PRIMARY if self.breaker.state == CLOSED else FALLBACK

    async def _call(self, operation: str, *args, **kwargs):
        if self.breaker.can_execute():
            method = getattr(self.primary, operation)
            try:
                result = await with_timeout(
                    method(*args, **kwargs),
                    self.timeout_seconds,
                    operation=f"{self.primary.name}.{operation}",
                )
            except StoreUnavailableError as e:
                was_primary = self.mode == PRIMARY
                self.breaker.record_failure()
                if was_primary and self.mode == FALLBACK:
                    self.activations += 1
                    logger.warning(
                        f"Primary link store '{self.primary.name}' unavailable ({e.message}), "
                        f"switching to '{self.fallback.name}'"
                    )
            except ShortenerError:
                # conflicts and validation failures are answers from a reachable primary
                self.breaker.record_success()
                raise
            except (Exception, asyncio.CancelledError):
                self.breaker.release_trial()
                raise
            else:
                self.breaker.record_success()
                return result

        return await getattr(self.fallback, operation)(*args, **kwargs)

    async def get(self, slug: str, include_inactive: bool = False) -> Optional[Link]:
        return await self._call("get", slug, include_inactive=include_inactive)

    async def put(self, link: Link) -> Link:
        return await self._call("put", link)

    async def update(self, slug: str, changes: Dict[str, Any]) -> Optional[Link]:
        return await self._call("update", slug, changes)

    async def soft_delete(self, slug: str) -> bool:
        return await self._call("soft_delete", slug)

    async def exists(self, slug: str) -> bool:
        return await self._call("exists", slug)

    async def list_active(self) -> List[Link]:
        return await self._call("list_active")

    async def list_all(self) -> List[Link]:
        return await self._call("list_all")

    async def increment_clicks(self, slug: str) -> None:
        return await self._call("increment_clicks", slug)

    async def ping(self) -> bool:
        return await self.primary.ping()
