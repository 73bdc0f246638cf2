import re
import secrets
import string
import logging
from typing import Awaitable, Callable, Optional

from common.core.errors import ConflictError

logger = logging.getLogger(__name__)

SLUG_ALPHABET = string.ascii_letters + string.digits
SLUG_PATTERN = re.compile(r"[A-Za-z0-9_-]{1,100}")

# Paths served by the application itself at the root level
RESERVED_SLUGS = {"api", "health", "docs", "redoc", "monitoring", "static"}


def is_valid_slug(slug: Optional[str]) -> bool:
    return isinstance(slug, str) and SLUG_PATTERN.fullmatch(slug) is not None


def is_reserved_slug(slug: str) -> bool:
    return slug.lower() in RESERVED_SLUGS


def generate_random_slug(length: int = 6, alphabet: str = SLUG_ALPHABET) -> str:
    return "".join(secrets.choice(alphabet) for _ in range(length))


class SlugGenerator:
    """
    Draws random slugs and asks the store until a free one is found.

    The candidate length grows by one every ``grow_every`` attempts so that a
    crowded keyspace widens instead of retrying forever; after
    ``max_attempts`` collisions a ConflictError is raised.
    """

    def __init__(
        self,
        length: int = 6,
        alphabet: str = SLUG_ALPHABET,
        max_attempts: int = 20,
        grow_every: int = 10,
    ):
        self.length = length
        self.alphabet = alphabet
        self.max_attempts = max_attempts
        self.grow_every = grow_every

    async def generate(self, exists: Callable[[str], Awaitable[bool]]) -> str:
        for attempt in range(self.max_attempts):
            length = self.length + attempt // self.grow_every
            candidate = generate_random_slug(length, self.alphabet)
            if is_reserved_slug(candidate):
                continue
            if not await exists(candidate):
                if attempt > 0:
                    logger.info(f"Generated slug after {attempt + 1} attempts (length {length})")
                return candidate

        logger.warning(f"Unable to generate a unique slug after {self.max_attempts} attempts")
        raise ConflictError("Unable to generate unique slug after multiple attempts")
