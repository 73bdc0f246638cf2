"""Database initialization module."""
import asyncio
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine
from common.db.base import SettingStore, UserStore
from common.db.sql.connection import Base, get_engine, get_session_factory
from common.db.sql.models import LinkRecord, SettingRecord, UserRecord  # noqa: F401  (register models)
from common.core.config import settings
from common.models.schemas import User
from common.utils.passwords import hash_password

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS = [
    ("domains", [settings.default_domain], "Available domains for short links"),
    ("default_domain", settings.default_domain, "Domain used when a link does not name one"),
    ("utm_sources", ["newsletter", "social", "website", "blog", "email", "direct", "referral"], "Predefined UTM source options"),
    ("utm_mediums", ["email", "social", "cpc", "banner", "affiliate", "referral", "organic"], "Predefined UTM medium options"),
    ("utm_campaigns", ["spring_sale", "black_friday", "product_launch", "webinar", "newsletter_signup"], "Predefined UTM campaign options"),
    ("utm_contents", ["header_link", "footer_link", "sidebar_ad", "main_cta", "hero_banner"], "Predefined UTM content options"),
]


async def create_tables(engine: AsyncEngine):
    """Create all database tables."""
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
            logger.info("✅ Database tables created successfully")
    except Exception as e:
        logger.error(f"❌ Error creating database tables: {e}")
        raise


async def seed_default_settings(store: SettingStore) -> int:
    """Insert the default admin options that are not configured yet."""
    created = 0
    for key, value, description in DEFAULT_SETTINGS:
        if await store.get(key) is None:
            await store.upsert(key, value, description)
            created += 1
    if created:
        logger.info(f"Seeded {created} default settings")
    return created


async def seed_admin_user(store: UserStore) -> Optional[User]:
    """Create the configured admin account when no user exists yet."""
    if await store.count():
        return None
    admin = await store.put(User(
        username=settings.admin_username,
        email=settings.admin_email.strip().lower(),
        name="Administrator",
        password_hash=hash_password(settings.admin_password),
    ))
    logger.info(f"Created admin user '{admin.username}'")
    return admin


async def init_database(
    engine: Optional[AsyncEngine] = None,
    setting_store: Optional[SettingStore] = None,
    user_store: Optional[UserStore] = None,
):
    """Initialize the database by creating tables and seeding settings and the admin user."""
    from common.db.sql.link_repository import SQLSettingStore
    from common.db.sql.user_repository import SQLUserStore

    logger.info("🔄 Initializing database...")
    engine = engine or get_engine()
    await create_tables(engine)
    await seed_default_settings(setting_store or SQLSettingStore(get_session_factory()))
    await seed_admin_user(user_store or SQLUserStore(get_session_factory()))
    logger.info("✅ Database initialization completed")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    try:
        asyncio.run(init_database())
    except Exception as e:
        logger.error(f"❌ Database initialization failed: {e}")
        raise SystemExit(1)
