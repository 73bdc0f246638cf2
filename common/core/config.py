from pydantic_settings import BaseSettings
from typing import Optional, List
from dotenv import load_dotenv
import logging
import os

load_dotenv()

logger = logging.getLogger(__name__)


class Settings(BaseSettings):

    # Application
    host: str = os.getenv("HOST", "localhost")
    port: int = int(os.getenv("PORT", "8000"))
    redirect_port: int = int(os.getenv("REDIRECT_PORT", "8001"))
    base_url: str = os.getenv("BASE_URL", f"http://{host}:{port}")
    testing: bool = os.getenv("TESTING", "false").lower() == "true"
    debug: bool = os.getenv("DEBUG", "false").lower() == "true"
    instance_id: Optional[str] = os.getenv("INSTANCE_ID", None)

    # Link store selection: "sql", "mongo" or "memory"
    store_backend: str = os.getenv("STORE_BACKEND", "sql")
    fallback_enabled: bool = os.getenv("FALLBACK_ENABLED", "true").lower() == "true"
    fallback_failure_threshold: int = int(os.getenv("FALLBACK_FAILURE_THRESHOLD", "1"))
    fallback_recovery_seconds: int = int(os.getenv("FALLBACK_RECOVERY_SECONDS", "60"))
    store_timeout_seconds: float = float(os.getenv("STORE_TIMEOUT_SECONDS", "3"))
    redirect_timeout_seconds: float = float(os.getenv("REDIRECT_TIMEOUT_SECONDS", "5"))

    # PostgreSQL
    database_url: Optional[str] = os.getenv("DATABASE_URL", None)
    db_name: str = os.getenv("DB_NAME", "url_shortener")
    db_host: str = os.getenv("DB_HOST", "localhost")
    db_port: int = int(os.getenv("DB_PORT", "5432"))
    db_user: str = os.getenv("DB_USER", "postgres")
    db_password: str = os.getenv("DB_PASSWORD", "")
    db_pool_size: int = int(os.getenv("DB_POOL_SIZE", "10"))  # Connections per instance
    db_max_overflow: int = int(os.getenv("DB_MAX_OVERFLOW", "20"))  # Additional connections under load
    db_pool_timeout: int = int(os.getenv("DB_POOL_TIMEOUT", "30"))  # Wait time for connection from pool
    db_pool_recycle: int = int(os.getenv("DB_POOL_RECYCLE", "3600"))
    db_connect_timeout: int = int(os.getenv("DB_CONNECT_TIMEOUT", "5"))

    # MongoDB
    mongo_uri: str = os.getenv("MONGO_URI", "mongodb://localhost:27017")
    mongo_db_name: str = os.getenv("MONGO_DB_NAME", "url_shortener")
    mongo_max_pool_size: int = int(os.getenv("MONGO_MAX_POOL_SIZE", "50"))
    mongo_min_pool_size: int = int(os.getenv("MONGO_MIN_POOL_SIZE", "10"))
    mongo_max_idle_time_ms: int = int(os.getenv("MONGO_MAX_IDLE_TIME_MS", "45000"))

    # Redis link cache
    cache_enabled: bool = os.getenv("CACHE_ENABLED", "true").lower() == "true"
    cache_ttl_seconds: int = int(os.getenv("CACHE_TTL_SECONDS", "1800"))
    cache_tombstone_seconds: int = int(os.getenv("CACHE_TOMBSTONE_SECONDS", "60"))
    redis_host: str = os.getenv("REDIS_HOST", "localhost")
    redis_port: int = int(os.getenv("REDIS_PORT", "6379"))
    redis_password: str = os.getenv("REDIS_PASSWORD", "")
    redis_max_connections: int = int(os.getenv("REDIS_MAX_CONNECTIONS", "10"))
    redis_socket_timeout: int = int(os.getenv("REDIS_SOCKET_TIMEOUT", "2"))

    # Links
    default_domain: str = os.getenv("DEFAULT_DOMAIN", "localhost:8001")
    slug_length: int = int(os.getenv("SLUG_LENGTH", "6"))
    cors_origins: List[str] = ["http://localhost:3000"]

    # Auth
    secret_key: str = os.getenv("SECRET_KEY", "change-me")
    jwt_algorithm: str = os.getenv("JWT_ALGORITHM", "HS256")
    access_token_expire_minutes: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "1440"))
    # Account created on first start when the user store is empty
    admin_username: str = os.getenv("ADMIN_USERNAME", "admin")
    admin_password: str = os.getenv("ADMIN_PASSWORD", "admin123")
    admin_email: str = os.getenv("ADMIN_EMAIL", "admin@localhost.localdomain")
    bcrypt_rounds: int = int(os.getenv("BCRYPT_ROUNDS", "12"))
    allow_registration: bool = os.getenv("ALLOW_REGISTRATION", "false").lower() == "true"

    @property
    def sql_url(self) -> str:
        if self.database_url:
            return self.database_url
        return (
            f"postgresql+asyncpg://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()


def validate_configuration():
    """Validate that pool, store and auth configuration is reasonable."""
    errors = []

    if settings.store_backend not in ("sql", "mongo", "memory"):
        errors.append(f"store_backend '{settings.store_backend}' is unknown, expected sql, mongo or memory.")

    if settings.db_pool_size > 50:
        errors.append("db_pool_size is very large (>50). Consider scaling horizontally instead.")

    if settings.db_pool_size < 5:
        errors.append("db_pool_size is too small (<5). May cause connection exhaustion.")

    if settings.store_timeout_seconds > settings.redirect_timeout_seconds:
        errors.append(
            f"store_timeout_seconds ({settings.store_timeout_seconds}) should be <= "
            f"redirect_timeout_seconds ({settings.redirect_timeout_seconds})"
        )

    if settings.cache_tombstone_seconds <= settings.redirect_timeout_seconds:
        errors.append(
            f"cache_tombstone_seconds ({settings.cache_tombstone_seconds}) should exceed "
            f"redirect_timeout_seconds ({settings.redirect_timeout_seconds})"
        )

    if settings.secret_key == "change-me":
        errors.append("SECRET_KEY is not set, tokens are signed with the default key.")

    if errors:
        logger.warning("Configuration issues found:")
        for error in errors:
            logger.warning(f"  - {error}")

    return len(errors) == 0


# Run validation on import
if not settings.testing:
    validate_configuration()
