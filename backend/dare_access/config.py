import json
import os
import threading
from pathlib import Path
from urllib.parse import urlparse

from dotenv import load_dotenv
from pydantic import BaseModel, Field


load_dotenv()

DEFAULT_ROUTES_DIR = str(Path(__file__).resolve().parent / "api")
ROUTE_SOURCES = frozenset({"live", "static"})
SUPPORTED_DATABASE_SCHEMES = frozenset({"postgresql+asyncpg", "sqlite+aiosqlite"})


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"{name} must be a boolean value")


def _parse_origins(raw: str) -> list[str]:
    if not raw:
        return []

    # Support both CSV format and JSON array format
    if raw.startswith("["):
        try:
            parsed_list = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ValueError(f"ALLOWED_ORIGINS JSON is malformed: {exc}") from exc
        if not isinstance(parsed_list, list):
            raise ValueError("ALLOWED_ORIGINS JSON must be an array")
        origins = [
            origin.strip() for origin in parsed_list if isinstance(origin, str) and origin.strip()
        ]
    else:
        origins = [origin.strip() for origin in raw.split(",") if origin.strip()]

    if "*" in origins:
        raise ValueError(
            "ALLOWED_ORIGINS cannot contain '*' when credentialed requests are used"
        )
    for origin in origins:
        parsed = urlparse(origin)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise ValueError(
                "ALLOWED_ORIGINS must contain valid http/https origins with host"
            )
    return origins


class Settings(BaseModel):
    app_name: str = Field(default="DARE Access Control")
    debug: bool = Field(default=False)
    database_url: str = Field(default="")
    allowed_origins: list[str] = Field(default_factory=list)
    db_pool_size: int = Field(default=5)
    db_max_overflow: int = Field(default=10)
    db_pool_recycle: int = Field(default=1800)
    db_pool_pre_ping: bool = Field(default=True)
    secret_key: str | None = Field(default=None)
    algorithm: str = Field(default="HS256")
    api_prefix: str = Field(default="/api")
    admin_role_name: str = Field(default="admin")
    permission_route_source: str = Field(default="live")
    permission_routes_dir: str = Field(default=DEFAULT_ROUTES_DIR)
    sync_permissions_on_startup: bool = Field(default=True)

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @classmethod
    def from_env(cls) -> "Settings":
        secret_key = os.getenv("SECRET_KEY", "").strip()
        if not secret_key:
            raise ValueError("SECRET_KEY environment variable must be set")

        database_url = os.getenv("DATABASE_URL", "").strip()
        if not database_url:
            raise ValueError("DATABASE_URL environment variable must be set")

        parsed_db = urlparse(database_url)
        if parsed_db.scheme not in SUPPORTED_DATABASE_SCHEMES:
            raise ValueError(
                "DATABASE_URL must start with 'postgresql+asyncpg://' or 'sqlite+aiosqlite://'"
            )
        if parsed_db.scheme == "postgresql+asyncpg" and not parsed_db.hostname:
            raise ValueError("DATABASE_URL must include hostname")

        allowed_origins = _parse_origins(os.getenv("ALLOWED_ORIGINS", "").strip())

        db_pool_size = int(os.getenv("DB_POOL_SIZE", cls.model_fields["db_pool_size"].default))
        if db_pool_size <= 0:
            raise ValueError("DB_POOL_SIZE must be greater than 0")

        db_max_overflow = int(
            os.getenv("DB_MAX_OVERFLOW", cls.model_fields["db_max_overflow"].default)
        )
        if db_max_overflow < 0:
            raise ValueError("DB_MAX_OVERFLOW must be greater than or equal to 0")

        db_pool_recycle = int(
            os.getenv("DB_POOL_RECYCLE", cls.model_fields["db_pool_recycle"].default)
        )
        if db_pool_recycle <= 0:
            raise ValueError("DB_POOL_RECYCLE must be greater than 0")

        db_pool_pre_ping = _parse_bool(
            "DB_POOL_PRE_PING",
            os.getenv("DB_POOL_PRE_PING", str(cls.model_fields["db_pool_pre_ping"].default)),
        )

        api_prefix = os.getenv("API_PREFIX", cls.model_fields["api_prefix"].default).strip()
        if not api_prefix.startswith("/"):
            raise ValueError("API_PREFIX must start with '/'")
        api_prefix = api_prefix.rstrip("/")
        if not api_prefix:
            # Framework routes such as /health and /docs stay outside the prefix
            raise ValueError("API_PREFIX must name a path below '/'")

        admin_role_name = os.getenv(
            "ADMIN_ROLE_NAME", cls.model_fields["admin_role_name"].default
        ).strip()
        if not admin_role_name:
            raise ValueError("ADMIN_ROLE_NAME must not be empty")

        route_source = os.getenv(
            "PERMISSION_ROUTE_SOURCE", cls.model_fields["permission_route_source"].default
        ).strip().lower()
        if route_source not in ROUTE_SOURCES:
            raise ValueError("PERMISSION_ROUTE_SOURCE must be 'live' or 'static'")

        return cls(
            app_name=os.getenv("APP_NAME", cls.model_fields["app_name"].default),
            debug=os.getenv("DEBUG", "false").lower() == "true",
            database_url=database_url,
            allowed_origins=allowed_origins,
            secret_key=secret_key,
            algorithm=os.getenv("ALGORITHM", cls.model_fields["algorithm"].default),
            db_pool_size=db_pool_size,
            db_max_overflow=db_max_overflow,
            db_pool_recycle=db_pool_recycle,
            db_pool_pre_ping=db_pool_pre_ping,
            api_prefix=api_prefix,
            admin_role_name=admin_role_name,
            permission_route_source=route_source,
            permission_routes_dir=os.getenv("PERMISSION_ROUTES_DIR", DEFAULT_ROUTES_DIR),
            sync_permissions_on_startup=_parse_bool(
                "SYNC_PERMISSIONS_ON_STARTUP",
                os.getenv("SYNC_PERMISSIONS_ON_STARTUP", "true"),
            ),
        )


# Settings are validated on first access, not at import time
_settings_instance: Settings | None = None
_settings_lock = threading.Lock()


def get_settings() -> Settings:
    """Get settings instance, creating it on first access.

    Uses double-checked locking so concurrent first accesses build a
    single instance.

    Raises:
        ValueError: If required environment variables are missing or invalid
    """
    global _settings_instance

    if _settings_instance is not None:
        return _settings_instance

    with _settings_lock:
        if _settings_instance is None:
            _settings_instance = Settings.from_env()

    return _settings_instance


class _SettingsProxy:
    """Proxy to defer settings creation until first attribute access."""

    def __getattr__(self, name: str):
        return getattr(get_settings(), name)


settings = _SettingsProxy()  # type: ignore[assignment]
