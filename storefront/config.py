"""
Configuration management for the storefront API.

Loads settings from a YAML config file, then applies environment overrides.
"""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional
import yaml

# Load environment variables from .env file
from dotenv import load_dotenv
load_dotenv()


def _project_root() -> Path:
    """Return project root (parent of storefront package)."""
    return Path(__file__).resolve().parent.parent


DEFAULT_CONFIG_PATH = _project_root() / "config" / "default.yaml"

DEFAULT_ORIGINS = ["http://localhost:3000", "https://localhost:3000"]


@dataclass
class StorefrontConfig:
    """Configuration for the storefront API."""

    env: str = "development"
    log_level: str = "INFO"
    site_url: str = "http://localhost:3000"
    default_country: str = "Philippines"

    # Datastore
    database_url: str = "sqlite:///./storefront.db"

    # Auth provider: "local" (auth_identities table + JWT) or "supabase" (GoTrue REST)
    auth_provider: str = "local"
    jwt_secret: str = "dev-secret-change-me"
    jwt_expire_minutes: int = 60
    supabase_url: str = ""
    supabase_service_role_key: str = ""

    # CORS allow-list
    allowed_origins: List[str] = field(default_factory=lambda: list(DEFAULT_ORIGINS))

    @property
    def is_development(self) -> bool:
        return self.env.lower() in ("development", "dev", "")

    @classmethod
    def from_yaml(cls, config_path: Optional[Path] = None) -> "StorefrontConfig":
        """Load configuration from YAML file (missing file -> defaults)."""
        path = config_path or Path(os.getenv("STOREFRONT_CONFIG", DEFAULT_CONFIG_PATH))
        data = {}
        if path.exists():
            with open(path, 'r') as f:
                data = yaml.safe_load(f) or {}

        app_config = data.get('storefront', {})
        database_config = data.get('database', {})
        auth_config = data.get('auth', {})
        cors_config = data.get('cors', {})

        return cls(
            env=app_config.get('env', 'development'),
            log_level=app_config.get('log_level', 'INFO'),
            site_url=app_config.get('site_url', 'http://localhost:3000'),
            default_country=app_config.get('default_country', 'Philippines'),
            database_url=database_config.get('url', 'sqlite:///./storefront.db'),
            auth_provider=auth_config.get('provider', 'local'),
            jwt_secret=auth_config.get('jwt_secret', 'dev-secret-change-me'),
            jwt_expire_minutes=int(auth_config.get('jwt_expire_minutes', 60)),
            supabase_url=auth_config.get('supabase_url', ''),
            allowed_origins=list(cors_config.get('allowed_origins') or DEFAULT_ORIGINS),
        )

    def apply_env(self) -> "StorefrontConfig":
        """Override fields from environment variables. Secrets only ever come from here."""
        self.env = os.getenv("ENV", self.env)
        self.log_level = os.getenv("LOG_LEVEL", self.log_level).upper()
        self.site_url = os.getenv("SITE_URL", self.site_url)
        self.default_country = os.getenv("DEFAULT_COUNTRY", self.default_country)
        self.database_url = os.getenv("DATABASE_URL") or self.database_url
        self.auth_provider = os.getenv("AUTH_PROVIDER", self.auth_provider).lower()
        self.jwt_secret = os.getenv("JWT_SECRET") or self.jwt_secret
        self.jwt_expire_minutes = int(os.getenv("JWT_EXPIRE_MINUTES", self.jwt_expire_minutes))
        self.supabase_url = os.getenv("SUPABASE_URL", self.supabase_url)
        self.supabase_service_role_key = os.getenv(
            "SUPABASE_SERVICE_ROLE_KEY", self.supabase_service_role_key
        )
        origins = os.getenv("ALLOWED_ORIGINS")
        if origins:
            self.allowed_origins = [o.strip() for o in origins.split(",") if o.strip()]
        return self


# Global config instance
_config: Optional[StorefrontConfig] = None


def get_config() -> StorefrontConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = StorefrontConfig.from_yaml().apply_env()
    return _config


def set_config(config: StorefrontConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config


def reset_config() -> None:
    """Drop the cached instance so the next get_config() reloads."""
    global _config
    _config = None
