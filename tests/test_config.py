"""
Tests for YAML loading and environment overrides.
"""

import logging

import pytest

from storefront.config import DEFAULT_ORIGINS, StorefrontConfig, get_config, reset_config, set_config
from storefront.logger import configure_logging, get_logger

YAML = """
storefront:
  env: production
  default_country: Canada
database:
  url: postgresql+psycopg://shop@db/shop
auth:
  provider: supabase
  jwt_expire_minutes: 15
  supabase_url: https://project.supabase.co
cors:
  allowed_origins:
    - https://shop.example.com
"""


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "storefront.yaml"
    path.write_text(YAML)
    return path


def test_yaml_values(config_file):
    config = StorefrontConfig.from_yaml(config_file)
    assert config.env == "production"
    assert not config.is_development
    assert config.default_country == "Canada"
    assert config.database_url == "postgresql+psycopg://shop@db/shop"
    assert config.auth_provider == "supabase"
    assert config.jwt_expire_minutes == 15
    assert config.allowed_origins == ["https://shop.example.com"]


def test_missing_file_gives_defaults(tmp_path):
    config = StorefrontConfig.from_yaml(tmp_path / "absent.yaml")
    assert config.auth_provider == "local"
    assert config.allowed_origins == DEFAULT_ORIGINS


def test_environment_wins(config_file, monkeypatch):
    monkeypatch.setenv("AUTH_PROVIDER", "LOCAL")
    monkeypatch.setenv("JWT_EXPIRE_MINUTES", "5")
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "service-key")
    monkeypatch.setenv("ALLOWED_ORIGINS", " https://a.example.com , https://b.example.com ,")
    config = StorefrontConfig.from_yaml(config_file).apply_env()
    assert config.auth_provider == "local"
    assert config.jwt_expire_minutes == 5
    assert config.supabase_service_role_key == "service-key"
    assert config.allowed_origins == ["https://a.example.com", "https://b.example.com"]


def test_secret_never_read_from_yaml(tmp_path):
    path = tmp_path / "storefront.yaml"
    path.write_text("auth:\n  supabase_service_role_key: leaked\n")
    assert StorefrontConfig.from_yaml(path).supabase_service_role_key == ""


def test_global_instance_can_be_replaced():
    original = get_config()
    try:
        custom = StorefrontConfig(default_country="Japan")
        set_config(custom)
        assert get_config() is custom
    finally:
        set_config(original)


def test_reset_reloads(monkeypatch):
    original = get_config()
    try:
        monkeypatch.setenv("DEFAULT_COUNTRY", "Norway")
        reset_config()
        assert get_config().default_country == "Norway"
    finally:
        set_config(original)


def test_log_level_follows_config():
    original = get_config()
    try:
        set_config(StorefrontConfig(log_level="debug"))
        configure_logging()
        assert get_logger().level == logging.DEBUG
        assert all(h.level == logging.DEBUG for h in get_logger().handlers)
        assert get_logger("cart").getEffectiveLevel() == logging.DEBUG

        set_config(StorefrontConfig(log_level="WARNING"))
        configure_logging()
        assert get_logger("cart").getEffectiveLevel() == logging.WARNING
    finally:
        set_config(original)
        configure_logging()


def test_unknown_log_level_falls_back_to_info():
    try:
        assert configure_logging("chatty").level == logging.INFO
    finally:
        configure_logging()
