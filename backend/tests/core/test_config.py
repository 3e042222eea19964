"""Settings tests — defaults and normalization."""

from concord.config import Settings


def test_engine_defaults():
    settings = Settings(_env_file=None)
    assert settings.max_cascade_depth == 32
    assert settings.enrichment_timeout_seconds == 10
    assert settings.request_timeout_seconds == 15
    assert settings.log_retention_cascades == 1000
    assert settings.passthrough_default is False


def test_base_url_normalized():
    assert Settings(base_url="api/", _env_file=None).base_url == "/api"


def test_postgres_url_gets_async_driver():
    settings = Settings(database_url="postgresql://a:b@h/db", _env_file=None)
    assert settings.database_url == "postgresql+asyncpg://a:b@h/db"
