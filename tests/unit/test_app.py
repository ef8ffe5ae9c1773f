"""
Tests for the application factory and lifespan wiring.
"""

from fastapi.testclient import TestClient

from token_manager.api.middleware.rate_limit import InMemoryRateLimiter, RedisRateLimiter
from token_manager.core.config import Settings
from token_manager.main import create_app, create_redis_client


class TestLifespan:
    def test_services_built_on_startup(self, app):
        assert app.state.dispatcher is None

        with TestClient(app):
            assert len(app.state.registry) == 11
            assert app.state.dispatcher is not None
            assert isinstance(app.state.rate_limiter, InMemoryRateLimiter)

        assert app.state.dispatcher is None

    def test_redis_limiter_when_configured(self, cloudflare_api):
        settings = Settings(api_key="k", redis_url="redis://localhost:6379/0")
        app = create_app(settings=settings, cloudflare_client=cloudflare_api.client())

        with TestClient(app):
            assert isinstance(app.state.rate_limiter, RedisRateLimiter)


class TestFactory:
    def test_docs_disabled_in_production(self):
        app = create_app(settings=Settings(environment="production", api_key="k"))
        assert app.docs_url is None
        assert app.redoc_url is None

    def test_docs_enabled_in_development(self, test_settings):
        assert create_app(settings=test_settings).docs_url == "/docs"

    def test_redis_client_optional(self):
        assert create_redis_client(Settings(redis_url=None)) is None
        assert create_redis_client(Settings(redis_url="redis://localhost:6379/0")) is not None
