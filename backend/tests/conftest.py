from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from kubegate.config import Settings
from kubegate.core.security import TokenService
from kubegate.dependencies import get_kubernetes_service, get_metrics_collector
from kubegate.main import create_app
from kubegate.services.kube_client import KubernetesService
from kubegate.services.metrics_client import MetricsCollector

TEST_SECRET = "unit-test-signing-secret"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,  # type: ignore[call-arg]
        jwt_secret=TEST_SECRET,
        app_env="test",
        admin_username="admin",
        admin_password="password",
    )


@pytest.fixture
def token_service(settings: Settings) -> TokenService:
    return TokenService(settings)


@pytest.fixture
def fake_kube() -> MagicMock:
    # spec= makes every coroutine method an AsyncMock
    return MagicMock(spec=KubernetesService)


@pytest.fixture
def fake_collector() -> MagicMock:
    return MagicMock(spec=MetricsCollector)


@pytest.fixture
def app(settings: Settings, fake_kube: MagicMock, fake_collector: MagicMock):
    application = create_app(settings)
    application.dependency_overrides[get_kubernetes_service] = lambda: fake_kube
    application.dependency_overrides[get_metrics_collector] = lambda: fake_collector
    return application


@pytest.fixture
def client(app):
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client


@pytest.fixture
def auth_headers(token_service: TokenService) -> dict[str, str]:
    return {"Authorization": f"Bearer {token_service.issue('admin')}"}
