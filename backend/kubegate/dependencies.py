from fastapi import Depends, Request

from kubegate.config import Settings
from kubegate.core.security import TokenService
from kubegate.services.kube_client import KubernetesService
from kubegate.services.metrics import MetricsService
from kubegate.services.metrics_client import MetricsCollector


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_token_service(settings: Settings = Depends(get_settings)) -> TokenService:
    return TokenService(settings)


def get_kubernetes_service(request: Request) -> KubernetesService:
    return request.app.state.kubernetes


def get_metrics_collector(
    settings: Settings = Depends(get_settings),
    kube: KubernetesService = Depends(get_kubernetes_service),
) -> MetricsCollector | None:
    if not settings.metrics_enabled:
        return None
    return MetricsCollector(kube)


def get_metrics_service(
    kube: KubernetesService = Depends(get_kubernetes_service),
    collector: MetricsCollector | None = Depends(get_metrics_collector),
) -> MetricsService:
    return MetricsService(kube, collector)
