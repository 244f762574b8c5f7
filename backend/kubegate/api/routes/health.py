from fastapi import APIRouter, Depends

from kubegate.dependencies import get_kubernetes_service
from kubegate.schemas.kubernetes import HealthStatus
from kubegate.services.kube_client import KubernetesService

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthStatus, summary="Gateway and cluster reachability")
async def health(service: KubernetesService = Depends(get_kubernetes_service)) -> HealthStatus:
    # The gateway itself is up if it answers; cluster trouble only degrades it.
    connected = await service.is_available()
    return HealthStatus(status="ok" if connected else "degraded", kubernetes="connected" if connected else "unavailable")
