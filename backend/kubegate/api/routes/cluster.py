from fastapi import APIRouter, Depends

from kubegate.core.auth import GatedRoute
from kubegate.dependencies import get_kubernetes_service
from kubegate.schemas.kubernetes import ClusterHealth, ClusterInfo, ClusterVersion
from kubegate.services.kube_client import KubernetesService

router = APIRouter(prefix="/cluster", tags=["cluster"], route_class=GatedRoute)


@router.get("", response_model=ClusterInfo, summary="Cluster name, version and node count")
async def get_cluster_info(service: KubernetesService = Depends(get_kubernetes_service)) -> ClusterInfo:
    return await service.get_cluster_info()


@router.get("/health", response_model=ClusterHealth, summary="Node readiness and pod phase summary")
async def get_cluster_health(service: KubernetesService = Depends(get_kubernetes_service)) -> ClusterHealth:
    return await service.get_cluster_health()


@router.get("/version", response_model=ClusterVersion, summary="API server build information")
async def get_cluster_version(service: KubernetesService = Depends(get_kubernetes_service)) -> ClusterVersion:
    return await service.get_cluster_version()
