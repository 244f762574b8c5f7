from fastapi import APIRouter, Depends

from kubegate.core.auth import GatedRoute
from kubegate.dependencies import get_kubernetes_service, get_metrics_service
from kubegate.schemas.kubernetes import ItemList, Node
from kubegate.schemas.metrics import NodeMetricsRecord
from kubegate.services.kube_client import KubernetesService
from kubegate.services.metrics import MetricsService

router = APIRouter(prefix="/nodes", tags=["nodes"], route_class=GatedRoute)


@router.get("", response_model=ItemList[Node], summary="List cluster nodes")
async def list_nodes(service: KubernetesService = Depends(get_kubernetes_service)) -> ItemList[Node]:
    return ItemList[Node](items=await service.list_nodes())


@router.get("/{name}", response_model=Node, summary="Get node detail")
async def get_node(name: str, service: KubernetesService = Depends(get_kubernetes_service)) -> Node:
    return await service.get_node(name)


@router.get(
    "/{name}/metrics",
    response_model=NodeMetricsRecord,
    response_model_exclude_none=True,
    summary="Get node usage with utilization against capacity",
)
async def get_node_metrics(name: str, metrics: MetricsService = Depends(get_metrics_service)) -> NodeMetricsRecord:
    return await metrics.node_metrics(name)
