from fastapi import APIRouter, Depends

from kubegate.core.auth import GatedRoute
from kubegate.dependencies import get_metrics_service
from kubegate.schemas.metrics import NodeMetricsList, PodMetricsList
from kubegate.services.metrics import MetricsService

router = APIRouter(prefix="/metrics", tags=["metrics"], route_class=GatedRoute)


@router.get("/nodes", response_model=NodeMetricsList, response_model_exclude_none=True, summary="Usage for every node")
async def list_node_metrics(metrics: MetricsService = Depends(get_metrics_service)) -> NodeMetricsList:
    return await metrics.list_node_metrics()


@router.get("/pods", response_model=PodMetricsList, response_model_exclude_none=True, summary="Usage for every pod")
async def list_pod_metrics(metrics: MetricsService = Depends(get_metrics_service)) -> PodMetricsList:
    return await metrics.list_pod_metrics()


@router.get(
    "/pods/{namespace}",
    response_model=PodMetricsList,
    response_model_exclude_none=True,
    summary="Usage for the pods of one namespace",
)
async def list_namespace_pod_metrics(namespace: str, metrics: MetricsService = Depends(get_metrics_service)) -> PodMetricsList:
    return await metrics.list_pod_metrics(namespace)
