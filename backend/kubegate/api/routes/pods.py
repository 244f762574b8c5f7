from fastapi import APIRouter, Depends, Query, Response, status
from fastapi.responses import PlainTextResponse

from kubegate.core.auth import GatedRoute
from kubegate.dependencies import get_kubernetes_service, get_metrics_service
from kubegate.exceptions import MalformedRequestError
from kubegate.schemas.kubernetes import ItemList, Pod
from kubegate.schemas.metrics import PodMetricsRecord
from kubegate.services.kube_client import KubernetesService
from kubegate.services.metrics import MetricsService

router = APIRouter(prefix="/pods", tags=["pods"], route_class=GatedRoute)

DEFAULT_TAIL_LINES = 100


def _parse_tail(raw: str | None) -> int:
    if raw is None or raw == "":
        return DEFAULT_TAIL_LINES
    try:
        tail = int(raw)
    except ValueError:
        raise MalformedRequestError("Invalid 'tail' parameter") from None
    if tail < 0:
        raise MalformedRequestError("Invalid 'tail' parameter")
    return tail


@router.get("", response_model=ItemList[Pod], summary="List pods")
async def list_pods(
    namespace: str | None = Query(default=None),
    service: KubernetesService = Depends(get_kubernetes_service),
) -> ItemList[Pod]:
    return ItemList[Pod](items=await service.list_pods(namespace))


@router.get("/{namespace}/{name}", response_model=Pod, summary="Get a pod")
async def get_pod(namespace: str, name: str, service: KubernetesService = Depends(get_kubernetes_service)) -> Pod:
    return await service.get_pod(namespace, name)


@router.delete("/{namespace}/{name}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a pod")
async def delete_pod(namespace: str, name: str, service: KubernetesService = Depends(get_kubernetes_service)) -> Response:
    await service.delete_pod(namespace, name)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{namespace}/{name}/logs", response_class=PlainTextResponse, summary="Tail pod logs")
async def get_pod_logs(
    namespace: str,
    name: str,
    tail: str | None = Query(default=None, description="Number of trailing lines (default 100)"),
    container: str | None = Query(default=None),
    service: KubernetesService = Depends(get_kubernetes_service),
) -> PlainTextResponse:
    logs = await service.read_pod_logs(namespace, name, _parse_tail(tail), container)
    return PlainTextResponse(logs)


@router.get(
    "/{namespace}/{name}/metrics",
    response_model=PodMetricsRecord,
    response_model_exclude_none=True,
    summary="Get pod metrics",
)
async def get_pod_metrics(
    namespace: str,
    name: str,
    metrics: MetricsService = Depends(get_metrics_service),
) -> PodMetricsRecord:
    return await metrics.pod_metrics(namespace, name)
