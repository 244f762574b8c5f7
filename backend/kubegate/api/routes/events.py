from fastapi import APIRouter, Depends

from kubegate.core.auth import GatedRoute
from kubegate.dependencies import get_kubernetes_service
from kubegate.schemas.kubernetes import Event, ItemList
from kubegate.services.kube_client import KubernetesService

router = APIRouter(prefix="/events", tags=["events"], route_class=GatedRoute)


@router.get("", response_model=ItemList[Event], summary="List events across namespaces")
async def list_events(service: KubernetesService = Depends(get_kubernetes_service)) -> ItemList[Event]:
    return ItemList[Event](items=await service.list_events())


@router.get("/{namespace}", response_model=ItemList[Event], summary="List events in a namespace")
async def list_namespace_events(namespace: str, service: KubernetesService = Depends(get_kubernetes_service)) -> ItemList[Event]:
    return ItemList[Event](items=await service.list_events(namespace))
