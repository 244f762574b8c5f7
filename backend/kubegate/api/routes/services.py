from fastapi import APIRouter, Depends, Query, Response, status

from kubegate.core.auth import GatedRoute
from kubegate.dependencies import get_kubernetes_service
from kubegate.schemas.kubernetes import CreateServiceRequest, ItemList, Service
from kubegate.services.kube_client import KubernetesService

router = APIRouter(prefix="/services", tags=["services"], route_class=GatedRoute)


@router.get("", response_model=ItemList[Service], summary="List services")
async def list_services(
    namespace: str | None = Query(default=None),
    service: KubernetesService = Depends(get_kubernetes_service),
) -> ItemList[Service]:
    return ItemList[Service](items=await service.list_services(namespace))


@router.post("", response_model=Service, status_code=status.HTTP_201_CREATED, summary="Create a ClusterIP service")
async def create_service(payload: CreateServiceRequest, service: KubernetesService = Depends(get_kubernetes_service)) -> Service:
    return await service.create_service(payload)


@router.get("/{namespace}/{name}", response_model=Service, summary="Get a service")
async def get_service(namespace: str, name: str, service: KubernetesService = Depends(get_kubernetes_service)) -> Service:
    return await service.get_service(namespace, name)


@router.delete("/{namespace}/{name}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a service")
async def delete_service(namespace: str, name: str, service: KubernetesService = Depends(get_kubernetes_service)) -> Response:
    await service.delete_service(namespace, name)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
