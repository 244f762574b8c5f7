from fastapi import APIRouter, Depends, Response, status

from kubegate.core.auth import GatedRoute
from kubegate.dependencies import get_kubernetes_service
from kubegate.schemas.kubernetes import CreateNamespaceRequest, ItemList, Namespace
from kubegate.services.kube_client import KubernetesService

router = APIRouter(prefix="/namespaces", tags=["namespaces"], route_class=GatedRoute)


@router.get("", response_model=ItemList[Namespace], summary="List namespaces")
async def list_namespaces(service: KubernetesService = Depends(get_kubernetes_service)) -> ItemList[Namespace]:
    return ItemList[Namespace](items=await service.list_namespaces())


@router.post("", response_model=Namespace, status_code=status.HTTP_201_CREATED, summary="Create a namespace")
async def create_namespace(payload: CreateNamespaceRequest, service: KubernetesService = Depends(get_kubernetes_service)) -> Namespace:
    return await service.create_namespace(payload)


@router.get("/{name}", response_model=Namespace, summary="Get a namespace")
async def get_namespace(name: str, service: KubernetesService = Depends(get_kubernetes_service)) -> Namespace:
    return await service.get_namespace(name)


@router.delete("/{name}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a namespace")
async def delete_namespace(name: str, service: KubernetesService = Depends(get_kubernetes_service)) -> Response:
    await service.delete_namespace(name)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
