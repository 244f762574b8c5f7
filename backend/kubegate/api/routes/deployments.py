from fastapi import APIRouter, Depends, Query, Response, status

from kubegate.core.auth import GatedRoute
from kubegate.dependencies import get_kubernetes_service
from kubegate.schemas.kubernetes import CreateDeploymentRequest, Deployment, ItemList, UpdateDeploymentRequest
from kubegate.services.kube_client import KubernetesService

router = APIRouter(prefix="/deployments", tags=["deployments"], route_class=GatedRoute)


@router.get("", response_model=ItemList[Deployment], summary="List deployments")
async def list_deployments(
    namespace: str | None = Query(default=None),
    service: KubernetesService = Depends(get_kubernetes_service),
) -> ItemList[Deployment]:
    return ItemList[Deployment](items=await service.list_deployments(namespace))


@router.post("", response_model=Deployment, status_code=status.HTTP_201_CREATED, summary="Create a deployment")
async def create_deployment(
    payload: CreateDeploymentRequest,
    service: KubernetesService = Depends(get_kubernetes_service),
) -> Deployment:
    return await service.create_deployment(payload)


@router.get("/{namespace}/{name}", response_model=Deployment, summary="Get a deployment")
async def get_deployment(namespace: str, name: str, service: KubernetesService = Depends(get_kubernetes_service)) -> Deployment:
    return await service.get_deployment(namespace, name)


@router.put("/{namespace}/{name}", response_model=Deployment, summary="Update image and/or replicas")
async def update_deployment(
    namespace: str,
    name: str,
    payload: UpdateDeploymentRequest,
    service: KubernetesService = Depends(get_kubernetes_service),
) -> Deployment:
    return await service.update_deployment(namespace, name, payload)


@router.delete("/{namespace}/{name}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a deployment")
async def delete_deployment(namespace: str, name: str, service: KubernetesService = Depends(get_kubernetes_service)) -> Response:
    await service.delete_deployment(namespace, name)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
