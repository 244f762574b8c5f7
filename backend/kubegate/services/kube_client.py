from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any, TypeVar

import structlog
from kubernetes import client, config
from kubernetes.client import ApiClient
from kubernetes.client.exceptions import ApiException
from kubernetes.config.config_exception import ConfigException
from urllib3.exceptions import HTTPError

from kubegate.config import Settings
from kubegate.exceptions import (
    ClusterUnavailableError,
    ConflictError,
    InternalError,
    MalformedRequestError,
    NotFoundError,
)
from kubegate.schemas.kubernetes import (
    ClusterHealth,
    ClusterInfo,
    ClusterVersion,
    CreateDeploymentRequest,
    CreateNamespaceRequest,
    CreateServiceRequest,
    Deployment,
    Event,
    Namespace,
    Node,
    NodeHealth,
    Pod,
    PodHealth,
    Service,
    ServicePort,
    UpdateDeploymentRequest,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T")

DEFAULT_CLUSTER_NAME = "default-cluster"


class KubernetesService:
    """Thin async wrapper around the Kubernetes Python client.

    Every blocking client call runs in a worker thread with the configured
    ``_request_timeout``; client errors are translated into ``AppException``
    subclasses so routes never see an ``ApiException``.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self._timeout = settings.kube_request_timeout_seconds
        self._client_lock = asyncio.Lock()
        self._api_client: ApiClient | None = None
        self._core_v1: client.CoreV1Api | None = None
        self._apps_v1: client.AppsV1Api | None = None
        self._cluster_display_name = settings.kube_context or DEFAULT_CLUSTER_NAME

    # ---------------------------
    # Pods
    # ---------------------------

    async def list_pods(self, namespace: str | None = None) -> list[Pod]:
        core_v1, _ = await self._ensure_clients()

        def _collect() -> list[Pod]:
            if namespace:
                items = core_v1.list_namespaced_pod(namespace=namespace, _request_timeout=self._timeout).items
            else:
                items = core_v1.list_pod_for_all_namespaces(_request_timeout=self._timeout).items
            return [_pod_from_api(item) for item in items]

        return await self._run("pod", _collect)

    async def get_pod(self, namespace: str, name: str) -> Pod:
        core_v1, _ = await self._ensure_clients()

        def _load() -> Pod:
            return _pod_from_api(core_v1.read_namespaced_pod(name=name, namespace=namespace, _request_timeout=self._timeout))

        return await self._run("pod", _load, target=f"{namespace}/{name}")

    async def delete_pod(self, namespace: str, name: str) -> None:
        core_v1, _ = await self._ensure_clients()

        def _do() -> None:
            core_v1.delete_namespaced_pod(name=name, namespace=namespace, _request_timeout=self._timeout)

        await self._run("pod", _do, target=f"{namespace}/{name}")
        logger.info("kubernetes.pod_deleted", namespace=namespace, pod=name)

    async def read_pod_logs(self, namespace: str, name: str, tail_lines: int, container: str | None = None) -> str:
        core_v1, _ = await self._ensure_clients()

        def _read() -> str:
            kwargs: dict[str, Any] = {"tail_lines": tail_lines, "_request_timeout": self._timeout}
            if container:
                kwargs["container"] = container
            return core_v1.read_namespaced_pod_log(name=name, namespace=namespace, **kwargs) or ""

        return await self._run("pod", _read, target=f"{namespace}/{name}")

    # ---------------------------
    # Deployments
    # ---------------------------

    async def list_deployments(self, namespace: str | None = None) -> list[Deployment]:
        _, apps_v1 = await self._ensure_clients()

        def _collect() -> list[Deployment]:
            if namespace:
                items = apps_v1.list_namespaced_deployment(namespace=namespace, _request_timeout=self._timeout).items
            else:
                items = apps_v1.list_deployment_for_all_namespaces(_request_timeout=self._timeout).items
            return [_deployment_from_api(item) for item in items]

        return await self._run("deployment", _collect)

    async def get_deployment(self, namespace: str, name: str) -> Deployment:
        _, apps_v1 = await self._ensure_clients()

        def _load() -> Deployment:
            obj = apps_v1.read_namespaced_deployment(name=name, namespace=namespace, _request_timeout=self._timeout)
            return _deployment_from_api(obj)

        return await self._run("deployment", _load, target=f"{namespace}/{name}")

    async def create_deployment(self, spec: CreateDeploymentRequest) -> Deployment:
        _, apps_v1 = await self._ensure_clients()
        labels = {"app": spec.name}
        body = client.V1Deployment(
            metadata=client.V1ObjectMeta(name=spec.name, namespace=spec.namespace, labels=labels),
            spec=client.V1DeploymentSpec(
                replicas=spec.replicas,
                selector=client.V1LabelSelector(match_labels=labels),
                template=client.V1PodTemplateSpec(
                    metadata=client.V1ObjectMeta(labels=labels),
                    spec=client.V1PodSpec(
                        containers=[
                            client.V1Container(
                                name=spec.name,
                                image=spec.image,
                                ports=[client.V1ContainerPort(container_port=spec.port)],
                            )
                        ]
                    ),
                ),
            ),
        )

        def _do() -> Deployment:
            created = apps_v1.create_namespaced_deployment(namespace=spec.namespace, body=body, _request_timeout=self._timeout)
            return _deployment_from_api(created)

        result = await self._run("deployment", _do, target=f"{spec.namespace}/{spec.name}")
        logger.info("kubernetes.deployment_created", namespace=spec.namespace, deployment=spec.name)
        return result

    async def update_deployment(self, namespace: str, name: str, change: UpdateDeploymentRequest) -> Deployment:
        _, apps_v1 = await self._ensure_clients()

        def _do() -> Deployment:
            current = apps_v1.read_namespaced_deployment(name=name, namespace=namespace, _request_timeout=self._timeout)
            containers = current.spec.template.spec.containers or []
            if change.image and containers:
                containers[0].image = change.image
            if change.replicas > 0:
                current.spec.replicas = change.replicas
            updated = apps_v1.replace_namespaced_deployment(
                name=name, namespace=namespace, body=current, _request_timeout=self._timeout
            )
            return _deployment_from_api(updated)

        result = await self._run("deployment", _do, target=f"{namespace}/{name}")
        logger.info("kubernetes.deployment_updated", namespace=namespace, deployment=name)
        return result

    async def delete_deployment(self, namespace: str, name: str) -> None:
        _, apps_v1 = await self._ensure_clients()

        def _do() -> None:
            apps_v1.delete_namespaced_deployment(name=name, namespace=namespace, _request_timeout=self._timeout)

        await self._run("deployment", _do, target=f"{namespace}/{name}")
        logger.info("kubernetes.deployment_deleted", namespace=namespace, deployment=name)

    # ---------------------------
    # Services
    # ---------------------------

    async def list_services(self, namespace: str | None = None) -> list[Service]:
        core_v1, _ = await self._ensure_clients()

        def _collect() -> list[Service]:
            if namespace:
                items = core_v1.list_namespaced_service(namespace=namespace, _request_timeout=self._timeout).items
            else:
                items = core_v1.list_service_for_all_namespaces(_request_timeout=self._timeout).items
            return [_service_from_api(item) for item in items]

        return await self._run("service", _collect)

    async def get_service(self, namespace: str, name: str) -> Service:
        core_v1, _ = await self._ensure_clients()

        def _load() -> Service:
            return _service_from_api(core_v1.read_namespaced_service(name=name, namespace=namespace, _request_timeout=self._timeout))

        return await self._run("service", _load, target=f"{namespace}/{name}")

    async def create_service(self, spec: CreateServiceRequest) -> Service:
        core_v1, _ = await self._ensure_clients()
        body = client.V1Service(
            metadata=client.V1ObjectMeta(name=spec.name, namespace=spec.namespace),
            spec=client.V1ServiceSpec(
                type="ClusterIP",
                selector={"app": spec.name},
                ports=[client.V1ServicePort(port=spec.port, target_port=spec.target_port, protocol="TCP")],
            ),
        )

        def _do() -> Service:
            created = core_v1.create_namespaced_service(namespace=spec.namespace, body=body, _request_timeout=self._timeout)
            return _service_from_api(created)

        result = await self._run("service", _do, target=f"{spec.namespace}/{spec.name}")
        logger.info("kubernetes.service_created", namespace=spec.namespace, service=spec.name)
        return result

    async def delete_service(self, namespace: str, name: str) -> None:
        core_v1, _ = await self._ensure_clients()

        def _do() -> None:
            core_v1.delete_namespaced_service(name=name, namespace=namespace, _request_timeout=self._timeout)

        await self._run("service", _do, target=f"{namespace}/{name}")
        logger.info("kubernetes.service_deleted", namespace=namespace, service=name)

    # ---------------------------
    # Namespaces
    # ---------------------------

    async def list_namespaces(self) -> list[Namespace]:
        core_v1, _ = await self._ensure_clients()

        def _collect() -> list[Namespace]:
            return [_namespace_from_api(ns) for ns in core_v1.list_namespace(_request_timeout=self._timeout).items]

        return await self._run("namespace", _collect)

    async def get_namespace(self, name: str) -> Namespace:
        core_v1, _ = await self._ensure_clients()

        def _load() -> Namespace:
            return _namespace_from_api(core_v1.read_namespace(name=name, _request_timeout=self._timeout))

        return await self._run("namespace", _load, target=name)

    async def create_namespace(self, spec: CreateNamespaceRequest) -> Namespace:
        core_v1, _ = await self._ensure_clients()
        body = client.V1Namespace(metadata=client.V1ObjectMeta(name=spec.name, labels=spec.labels or None))

        def _do() -> Namespace:
            return _namespace_from_api(core_v1.create_namespace(body=body, _request_timeout=self._timeout))

        result = await self._run("namespace", _do, target=spec.name)
        logger.info("kubernetes.namespace_created", namespace=spec.name)
        return result

    async def delete_namespace(self, name: str) -> None:
        core_v1, _ = await self._ensure_clients()

        def _do() -> None:
            core_v1.delete_namespace(name=name, _request_timeout=self._timeout)

        await self._run("namespace", _do, target=name)
        logger.info("kubernetes.namespace_deleted", namespace=name)

    # ---------------------------
    # Nodes & events
    # ---------------------------

    async def list_nodes(self) -> list[Node]:
        core_v1, _ = await self._ensure_clients()

        def _collect() -> list[Node]:
            return [_node_from_api(node) for node in core_v1.list_node(_request_timeout=self._timeout).items]

        return await self._run("node", _collect)

    async def get_node(self, name: str) -> Node:
        core_v1, _ = await self._ensure_clients()

        def _load() -> Node:
            return _node_from_api(core_v1.read_node(name=name, _request_timeout=self._timeout))

        return await self._run("node", _load, target=name)

    async def list_events(self, namespace: str | None = None) -> list[Event]:
        core_v1, _ = await self._ensure_clients()

        def _collect() -> list[Event]:
            if namespace:
                items = core_v1.list_namespaced_event(namespace=namespace, _request_timeout=self._timeout).items
            else:
                items = core_v1.list_event_for_all_namespaces(_request_timeout=self._timeout).items
            return [_event_from_api(item) for item in items]

        return await self._run("event", _collect)

    # ---------------------------
    # Cluster
    # ---------------------------

    async def get_cluster_version(self) -> ClusterVersion:
        core_v1, _ = await self._ensure_clients()
        version_api = client.VersionApi(core_v1.api_client)

        def _load() -> ClusterVersion:
            info = version_api.get_code(_request_timeout=self._timeout)
            return ClusterVersion(
                git_version=info.git_version or "",
                git_commit=info.git_commit or "",
                git_tree_state=info.git_tree_state or "",
                build_date=info.build_date or "",
                go_version=info.go_version or "",
                compiler=info.compiler or "",
                platform=info.platform or "",
            )

        return await self._run("cluster", _load)

    async def get_cluster_info(self) -> ClusterInfo:
        version = await self.get_cluster_version()
        nodes = await self.list_nodes()
        return ClusterInfo(
            name=self._cluster_display_name,
            version=version.git_version,
            nodes=len(nodes),
            healthy=True,
            status="Healthy",
        )

    async def get_cluster_health(self) -> ClusterHealth:
        nodes = await self.list_nodes()
        pods = await self.list_pods()
        ready_nodes = sum(1 for node in nodes if node.status == "Ready")
        running_pods = sum(1 for pod in pods if pod.status == "Running")
        return ClusterHealth(
            nodes=NodeHealth(total=len(nodes), healthy=ready_nodes),
            pods=PodHealth(total=len(pods), running=running_pods, failed=len(pods) - running_pods),
            overall="Healthy" if ready_nodes == len(nodes) else "Degraded",
        )

    async def is_available(self) -> bool:
        try:
            await self.get_cluster_version()
        except (ClusterUnavailableError, InternalError) as exc:
            logger.warning("kubernetes.unavailable", error=exc.message)
            return False
        return True

    # ---------------------------
    # Client plumbing
    # ---------------------------

    async def api_client(self) -> ApiClient:
        core_v1, _ = await self._ensure_clients()
        return core_v1.api_client

    @property
    def request_timeout(self) -> float:
        return self._timeout

    async def close(self) -> None:
        async with self._client_lock:
            api_client = self._api_client
            self._api_client = None
            self._core_v1 = None
            self._apps_v1 = None
        if api_client is not None:
            await asyncio.to_thread(api_client.close)

    async def _run(self, kind: str, fn: Callable[[], T], *, target: str | None = None) -> T:
        # The worker thread honours _request_timeout; wait_for bounds the await as well
        # so a cancelled or stalled request does not hold the caller.
        try:
            return await asyncio.wait_for(asyncio.to_thread(fn), timeout=self._timeout + 1)
        except ApiException as exc:
            raise _translate_api_exception(exc, kind, target) from exc
        except asyncio.TimeoutError as exc:
            logger.warning("kubernetes.request_timeout", kind=kind, target=target)
            raise ClusterUnavailableError("Kubernetes API request timed out") from exc
        except HTTPError as exc:
            logger.warning("kubernetes.request_failed", kind=kind, target=target, error=str(exc))
            raise ClusterUnavailableError("Kubernetes API unreachable") from exc

    async def _ensure_clients(self) -> tuple[client.CoreV1Api, client.AppsV1Api]:
        if self._core_v1 and self._apps_v1:
            return self._core_v1, self._apps_v1

        async with self._client_lock:
            if self._core_v1 and self._apps_v1:
                return self._core_v1, self._apps_v1

            def _build_clients() -> ApiClient:
                configuration = client.Configuration()
                if self.settings.in_cluster:
                    config.load_incluster_config(client_configuration=configuration)
                else:
                    config.load_kube_config(
                        config_file=self.settings.kube_config_path,
                        context=self.settings.kube_context,
                        client_configuration=configuration,
                    )
                return ApiClient(configuration=configuration)

            try:
                api_client = await asyncio.to_thread(_build_clients)
            except ConfigException as exc:
                logger.warning("kubernetes.config_missing", error=str(exc))
                raise ClusterUnavailableError("Kubernetes configuration not available") from exc

            self._api_client = api_client
            self._core_v1 = client.CoreV1Api(api_client)
            self._apps_v1 = client.AppsV1Api(api_client)
            logger.info("kubernetes.client_ready", cluster=self._cluster_display_name, in_cluster=self.settings.in_cluster)
            return self._core_v1, self._apps_v1


def _translate_api_exception(exc: ApiException, kind: str, target: str | None) -> Exception:
    status = exc.status or 0
    logger.warning("kubernetes.api_error", kind=kind, target=target, status=status, error=exc.reason)
    label = f"{kind} {target}" if target else kind
    if status == 404:
        return NotFoundError(f"{label.capitalize()} not found")
    if status == 409:
        return ConflictError(f"{label.capitalize()} already exists or was modified concurrently")
    if status in (400, 422):
        return MalformedRequestError(f"Invalid {kind} request")
    if status in (401, 403):
        return InternalError(f"Gateway is not permitted to access {kind} resources")
    return InternalError(f"Failed to access {kind} resources")


def _format_timestamp(value: datetime | None) -> str:
    if value is None:
        return ""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _pod_from_api(pod: Any) -> Pod:
    md = pod.metadata
    spec = pod.spec
    status = pod.status
    restarts = sum((cs.restart_count or 0) for cs in (getattr(status, "container_statuses", None) or []))
    return Pod(
        name=md.name,
        namespace=md.namespace,
        status=(getattr(status, "phase", None) or "Unknown"),
        restart_count=restarts,
        created_at=md.creation_timestamp,
        node_name=getattr(spec, "node_name", None) or "",
        pod_ip=getattr(status, "pod_ip", None) or "",
        containers=[c.name for c in (getattr(spec, "containers", None) or [])],
        labels=md.labels or {},
    )


def _deployment_from_api(obj: Any) -> Deployment:
    md = obj.metadata
    spec = obj.spec
    strategy = getattr(spec, "strategy", None)
    return Deployment(
        name=md.name,
        namespace=md.namespace,
        replicas=getattr(spec, "replicas", None) or 0,
        available_replicas=getattr(obj.status, "available_replicas", None) or 0,
        created_at=md.creation_timestamp,
        strategy=getattr(strategy, "type", None) or "",
        labels=md.labels or {},
    )


def _service_from_api(svc: Any) -> Service:
    md = svc.metadata
    spec = svc.spec
    return Service(
        name=md.name,
        namespace=md.namespace,
        type=getattr(spec, "type", None) or "",
        cluster_ip=getattr(spec, "cluster_ip", None) or "",
        ports=[ServicePort(port=p.port, protocol=p.protocol or "TCP") for p in (getattr(spec, "ports", None) or [])],
        created_at=md.creation_timestamp,
    )


def _namespace_from_api(ns: Any) -> Namespace:
    md = ns.metadata
    return Namespace(
        name=md.name,
        status=getattr(ns.status, "phase", None) or "",
        created_at=md.creation_timestamp,
        labels=md.labels or {},
    )


def _node_from_api(node: Any) -> Node:
    md = node.metadata
    status = node.status
    ready = "Unknown"
    for condition in getattr(status, "conditions", None) or []:
        if condition.type == "Ready":
            ready = "Ready" if condition.status == "True" else "NotReady"
            break
    info = getattr(status, "node_info", None)
    return Node(
        name=md.name,
        status=ready,
        version=getattr(info, "kubelet_version", None) or "",
        os_image=getattr(info, "os_image", None) or "",
        capacity={k: str(v) for k, v in (getattr(status, "capacity", None) or {}).items()},
        allocatable={k: str(v) for k, v in (getattr(status, "allocatable", None) or {}).items()},
        created_at=md.creation_timestamp,
        labels=md.labels or {},
    )


def _event_from_api(event: Any) -> Event:
    md = event.metadata
    involved = event.involved_object
    first = _format_timestamp(event.first_timestamp)
    last = _format_timestamp(event.last_timestamp) or first
    return Event(
        name=md.name,
        namespace=md.namespace or "",
        reason=event.reason or "",
        message=event.message or "",
        type=event.type or "",
        involved_object=f"{getattr(involved, 'kind', '') or ''}/{getattr(involved, 'name', '') or ''}",
        first_timestamp=first,
        last_timestamp=last,
        count=event.count or 0,
    )
