from __future__ import annotations

from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from kubernetes.client.exceptions import ApiException
from kubernetes.config.config_exception import ConfigException

from kubegate.exceptions import (
    ClusterUnavailableError,
    ConflictError,
    InternalError,
    MalformedRequestError,
    NotFoundError,
)
from kubegate.schemas.kubernetes import CreateDeploymentRequest, CreateServiceRequest, UpdateDeploymentRequest
from kubegate.services.kube_client import (
    KubernetesService,
    _event_from_api,
    _node_from_api,
    _pod_from_api,
    _translate_api_exception,
)

CREATED = datetime(2026, 1, 10, 8, 30, tzinfo=timezone.utc)


def _meta(name: str, namespace: str | None = "default", labels: dict | None = None) -> SimpleNamespace:
    return SimpleNamespace(name=name, namespace=namespace, labels=labels, creation_timestamp=CREATED)


class TestMappers:
    def test_pod_restart_count_is_summed(self) -> None:
        pod = SimpleNamespace(
            metadata=_meta("web-0", labels={"app": "web"}),
            spec=SimpleNamespace(node_name="node-1", containers=[SimpleNamespace(name="app"), SimpleNamespace(name="proxy")]),
            status=SimpleNamespace(
                phase="Running",
                pod_ip="10.0.0.7",
                container_statuses=[SimpleNamespace(restart_count=2), SimpleNamespace(restart_count=1)],
            ),
        )

        result = _pod_from_api(pod)

        assert result.restart_count == 3
        assert result.containers == ["app", "proxy"]
        assert result.pod_ip == "10.0.0.7"
        assert result.labels == {"app": "web"}

    def test_pending_pod_without_statuses(self) -> None:
        pod = SimpleNamespace(
            metadata=_meta("job-x"),
            spec=SimpleNamespace(node_name=None, containers=[]),
            status=SimpleNamespace(phase="Pending", pod_ip=None, container_statuses=None),
        )

        result = _pod_from_api(pod)

        assert result.restart_count == 0
        assert result.node_name == ""
        assert result.pod_ip == ""

    @pytest.mark.parametrize(
        ("conditions", "expected"),
        [
            ([SimpleNamespace(type="Ready", status="True")], "Ready"),
            ([SimpleNamespace(type="MemoryPressure", status="False"), SimpleNamespace(type="Ready", status="False")], "NotReady"),
            ([], "Unknown"),
        ],
    )
    def test_node_ready_condition(self, conditions, expected: str) -> None:
        node = SimpleNamespace(
            metadata=_meta("node-1", namespace=None),
            status=SimpleNamespace(
                conditions=conditions,
                node_info=SimpleNamespace(kubelet_version="v1.30.2", os_image="Ubuntu 24.04"),
                capacity={"cpu": "4", "memory": "8Gi"},
                allocatable={"cpu": "3800m"},
            ),
        )

        result = _node_from_api(node)

        assert result.status == expected
        assert result.version == "v1.30.2"
        assert result.capacity == {"cpu": "4", "memory": "8Gi"}

    def test_event_last_timestamp_falls_back_to_first(self) -> None:
        event = SimpleNamespace(
            metadata=_meta("web-0.17a"),
            involved_object=SimpleNamespace(kind="Pod", name="web-0"),
            first_timestamp=CREATED,
            last_timestamp=None,
            reason="Scheduled",
            message="assigned",
            type="Normal",
            count=None,
        )

        result = _event_from_api(event)

        assert result.involved_object == "Pod/web-0"
        assert result.first_timestamp == "2026-01-10T08:30:00Z"
        assert result.last_timestamp == "2026-01-10T08:30:00Z"
        assert result.count == 0

    def test_event_without_timestamps(self) -> None:
        event = SimpleNamespace(
            metadata=_meta("e"),
            involved_object=SimpleNamespace(kind="Node", name="node-1"),
            first_timestamp=None,
            last_timestamp=None,
            reason=None,
            message=None,
            type=None,
            count=4,
        )

        result = _event_from_api(event)

        assert result.first_timestamp == ""
        assert result.last_timestamp == ""


class TestApiExceptionTranslation:
    @pytest.mark.parametrize(
        ("status", "expected"),
        [
            (404, NotFoundError),
            (409, ConflictError),
            (400, MalformedRequestError),
            (422, MalformedRequestError),
            (403, InternalError),
            (500, InternalError),
        ],
    )
    def test_status_mapping(self, status: int, expected: type) -> None:
        assert isinstance(_translate_api_exception(ApiException(status=status), "pod", "default/web-0"), expected)

    def test_upstream_text_is_not_leaked(self) -> None:
        exc = ApiException(status=500, reason="etcd leader changed at 10.0.0.3")
        assert "etcd" not in _translate_api_exception(exc, "node", None).message


@pytest.fixture
def service(settings) -> KubernetesService:
    return KubernetesService(settings)


@pytest.fixture
def core_v1() -> MagicMock:
    return MagicMock()


@pytest.fixture
def apps_v1() -> MagicMock:
    return MagicMock()


class TestKubernetesService:
    async def test_not_found_becomes_app_error(self, service, core_v1, apps_v1) -> None:
        core_v1.read_namespaced_pod.side_effect = ApiException(status=404, reason="Not Found")

        with patch.object(service, "_ensure_clients", AsyncMock(return_value=(core_v1, apps_v1))):
            with pytest.raises(NotFoundError):
                await service.get_pod("default", "ghost")

    async def test_list_pods_in_namespace(self, service, core_v1, apps_v1) -> None:
        core_v1.list_namespaced_pod.return_value = SimpleNamespace(items=[])

        with patch.object(service, "_ensure_clients", AsyncMock(return_value=(core_v1, apps_v1))):
            assert await service.list_pods("prod") == []

        core_v1.list_namespaced_pod.assert_called_once()
        assert core_v1.list_namespaced_pod.call_args.kwargs["namespace"] == "prod"
        core_v1.list_pod_for_all_namespaces.assert_not_called()

    async def test_create_deployment_builds_single_container_spec(self, service, core_v1, apps_v1) -> None:
        apps_v1.create_namespaced_deployment.side_effect = lambda namespace, body, **_: body

        with patch.object(service, "_ensure_clients", AsyncMock(return_value=(core_v1, apps_v1))):
            result = await service.create_deployment(
                CreateDeploymentRequest(name="web", namespace="default", image="nginx:1.27", replicas=3, port=8080)
            )

        body = apps_v1.create_namespaced_deployment.call_args.kwargs["body"]
        assert body.spec.selector.match_labels == {"app": "web"}
        assert body.spec.template.metadata.labels == {"app": "web"}
        container = body.spec.template.spec.containers[0]
        assert container.image == "nginx:1.27"
        assert container.ports[0].container_port == 8080
        assert result.replicas == 3

    async def test_update_deployment_changes_image_and_replicas(self, service, core_v1, apps_v1) -> None:
        container = SimpleNamespace(image="nginx:1.26")
        current = SimpleNamespace(
            metadata=_meta("web"),
            spec=SimpleNamespace(replicas=1, strategy=None, template=SimpleNamespace(spec=SimpleNamespace(containers=[container]))),
            status=SimpleNamespace(available_replicas=1),
        )
        apps_v1.read_namespaced_deployment.return_value = current
        apps_v1.replace_namespaced_deployment.side_effect = lambda name, namespace, body, **_: body

        with patch.object(service, "_ensure_clients", AsyncMock(return_value=(core_v1, apps_v1))):
            result = await service.update_deployment("default", "web", UpdateDeploymentRequest(image="nginx:1.27", replicas=4))

        assert container.image == "nginx:1.27"
        assert result.replicas == 4

    async def test_update_deployment_ignores_empty_fields(self, service, core_v1, apps_v1) -> None:
        container = SimpleNamespace(image="nginx:1.26")
        current = SimpleNamespace(
            metadata=_meta("web"),
            spec=SimpleNamespace(replicas=2, strategy=None, template=SimpleNamespace(spec=SimpleNamespace(containers=[container]))),
            status=SimpleNamespace(available_replicas=2),
        )
        apps_v1.read_namespaced_deployment.return_value = current
        apps_v1.replace_namespaced_deployment.side_effect = lambda name, namespace, body, **_: body

        with patch.object(service, "_ensure_clients", AsyncMock(return_value=(core_v1, apps_v1))):
            result = await service.update_deployment("default", "web", UpdateDeploymentRequest())

        assert container.image == "nginx:1.26"
        assert result.replicas == 2

    async def test_create_service_is_cluster_ip_tcp(self, service, core_v1, apps_v1) -> None:
        core_v1.create_namespaced_service.side_effect = lambda namespace, body, **_: body

        with patch.object(service, "_ensure_clients", AsyncMock(return_value=(core_v1, apps_v1))):
            await service.create_service(CreateServiceRequest(name="web", namespace="default", port=80, target_port=8080))

        body = core_v1.create_namespaced_service.call_args.kwargs["body"]
        assert body.spec.type == "ClusterIP"
        assert body.spec.selector == {"app": "web"}
        assert body.spec.ports[0].target_port == 8080
        assert body.spec.ports[0].protocol == "TCP"

    async def test_cluster_health_degraded_when_a_node_is_not_ready(self, service, core_v1, apps_v1) -> None:
        def node(name: str, ready: str) -> SimpleNamespace:
            return SimpleNamespace(
                metadata=_meta(name, namespace=None),
                status=SimpleNamespace(
                    conditions=[SimpleNamespace(type="Ready", status=ready)], node_info=None, capacity={}, allocatable={}
                ),
            )

        def pod(name: str, phase: str) -> SimpleNamespace:
            return SimpleNamespace(
                metadata=_meta(name),
                spec=SimpleNamespace(node_name="n", containers=[]),
                status=SimpleNamespace(phase=phase, pod_ip=None, container_statuses=[]),
            )

        core_v1.list_node.return_value = SimpleNamespace(items=[node("a", "True"), node("b", "False")])
        core_v1.list_pod_for_all_namespaces.return_value = SimpleNamespace(
            items=[pod("p1", "Running"), pod("p2", "Pending"), pod("p3", "Running")]
        )

        with patch.object(service, "_ensure_clients", AsyncMock(return_value=(core_v1, apps_v1))):
            health = await service.get_cluster_health()

        assert health.overall == "Degraded"
        assert health.nodes.healthy == 1
        assert health.pods.running == 2
        assert health.pods.failed == 1

    async def test_missing_kubeconfig_is_cluster_unavailable(self, settings) -> None:
        service = KubernetesService(settings.model_copy(update={"kube_config_path": "/nonexistent/kubeconfig"}))

        with patch("kubegate.services.kube_client.config.load_kube_config", side_effect=ConfigException("no config")):
            with pytest.raises(ClusterUnavailableError):
                await service.list_nodes()

    async def test_api_client_is_shared_with_typed_clients(self, service, core_v1, apps_v1) -> None:
        with patch.object(service, "_ensure_clients", AsyncMock(return_value=(core_v1, apps_v1))):
            api_client = await service.api_client()

        assert api_client is core_v1.api_client

    async def test_api_client_without_kubeconfig_is_cluster_unavailable(self, service) -> None:
        with patch("kubegate.services.kube_client.config.load_kube_config", side_effect=ConfigException("no config")):
            with pytest.raises(ClusterUnavailableError):
                await service.api_client()
