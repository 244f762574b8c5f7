from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from kubegate.exceptions import InternalError, NotFoundError
from kubegate.schemas.kubernetes import Node, Pod
from kubegate.services.metrics import (
    METRICS_UNAVAILABLE_MESSAGE,
    MetricsService,
    node_record,
    pod_record,
)
from kubegate.services.metrics_client import MetricsUnavailableError

NOW = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


def node_sample(name: str = "node-1", cpu: str = "500m", memory: str = "1Gi") -> dict:
    return {
        "metadata": {"name": name},
        "timestamp": "2026-01-15T11:59:30Z",
        "window": "10.5s",
        "usage": {"cpu": cpu, "memory": memory},
    }


def pod_sample(containers: list[tuple[str, str, str]], name: str = "web-0", namespace: str = "default") -> dict:
    return {
        "metadata": {"name": name, "namespace": namespace},
        "timestamp": "2026-01-15T11:59:30Z",
        "window": "15s",
        "containers": [{"name": c, "usage": {"cpu": cpu, "memory": mem}} for c, cpu, mem in containers],
    }


class TestNodeRecord:
    def test_percentages_against_capacity(self) -> None:
        record = node_record(node_sample(cpu="500m", memory="1Gi"), {"cpu": "2", "memory": "4Gi"})

        assert record.node_name == "node-1"
        assert record.available is True
        assert record.cpu.quantity == 500
        assert record.cpu.unit == "m"
        assert record.cpu.value == "500m"
        assert record.cpu.percentage == pytest.approx(25.0)
        assert record.memory.quantity == 1024**3
        assert record.memory.unit == "bytes"
        assert record.memory.percentage == pytest.approx(25.0)
        assert record.window == "10.5s"
        assert record.timestamp == "2026-01-15T11:59:30Z"

    def test_zero_capacity_omits_percentage(self) -> None:
        record = node_record(node_sample(), {"cpu": "0", "memory": "0"})

        assert record.cpu.percentage is None
        assert record.memory.percentage is None
        assert record.cpu.quantity == 500

    def test_missing_capacity_omits_percentage(self) -> None:
        record = node_record(node_sample(), None)
        assert record.cpu.percentage is None
        assert record.memory.percentage is None

    def test_unparseable_capacity_keeps_usage(self) -> None:
        record = node_record(node_sample(cpu="500m", memory="1Gi"), {"cpu": "garbage", "memory": "8Gi"})

        assert record.available is True
        assert record.cpu.quantity == 500
        assert record.cpu.value == "500m"
        assert record.cpu.percentage is None
        assert record.memory.percentage == pytest.approx(12.5)

    def test_percentage_is_not_clamped(self) -> None:
        record = node_record(node_sample(cpu="3"), {"cpu": "2", "memory": "4Gi"})
        assert record.cpu.percentage == pytest.approx(150.0)

    def test_nanocore_usage_is_rounded_up(self) -> None:
        record = node_record(node_sample(cpu="123456789n"), {"cpu": "4"})
        assert record.cpu.quantity == 124
        assert record.cpu.percentage == pytest.approx(124 / 4000 * 100)


class TestPodRecord:
    def test_totals_are_exact_container_sums(self) -> None:
        record = pod_record(pod_sample([("app", "100m", "64Mi"), ("sidecar", "250m", "32Mi")]))

        assert [c.name for c in record.containers] == ["app", "sidecar"]
        assert record.cpu.quantity == 350
        assert record.cpu.value == "350m"
        assert record.memory.quantity == 96 * 1024**2
        assert record.memory.value == "96Mi"
        assert record.cpu.quantity == sum(c.cpu.quantity for c in record.containers)
        assert record.memory.quantity == sum(c.memory.quantity for c in record.containers)

    def test_no_pod_level_percentage(self) -> None:
        record = pod_record(pod_sample([("app", "100m", "64Mi")]))
        assert record.cpu.percentage is None
        assert record.memory.percentage is None

    def test_sum_of_rounded_container_quantities(self) -> None:
        record = pod_record(pod_sample([("a", "1500001n", "1"), ("b", "1n", "1")]))

        assert [c.cpu.quantity for c in record.containers] == [2, 1]
        assert record.cpu.quantity == 3

    def test_pod_without_containers(self) -> None:
        record = pod_record(pod_sample([]))
        assert record.cpu.quantity == 0
        assert record.memory.quantity == 0
        assert record.containers == []


class TestMetricsService:
    @pytest.fixture
    def fake_kube(self, fake_kube: MagicMock) -> MagicMock:
        fake_kube.get_node.return_value = Node(name="node-1", capacity={"cpu": "4", "memory": "8Gi"})
        fake_kube.get_pod.return_value = Pod(name="web-0", namespace="default", status="Running")
        return fake_kube

    def _service(self, kube, collector) -> MetricsService:
        return MetricsService(kube, collector, clock=lambda: NOW)

    async def test_node_metrics_available(self, fake_kube, fake_collector) -> None:
        fake_collector.read_node_metrics.return_value = node_sample(cpu="1", memory="2Gi")

        record = await self._service(fake_kube, fake_collector).node_metrics("node-1")

        assert record.available is True
        assert record.cpu.percentage == pytest.approx(25.0)
        assert record.memory.percentage == pytest.approx(25.0)
        fake_collector.read_node_metrics.assert_awaited_once_with("node-1")

    async def test_collector_failure_yields_unavailable_record(self, fake_kube, fake_collector) -> None:
        fake_collector.read_node_metrics.side_effect = MetricsUnavailableError("connection refused")

        record = await self._service(fake_kube, fake_collector).node_metrics("node-1")

        assert record.available is False
        assert record.node_name == "node-1"
        assert record.message == METRICS_UNAVAILABLE_MESSAGE
        assert record.cpu.value == "N/A"
        assert record.cpu.quantity == 0
        assert record.cpu.unit == "m"
        assert record.cpu.percentage is None
        assert record.memory.unit == "bytes"
        assert record.window == "0s"
        assert record.timestamp == "2026-01-15T12:00:00Z"

    async def test_missing_collector_yields_unavailable_record(self, fake_kube) -> None:
        record = await self._service(fake_kube, None).node_metrics("node-1")
        assert record.available is False

    async def test_unparseable_sample_yields_unavailable_record(self, fake_kube, fake_collector) -> None:
        fake_collector.read_node_metrics.return_value = node_sample(cpu="bogus")

        record = await self._service(fake_kube, fake_collector).node_metrics("node-1")

        assert record.available is False

    async def test_unparseable_capacity_still_reports_sample(self, fake_kube, fake_collector) -> None:
        fake_kube.get_node.return_value = Node(name="node-1", capacity={"cpu": "garbage", "memory": "8Gi"})
        fake_collector.read_node_metrics.return_value = node_sample(cpu="1", memory="2Gi")

        record = await self._service(fake_kube, fake_collector).node_metrics("node-1")

        assert record.available is True
        assert record.message is None
        assert record.cpu.quantity == 1000
        assert record.cpu.percentage is None
        assert record.memory.quantity == 2 * 1024**3
        assert record.memory.percentage == pytest.approx(25.0)

    async def test_missing_node_is_not_found_before_collector(self, fake_kube, fake_collector) -> None:
        fake_kube.get_node.side_effect = NotFoundError("Node missing-node not found")

        with pytest.raises(NotFoundError):
            await self._service(fake_kube, fake_collector).node_metrics("missing-node")
        fake_collector.read_node_metrics.assert_not_called()

    async def test_other_lookup_failures_propagate(self, fake_kube, fake_collector) -> None:
        fake_kube.get_node.side_effect = InternalError("Failed to access node resources")

        with pytest.raises(InternalError):
            await self._service(fake_kube, fake_collector).node_metrics("node-1")

    async def test_pod_metrics_aggregates(self, fake_kube, fake_collector) -> None:
        fake_collector.read_pod_metrics.return_value = pod_sample([("app", "100m", "64Mi"), ("log", "5m", "8Mi")])

        record = await self._service(fake_kube, fake_collector).pod_metrics("default", "web-0")

        assert record.available is True
        assert record.cpu.quantity == 105
        assert record.memory.quantity == 72 * 1024**2
        fake_kube.get_pod.assert_awaited_once_with("default", "web-0")

    async def test_pod_metrics_unavailable(self, fake_kube, fake_collector) -> None:
        fake_collector.read_pod_metrics.side_effect = MetricsUnavailableError("404")

        record = await self._service(fake_kube, fake_collector).pod_metrics("default", "web-0")

        assert record.available is False
        assert record.pod_name == "web-0"
        assert record.namespace == "default"
        assert record.containers == []

    async def test_missing_pod_is_not_found(self, fake_kube, fake_collector) -> None:
        fake_kube.get_pod.side_effect = NotFoundError("Pod default/ghost not found")

        with pytest.raises(NotFoundError):
            await self._service(fake_kube, fake_collector).pod_metrics("default", "ghost")

    async def test_node_list_attaches_capacity_percentages(self, fake_kube, fake_collector) -> None:
        fake_collector.list_node_metrics.return_value = [node_sample("node-1", cpu="2"), node_sample("node-2", cpu="1")]
        fake_kube.list_nodes.return_value = [Node(name="node-1", capacity={"cpu": "4", "memory": "8Gi"})]

        result = await self._service(fake_kube, fake_collector).list_node_metrics()

        assert result.available is True
        assert [r.node_name for r in result.items] == ["node-1", "node-2"]
        assert result.items[0].cpu.percentage == pytest.approx(50.0)
        assert result.items[1].cpu.percentage is None

    async def test_node_list_survives_capacity_lookup_failure(self, fake_kube, fake_collector) -> None:
        fake_collector.list_node_metrics.return_value = [node_sample()]
        fake_kube.list_nodes.side_effect = InternalError("Failed to access node resources")

        result = await self._service(fake_kube, fake_collector).list_node_metrics()

        assert len(result.items) == 1
        assert result.items[0].cpu.percentage is None

    async def test_node_list_unavailable(self, fake_kube, fake_collector) -> None:
        fake_collector.list_node_metrics.side_effect = MetricsUnavailableError("down")

        result = await self._service(fake_kube, fake_collector).list_node_metrics()

        assert result.available is False
        assert result.items == []
        assert result.message == METRICS_UNAVAILABLE_MESSAGE

    async def test_pod_list_by_namespace(self, fake_kube, fake_collector) -> None:
        fake_collector.list_pod_metrics.return_value = [pod_sample([("app", "10m", "1Mi")], namespace="prod")]

        result = await self._service(fake_kube, fake_collector).list_pod_metrics("prod")

        assert result.items[0].namespace == "prod"
        fake_collector.list_pod_metrics.assert_awaited_once_with("prod")

    async def test_pod_list_unavailable(self, fake_kube, fake_collector) -> None:
        fake_collector.list_pod_metrics.side_effect = MetricsUnavailableError("down")

        result = await self._service(fake_kube, fake_collector).list_pod_metrics()

        assert result.available is False
        assert result.items == []
