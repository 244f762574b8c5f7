"""
Metrics normalization.

Turns raw metrics.k8s.io samples into unit-labelled records, attaches utilization
percentages against node capacity, and answers with an ``available=false`` record
instead of an error whenever the metrics API cannot deliver.
"""
from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

import structlog

from kubegate.exceptions import AppException
from kubegate.schemas.metrics import (
    ContainerMetrics,
    NodeMetricsList,
    NodeMetricsRecord,
    PodMetricsList,
    PodMetricsRecord,
    ResourceMetric,
)
from kubegate.services import quantity
from kubegate.services.kube_client import KubernetesService
from kubegate.services.metrics_client import MetricsCollector, MetricsUnavailableError

logger = structlog.get_logger(__name__)

METRICS_UNAVAILABLE_MESSAGE = "Metrics not available"
UNAVAILABLE_VALUE = "N/A"
UNAVAILABLE_WINDOW = "0s"


def _utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _rfc3339(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _capacity(convert: Callable[[Any], int], raw: Any) -> int | None:
    # An unparseable capacity only costs the percentage, never the usage figures.
    if raw is None:
        return None
    try:
        return convert(raw)
    except ValueError:
        logger.warning("metrics.capacity_invalid", capacity=str(raw))
        return None


def cpu_metric(raw: Any, capacity: Any = None) -> ResourceMetric:
    used = quantity.parse(raw)
    used_m = quantity.cpu_millicores(used)
    capacity_m = _capacity(quantity.cpu_millicores, capacity)
    return ResourceMetric(
        value=str(raw) if raw not in (None, "") else "0",
        quantity=used_m,
        percentage=quantity.percentage(used_m, capacity_m),
        unit="m",
    )


def memory_metric(raw: Any, capacity: Any = None) -> ResourceMetric:
    used = quantity.parse(raw)
    used_b = quantity.memory_bytes(used)
    capacity_b = _capacity(quantity.memory_bytes, capacity)
    return ResourceMetric(
        value=str(raw) if raw not in (None, "") else "0",
        quantity=used_b,
        percentage=quantity.percentage(used_b, capacity_b),
        unit="bytes",
    )


def unavailable_cpu() -> ResourceMetric:
    return ResourceMetric(value=UNAVAILABLE_VALUE, quantity=0, unit="m")


def unavailable_memory() -> ResourceMetric:
    return ResourceMetric(value=UNAVAILABLE_VALUE, quantity=0, unit="bytes")


def node_record(sample: Mapping[str, Any], capacity: Mapping[str, str] | None = None) -> NodeMetricsRecord:
    """Build a node record from a NodeMetrics object; ``capacity`` is the node's status.capacity."""
    capacity = capacity or {}
    usage = sample.get("usage") or {}
    return NodeMetricsRecord(
        node_name=(sample.get("metadata") or {}).get("name", ""),
        cpu=cpu_metric(usage.get("cpu"), capacity.get("cpu")),
        memory=memory_metric(usage.get("memory"), capacity.get("memory")),
        timestamp=str(sample.get("timestamp") or ""),
        window=str(sample.get("window") or ""),
    )


def pod_record(sample: Mapping[str, Any]) -> PodMetricsRecord:
    """Build a pod record; pod totals are exact sums of the container samples."""
    metadata = sample.get("metadata") or {}
    containers: list[ContainerMetrics] = []
    cpu_total = Decimal(0)
    memory_total = Decimal(0)
    cpu_total_m = 0
    memory_total_b = 0
    for entry in sample.get("containers") or []:
        usage = entry.get("usage") or {}
        cpu = cpu_metric(usage.get("cpu"))
        memory = memory_metric(usage.get("memory"))
        containers.append(ContainerMetrics(name=entry.get("name", ""), cpu=cpu, memory=memory))
        cpu_total += quantity.parse(usage.get("cpu"))
        memory_total += quantity.parse(usage.get("memory"))
        cpu_total_m += cpu.quantity
        memory_total_b += memory.quantity
    return PodMetricsRecord(
        pod_name=metadata.get("name", ""),
        namespace=metadata.get("namespace", ""),
        containers=containers,
        cpu=ResourceMetric(value=quantity.format_cpu(cpu_total), quantity=cpu_total_m, unit="m"),
        memory=ResourceMetric(value=quantity.format_memory(memory_total), quantity=memory_total_b, unit="bytes"),
        timestamp=str(sample.get("timestamp") or ""),
        window=str(sample.get("window") or ""),
    )


class MetricsService:
    def __init__(
        self,
        kube: KubernetesService,
        collector: MetricsCollector | None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._kube = kube
        self._collector = collector
        self._clock = clock or _utc_now

    async def node_metrics(self, name: str) -> NodeMetricsRecord:
        # Existence first: a missing node is a 404 even when metrics are down.
        node = await self._kube.get_node(name)
        if self._collector is None:
            return self._unavailable_node(name)
        try:
            sample = await self._collector.read_node_metrics(name)
            return node_record(sample, node.capacity)
        except (MetricsUnavailableError, ValueError) as exc:
            logger.info("metrics.node_unavailable", node=name, error=str(exc))
            return self._unavailable_node(name)

    async def pod_metrics(self, namespace: str, name: str) -> PodMetricsRecord:
        await self._kube.get_pod(namespace, name)
        if self._collector is None:
            return self._unavailable_pod(namespace, name)
        try:
            return pod_record(await self._collector.read_pod_metrics(namespace, name))
        except (MetricsUnavailableError, ValueError) as exc:
            logger.info("metrics.pod_unavailable", namespace=namespace, pod=name, error=str(exc))
            return self._unavailable_pod(namespace, name)

    async def list_node_metrics(self) -> NodeMetricsList:
        if self._collector is None:
            return NodeMetricsList(items=[], available=False, message=METRICS_UNAVAILABLE_MESSAGE)
        try:
            samples = await self._collector.list_node_metrics()
        except MetricsUnavailableError as exc:
            logger.info("metrics.node_list_unavailable", error=str(exc))
            return NodeMetricsList(items=[], available=False, message=METRICS_UNAVAILABLE_MESSAGE)

        capacities = await self._node_capacities()
        items: list[NodeMetricsRecord] = []
        for sample in samples:
            node_name = (sample.get("metadata") or {}).get("name", "")
            try:
                items.append(node_record(sample, capacities.get(node_name)))
            except ValueError as exc:
                logger.warning("metrics.node_sample_invalid", node=node_name, error=str(exc))
        return NodeMetricsList(items=items)

    async def list_pod_metrics(self, namespace: str | None = None) -> PodMetricsList:
        if self._collector is None:
            return PodMetricsList(items=[], available=False, message=METRICS_UNAVAILABLE_MESSAGE)
        try:
            samples = await self._collector.list_pod_metrics(namespace)
        except MetricsUnavailableError as exc:
            logger.info("metrics.pod_list_unavailable", namespace=namespace, error=str(exc))
            return PodMetricsList(items=[], available=False, message=METRICS_UNAVAILABLE_MESSAGE)

        items: list[PodMetricsRecord] = []
        for sample in samples:
            try:
                items.append(pod_record(sample))
            except ValueError as exc:
                logger.warning("metrics.pod_sample_invalid", error=str(exc))
        return PodMetricsList(items=items)

    async def _node_capacities(self) -> dict[str, dict[str, str]]:
        # Best effort: without capacities the list is still served, minus percentages.
        try:
            nodes = await self._kube.list_nodes()
        except AppException as exc:
            logger.warning("metrics.node_capacity_unavailable", error=exc.message)
            return {}
        return {node.name: node.capacity for node in nodes}

    def _unavailable_node(self, name: str) -> NodeMetricsRecord:
        return NodeMetricsRecord(
            node_name=name,
            cpu=unavailable_cpu(),
            memory=unavailable_memory(),
            timestamp=_rfc3339(self._clock()),
            window=UNAVAILABLE_WINDOW,
            available=False,
            message=METRICS_UNAVAILABLE_MESSAGE,
        )

    def _unavailable_pod(self, namespace: str, name: str) -> PodMetricsRecord:
        return PodMetricsRecord(
            pod_name=name,
            namespace=namespace,
            containers=[],
            cpu=unavailable_cpu(),
            memory=unavailable_memory(),
            timestamp=_rfc3339(self._clock()),
            window=UNAVAILABLE_WINDOW,
            available=False,
            message=METRICS_UNAVAILABLE_MESSAGE,
        )
