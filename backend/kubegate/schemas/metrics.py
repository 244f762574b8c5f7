from typing import Literal

from kubegate.schemas import CamelModel


class ResourceMetric(CamelModel):
    value: str
    quantity: int
    percentage: float | None = None
    unit: Literal["m", "bytes"]


class ContainerMetrics(CamelModel):
    name: str
    cpu: ResourceMetric
    memory: ResourceMetric


class NodeMetricsRecord(CamelModel):
    node_name: str
    cpu: ResourceMetric
    memory: ResourceMetric
    timestamp: str
    window: str
    available: bool = True
    message: str | None = None


class PodMetricsRecord(CamelModel):
    pod_name: str
    namespace: str
    containers: list[ContainerMetrics] = []
    cpu: ResourceMetric
    memory: ResourceMetric
    timestamp: str
    window: str
    available: bool = True
    message: str | None = None


class NodeMetricsList(CamelModel):
    items: list[NodeMetricsRecord] = []
    available: bool = True
    message: str | None = None


class PodMetricsList(CamelModel):
    items: list[PodMetricsRecord] = []
    available: bool = True
    message: str | None = None
