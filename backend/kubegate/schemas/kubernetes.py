from datetime import datetime
from typing import Generic, Literal, TypeVar

from pydantic import BaseModel, Field

from kubegate.schemas import CamelModel

T = TypeVar("T")


class ItemList(BaseModel, Generic[T]):
    items: list[T]


class Pod(CamelModel):
    name: str
    namespace: str
    status: str
    restart_count: int = 0
    created_at: datetime | None = None
    node_name: str = ""
    pod_ip: str = Field(default="", alias="podIP")
    containers: list[str] = Field(default_factory=list)
    labels: dict[str, str] = Field(default_factory=dict)


class Deployment(CamelModel):
    name: str
    namespace: str
    replicas: int = 0
    available_replicas: int = 0
    created_at: datetime | None = None
    strategy: str = ""
    labels: dict[str, str] = Field(default_factory=dict)


class CreateDeploymentRequest(CamelModel):
    name: str = Field(min_length=1)
    namespace: str = Field(default="default", min_length=1)
    image: str = Field(min_length=1)
    replicas: int = Field(default=1, ge=0)
    port: int = Field(default=80, ge=1, le=65535)


class UpdateDeploymentRequest(CamelModel):
    # An empty image or non-positive replica count leaves that field unchanged.
    image: str = ""
    replicas: int = 0


class ServicePort(CamelModel):
    port: int
    protocol: str = "TCP"


class Service(CamelModel):
    name: str
    namespace: str
    type: str = ""
    cluster_ip: str = Field(default="", alias="clusterIP")
    ports: list[ServicePort] = Field(default_factory=list)
    created_at: datetime | None = None


class CreateServiceRequest(CamelModel):
    name: str = Field(min_length=1)
    namespace: str = Field(default="default", min_length=1)
    port: int = Field(ge=1, le=65535)
    target_port: int = Field(ge=1, le=65535)


class Namespace(CamelModel):
    name: str
    status: str = ""
    created_at: datetime | None = None
    labels: dict[str, str] = Field(default_factory=dict)


class CreateNamespaceRequest(CamelModel):
    name: str = Field(min_length=1)
    labels: dict[str, str] = Field(default_factory=dict)


class Node(CamelModel):
    name: str
    status: Literal["Ready", "NotReady", "Unknown"] = "Unknown"
    version: str = ""
    os_image: str = ""
    capacity: dict[str, str] = Field(default_factory=dict)
    allocatable: dict[str, str] = Field(default_factory=dict)
    created_at: datetime | None = None
    labels: dict[str, str] = Field(default_factory=dict)


class Event(CamelModel):
    name: str
    namespace: str
    reason: str = ""
    message: str = ""
    type: str = ""
    involved_object: str = ""
    first_timestamp: str = ""
    last_timestamp: str = ""
    count: int = 0


class ClusterInfo(CamelModel):
    name: str
    version: str
    nodes: int
    healthy: bool
    status: str


class NodeHealth(CamelModel):
    total: int
    healthy: int


class PodHealth(CamelModel):
    total: int
    running: int
    failed: int


class ClusterHealth(CamelModel):
    nodes: NodeHealth
    pods: PodHealth
    overall: Literal["Healthy", "Degraded"]


class ClusterVersion(CamelModel):
    git_version: str = ""
    git_commit: str = ""
    git_tree_state: str = ""
    build_date: str = ""
    go_version: str = ""
    compiler: str = ""
    platform: str = ""


class HealthStatus(BaseModel):
    status: str
    kubernetes: Literal["connected", "unavailable"]
