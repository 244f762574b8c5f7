from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

import structlog
from kubernetes import client
from kubernetes.client.exceptions import ApiException
from urllib3.exceptions import HTTPError

from kubegate.exceptions import AppException
from kubegate.services.kube_client import KubernetesService

logger = structlog.get_logger(__name__)

METRICS_GROUP = "metrics.k8s.io"
METRICS_VERSION = "v1beta1"


class MetricsUnavailableError(Exception):
    """The metrics API could not produce a sample (not installed, unreachable, or no sample yet)."""


class MetricsCollector:
    """Reads raw usage samples from the metrics.k8s.io aggregated API."""

    def __init__(self, kube: KubernetesService) -> None:
        self._kube = kube

    async def read_node_metrics(self, name: str) -> dict[str, Any]:
        return await self._call(
            "node",
            lambda api, timeout: api.get_cluster_custom_object(
                group=METRICS_GROUP, version=METRICS_VERSION, plural="nodes", name=name, _request_timeout=timeout
            ),
        )

    async def list_node_metrics(self) -> list[dict[str, Any]]:
        data = await self._call(
            "node",
            lambda api, timeout: api.list_cluster_custom_object(
                group=METRICS_GROUP, version=METRICS_VERSION, plural="nodes", _request_timeout=timeout
            ),
        )
        return _items(data)

    async def read_pod_metrics(self, namespace: str, name: str) -> dict[str, Any]:
        return await self._call(
            "pod",
            lambda api, timeout: api.get_namespaced_custom_object(
                group=METRICS_GROUP,
                version=METRICS_VERSION,
                namespace=namespace,
                plural="pods",
                name=name,
                _request_timeout=timeout,
            ),
        )

    async def list_pod_metrics(self, namespace: str | None = None) -> list[dict[str, Any]]:
        if namespace:
            data = await self._call(
                "pod",
                lambda api, timeout: api.list_namespaced_custom_object(
                    group=METRICS_GROUP, version=METRICS_VERSION, namespace=namespace, plural="pods", _request_timeout=timeout
                ),
            )
        else:
            data = await self._call(
                "pod",
                lambda api, timeout: api.list_cluster_custom_object(
                    group=METRICS_GROUP, version=METRICS_VERSION, plural="pods", _request_timeout=timeout
                ),
            )
        return _items(data)

    async def _call(self, kind: str, fn: Callable[[client.CustomObjectsApi, float], Any]) -> Any:
        try:
            api = client.CustomObjectsApi(await self._kube.api_client())
            timeout = self._kube.request_timeout
            return await asyncio.wait_for(asyncio.to_thread(fn, api, timeout), timeout=timeout + 1)
        except ApiException as exc:
            logger.warning("metrics.api_error", kind=kind, status=exc.status, error=exc.reason)
            raise MetricsUnavailableError(f"metrics API returned {exc.status}") from exc
        except asyncio.TimeoutError as exc:
            logger.warning("metrics.timeout", kind=kind)
            raise MetricsUnavailableError("metrics API timed out") from exc
        except (AppException, HTTPError, OSError) as exc:
            logger.warning("metrics.unreachable", kind=kind, error=str(exc))
            raise MetricsUnavailableError("metrics API unreachable") from exc


def _items(data: Any) -> list[dict[str, Any]]:
    if not isinstance(data, dict):
        return []
    return [item for item in data.get("items") or [] if isinstance(item, dict)]
