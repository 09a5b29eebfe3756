"""Fetch managed Ray resources, compute templates and their events by name."""

from __future__ import annotations

from typing import Any, Mapping, Protocol, runtime_checkable

from kuberay.errors import is_not_found, new_not_found_error, wrap
from kuberay.settings import COMPONENT_NAME, KUBERNETES_MANAGED_BY_LABEL_KEY


@runtime_checkable
class ResourceClient(Protocol):
    """Access to one kind of namespaced Kubernetes resource.

    ``get`` raises a :class:`kuberay.errors.StatusError` with reason
    ``NotFound`` when the resource does not exist.
    """

    def get(self, name: str) -> dict: ...

    def list(
        self, label_selector: str = "", field_selector: str = "", kind: str = ""
    ) -> list[dict]: ...

    def create(self, obj: Mapping[str, Any]) -> dict: ...

    def delete(self, name: str) -> None: ...


class UnmanagedResourceError(Exception):
    """A resource exists but was not created by the API server."""

    def __init__(self, kind: str, name: str):
        super().__init__(f"{kind} with name {name} not managed by {COMPONENT_NAME}")
        self.kind = kind
        self.name = name


def managed_by_selector() -> str:
    """Label selector for resources managed by the API server."""
    return f"{KUBERNETES_MANAGED_BY_LABEL_KEY}={COMPONENT_NAME}"


def _get(client: ResourceClient, name: str, not_found: str, failed: str) -> dict:
    try:
        return client.get(name)
    except Exception as err:
        if is_not_found(err):
            raise new_not_found_error(err, not_found, name) from err
        raise wrap(err, failed) from err


def _check_managed(obj: Mapping[str, Any], kind: str, name: str) -> None:
    labels = (obj.get("metadata") or {}).get("labels") or {}
    if labels.get(KUBERNETES_MANAGED_BY_LABEL_KEY) != COMPONENT_NAME:
        raise UnmanagedResourceError(kind, name)


def get_cluster_by_name(client: ResourceClient, name: str) -> dict:
    cluster = _get(client, name, "Cluster %s not found", "Get Cluster failed")
    _check_managed(cluster, "RayCluster", name)
    return cluster


def get_job_by_name(client: ResourceClient, name: str) -> dict:
    job = _get(client, name, "Job %s not found", "Get Job failed")
    # Jobs report themselves under the RayCluster kind in this message.
    _check_managed(job, "RayCluster", name)
    return job


def get_service_by_name(client: ResourceClient, name: str) -> dict:
    service = _get(client, name, "Service %s not found", "get service failed")
    _check_managed(service, "RayService", name)
    return service


def get_compute_template_by_name(client: ResourceClient, name: str) -> dict:
    return _get(
        client, name, "Compute template %s not found", "Get compute template failed"
    )


def get_ray_cluster_events_by_name(
    name: str, event_client: ResourceClient, cluster_client: ResourceClient
) -> list[dict]:
    """Events of a managed cluster; raises LookupError when there are none."""
    try:
        cluster = get_cluster_by_name(cluster_client, name)
    except Exception as err:
        raise wrap(err, "get raycluster event failed") from err
    cluster_name = (cluster.get("metadata") or {}).get("name", name)
    try:
        events = event_client.list(
            field_selector=f"involvedObject.name={cluster_name}", kind="RayCluster"
        )
    except Exception as err:
        raise wrap(err, "Get Ray Cluster Events failed") from err
    if not events:
        raise LookupError(f"No Event with RayCluster name {name}")
    return list(events)


def get_ray_service_events_by_name(name: str, event_client: ResourceClient) -> list[dict]:
    """Events of a service; an empty list when there are none."""
    try:
        events = event_client.list(
            field_selector=f"involvedObject.name={name}", kind="RayService"
        )
    except Exception as err:
        raise wrap(err, "Get Ray Cluster Events failed") from err
    return list(events or ())