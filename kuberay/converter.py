"""Convert Kubernetes resources into API objects.

Kubernetes objects are dicts in manifest form with camelCase keys.
API objects are dicts keyed by the API's snake_case field names.
Timestamps in API objects are whole seconds since the Unix epoch.
"""

from __future__ import annotations

import logging
import math
import re
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Sequence

from kuberay.settings import (
    RAY_CLUSTER_COMPUTE_TEMPLATE_ANNOTATION_KEY,
    RAY_CLUSTER_ENVIRONMENT_LABEL_KEY,
    RAY_CLUSTER_IMAGE_ANNOTATION_KEY,
    RAY_CLUSTER_NAME_LABEL_KEY,
    RAY_CLUSTER_USER_LABEL_KEY,
    RAY_CLUSTER_VERSION_LABEL_KEY,
    parse_time,
)

logger = logging.getLogger(__name__)

ENVIRONMENTS = ("DEV", "TESTING", "STAGING", "PRODUCTION")
_UINT32_MAX = 2**32 - 1
_DIGITS = re.compile(r"[0-9]+")


def _unix(value: Any) -> int:
    """Whole seconds since the epoch for a timestamp; a missing one is 0."""
    if value is None:
        return 0
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return math.floor(value.timestamp())
    if isinstance(value, str):
        return math.floor(parse_time(value).timestamp())
    return int(value)


def _parse_uint32(text: Any) -> int:
    """Parse a decimal unsigned 32-bit number; invalid text is 0, overflow saturates."""
    if not isinstance(text, str) or _DIGITS.fullmatch(text) is None:
        return 0
    return min(int(text), _UINT32_MAX)


def _metadata(obj: Mapping[str, Any]) -> Mapping[str, Any]:
    return obj.get("metadata") or {}


def _labels(obj: Mapping[str, Any]) -> Mapping[str, str]:
    return _metadata(obj).get("labels") or {}


def _annotations(template: Mapping[str, Any]) -> Mapping[str, str]:
    return (template.get("metadata") or {}).get("annotations") or {}


def _event_to_api(prefix: str, event: Mapping[str, Any]) -> dict:
    meta = _metadata(event)
    name = meta.get("name", "")
    return {
        "id": name,
        "name": f"{prefix}-{name}",
        "created_at": _unix(meta.get("creationTimestamp")),
        "first_timestamp": _unix(event.get("firstTimestamp")),
        "last_timestamp": _unix(event.get("lastTimestamp")),
        "reason": event.get("reason", ""),
        "message": event.get("message", ""),
        "type": event.get("type", ""),
        "count": event.get("count", 0),
    }


def from_crd_to_api_clusters(
    clusters: Iterable[Mapping[str, Any]],
    cluster_events_map: Mapping[str, Sequence[Mapping[str, Any]]],
) -> list[dict]:
    return [
        from_crd_to_api_cluster(cluster, cluster_events_map.get(_metadata(cluster).get("name", "")))
        for cluster in clusters
    ]


def from_crd_to_api_cluster(
    cluster: Mapping[str, Any], events: Sequence[Mapping[str, Any]] | None
) -> dict:
    """Convert a RayCluster resource and its events into an API cluster."""
    meta = _metadata(cluster)
    labels = _labels(cluster)
    status = cluster.get("status") or {}
    environment = labels.get(RAY_CLUSTER_ENVIRONMENT_LABEL_KEY, "")
    prefix = labels.get(RAY_CLUSTER_NAME_LABEL_KEY, "")
    return {
        "name": meta.get("name", ""),
        "namespace": meta.get("namespace", ""),
        "version": labels.get(RAY_CLUSTER_VERSION_LABEL_KEY, ""),
        "user": labels.get(RAY_CLUSTER_USER_LABEL_KEY, ""),
        "environment": environment if environment in ENVIRONMENTS else ENVIRONMENTS[0],
        "created_at": _unix(meta.get("creationTimestamp")),
        "cluster_state": status.get("state", ""),
        "cluster_spec": populate_ray_cluster_spec(cluster.get("spec") or {}),
        "events": [_event_to_api(prefix, event) for event in events or ()],
        "service_endpoint": dict(status.get("endpoints") or {}),
    }


def populate_ray_cluster_spec(spec: Mapping[str, Any]) -> dict:
    return {
        "head_group_spec": populate_head_node_spec(spec.get("headGroupSpec") or {}),
        "worker_group_spec": populate_worker_node_spec(spec.get("workerGroupSpecs") or ()),
    }


def populate_head_node_spec(spec: Mapping[str, Any]) -> dict:
    annotations = _annotations(spec.get("template") or {})
    return {
        "ray_start_params": spec.get("rayStartParams"),
        "service_type": spec.get("serviceType", ""),
        "image": annotations.get(RAY_CLUSTER_IMAGE_ANNOTATION_KEY, ""),
        "compute_template": annotations.get(RAY_CLUSTER_COMPUTE_TEMPLATE_ANNOTATION_KEY, ""),
    }


def populate_worker_node_spec(specs: Iterable[Mapping[str, Any]]) -> list[dict]:
    """Convert worker groups; replica counts must be present.

    The resource's minimum replica count is reported as the maximum and the
    maximum as the minimum, as the API server has always done.
    """
    result = []
    for spec in specs:
        annotations = _annotations(spec.get("template") or {})
        result.append(
            {
                "ray_start_params": spec.get("rayStartParams"),
                "max_replicas": spec["minReplicas"],
                "min_replicas": spec["maxReplicas"],
                "replicas": spec["replicas"],
                "group_name": spec.get("groupName", ""),
                "image": annotations.get(RAY_CLUSTER_IMAGE_ANNOTATION_KEY, ""),
                "compute_template": annotations.get(
                    RAY_CLUSTER_COMPUTE_TEMPLATE_ANNOTATION_KEY, ""
                ),
            }
        )
    return result


def from_kube_to_api_compute_template(config_map: Mapping[str, Any]) -> dict:
    """Read a compute template back out of its config map."""
    meta = _metadata(config_map)
    data = config_map.get("data") or {}
    return {
        "name": meta.get("name", ""),
        "namespace": meta.get("namespace", ""),
        "cpu": _parse_uint32(data.get("cpu")),
        "memory": _parse_uint32(data.get("memory")),
        "gpu": _parse_uint32(data.get("gpu")),
        "gpu_accelerator": data.get("gpu_accelerator", ""),
    }


def from_kube_to_api_compute_templates(
    config_maps: Iterable[Mapping[str, Any]],
) -> list[dict]:
    return [from_kube_to_api_compute_template(config_map) for config_map in config_maps]


def from_crd_to_api_jobs(jobs: Iterable[Mapping[str, Any]]) -> list[dict]:
    return [from_crd_to_api_job(job) for job in jobs]


def from_crd_to_api_job(job: Mapping[str, Any]) -> dict:
    """Convert a RayJob resource; a malformed cluster spec is logged and left out."""
    meta = _metadata(job)
    spec = job.get("spec") or {}
    status = job.get("status") or {}
    api_job: dict[str, Any] = {
        "name": meta.get("name", ""),
        "namespace": meta.get("namespace", ""),
        "user": _labels(job).get(RAY_CLUSTER_USER_LABEL_KEY, ""),
        "entrypoint": spec.get("entrypoint", ""),
        "metadata": spec.get("metadata"),
        "runtime_env": spec.get("runtimeEnv", ""),
        "job_id": status.get("jobId", ""),
        "shutdown_after_job_finishes": bool(spec.get("shutdownAfterJobFinishes", False)),
        "cluster_selector": spec.get("clusterSelector"),
        "created_at": _unix(meta.get("creationTimestamp")),
        "job_status": status.get("jobStatus", ""),
        "job_deployment_status": status.get("jobDeploymentStatus", ""),
        "message": status.get("message", ""),
        "cluster_spec": None,
        "ttl_seconds_after_finished": 0,
        "delete_at": None,
    }
    try:
        if spec.get("rayClusterSpec") is not None:
            api_job["cluster_spec"] = populate_ray_cluster_spec(spec["rayClusterSpec"])
        if spec.get("ttlSecondsAfterFinished") is not None:
            api_job["ttl_seconds_after_finished"] = spec["ttlSecondsAfterFinished"]
        if meta.get("deletionTimestamp") is not None:
            api_job["delete_at"] = _unix(meta["deletionTimestamp"])
    except (KeyError, TypeError, ValueError) as err:
        logger.error("failed to transfer job crd to job protobuf, err: %s, crd: %r", err, job)
    return api_job


def from_crd_to_api_services(
    services: Iterable[Mapping[str, Any]],
    service_events_map: Mapping[str, Sequence[Mapping[str, Any]]],
) -> list[dict | None]:
    return [
        from_crd_to_api_service(service, service_events_map.get(_metadata(service).get("name", "")))
        for service in services
    ]


def from_crd_to_api_service(
    service: Mapping[str, Any], events: Sequence[Mapping[str, Any]] | None
) -> dict | None:
    """Convert a RayService resource; a malformed one is logged and gives None."""
    try:
        meta = _metadata(service)
        spec = service.get("spec") or {}
        name = meta.get("name", "")
        deletion = meta.get("deletionTimestamp")
        return {
            "name": name,
            "namespace": meta.get("namespace", ""),
            "user": _labels(service).get(RAY_CLUSTER_USER_LABEL_KEY, ""),
            "serve_deployment_graph_spec": populate_serve_deployment_graph_spec(
                spec.get("serveConfig") or {}
            ),
            "cluster_spec": populate_ray_cluster_spec(spec.get("rayClusterConfig") or {}),
            "ray_service_status": populate_ray_service_status(
                name, service.get("status") or {}, events
            ),
            "created_at": _unix(meta.get("creationTimestamp")),
            "delete_at": -1 if deletion is None else _unix(deletion),
        }
    except (KeyError, TypeError, ValueError) as err:
        logger.error("failed to transfer ray service, err: %s, item: %r", err, service)
        return None


def populate_serve_deployment_graph_spec(spec: Mapping[str, Any]) -> dict:
    return {
        "import_path": spec.get("importPath", ""),
        "runtime_env": spec.get("runtimeEnv", ""),
        "serve_configs": populate_serve_config(spec.get("deployments") or ()),
    }


def populate_serve_config(serve_config_specs: Iterable[Mapping[str, Any]]) -> list[dict]:
    """Convert serve deployments; replica, query and actor sizes must be present."""
    configs = []
    for config in serve_config_specs:
        actor = config.get("rayActorOptions") or {}
        configs.append(
            {
                "deployment_name": config.get("name", ""),
                "replicas": config["numReplicas"],
                "route_prefix": config.get("routePrefix", ""),
                "max_concurrent_queries": config["maxConcurrentQueries"],
                "user_config": config.get("userConfig", ""),
                "autoscaling_config": config.get("autoscalingConfig", ""),
                "actor_options": {
                    "runtime_env": actor.get("runtimeEnv", ""),
                    "cpus_per_actor": actor["numCpus"],
                    "gpus_per_actor": actor["numGpus"],
                    "memory_per_actor": actor["memory"],
                    "object_store_memory_per_actor": actor["objectStoreMemory"],
                    "custom_resource": actor.get("resources", ""),
                    "accelerator_type": actor.get("acceleratorType", ""),
                },
            }
        )
    return configs


def populate_ray_service_status(
    service_name: str,
    service_status: Mapping[str, Any],
    events: Sequence[Mapping[str, Any]] | None,
) -> dict:
    active = service_status.get("activeServiceStatus") or {}
    app_status = active.get("appStatus") or {}
    cluster_status = active.get("rayClusterStatus") or {}
    return {
        "application_status": app_status.get("status", ""),
        "application_message": app_status.get("message", ""),
        "serve_deployment_status": populate_serve_deployment_status(
            active.get("serveDeploymentStatuses") or ()
        ),
        "ray_service_events": populate_ray_service_event(service_name, events),
        "ray_cluster_name": active.get("rayClusterName", ""),
        "ray_cluster_state": cluster_status.get("state", ""),
        "service_endpoint": dict(cluster_status.get("endpoints") or {}),
    }


def populate_serve_deployment_status(statuses: Iterable[Mapping[str, Any]]) -> list[dict]:
    return [
        {
            "deployment_name": status.get("name", ""),
            "status": status.get("status", ""),
            "message": status.get("message", ""),
        }
        for status in statuses
    ]


def populate_ray_service_event(
    service_name: str, events: Sequence[Mapping[str, Any]] | None
) -> list[dict]:
    return [_event_to_api(service_name, event) for event in events or ()]