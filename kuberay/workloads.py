"""Build RayJob and RayService resources from API objects."""

from __future__ import annotations

import base64
from typing import Any, Mapping

from kuberay.cluster import build_ray_cluster_spec
from kuberay.settings import (
    APPLICATION_NAME,
    COMPONENT_NAME,
    KUBERNETES_APPLICATION_NAME_LABEL_KEY,
    KUBERNETES_MANAGED_BY_LABEL_KEY,
    RAY_CLUSTER_NAME_LABEL_KEY,
    RAY_CLUSTER_USER_LABEL_KEY,
    RAY_SERVICE_LABEL_KEY,
)

RAY_JOB_DEFAULT_VERSION = "1.13"
RAY_SERVICE_DEFAULT_VERSION = "2.0.0"


def _b64(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def new_ray_job(
    api_job: Mapping[str, Any], compute_template_map: Mapping[str, Mapping[str, Any]]
) -> dict:
    """Build a RayJob resource; it carries a cluster spec only if the job has one."""
    spec: dict[str, Any] = {
        "entrypoint": api_job.get("entrypoint", ""),
        "metadata": api_job.get("metadata"),
        "runtimeEnv": _b64(api_job.get("runtime_env", "")),
        "shutdownAfterJobFinishes": bool(api_job.get("shutdown_after_job_finishes", False)),
        "ttlSecondsAfterFinished": api_job.get("ttl_seconds_after_finished", 0),
        "jobId": api_job.get("job_id", ""),
        "clusterSelector": api_job.get("cluster_selector"),
    }
    cluster_spec = api_job.get("cluster_spec")
    if cluster_spec is not None:
        spec["rayClusterSpec"] = build_ray_cluster_spec(
            RAY_JOB_DEFAULT_VERSION, None, cluster_spec, compute_template_map
        )
    return {
        "metadata": {
            "name": api_job.get("name", ""),
            "namespace": api_job.get("namespace", ""),
            "labels": build_ray_job_labels(api_job),
            "annotations": dict(api_job.get("metadata") or {}),
        },
        "spec": spec,
    }


def build_ray_job_labels(api_job: Mapping[str, Any]) -> dict[str, str]:
    return {
        RAY_CLUSTER_NAME_LABEL_KEY: api_job.get("name", ""),
        RAY_CLUSTER_USER_LABEL_KEY: api_job.get("user", ""),
        KUBERNETES_APPLICATION_NAME_LABEL_KEY: APPLICATION_NAME,
        KUBERNETES_MANAGED_BY_LABEL_KEY: COMPONENT_NAME,
    }


def new_ray_service(
    api_service: Mapping[str, Any], compute_template_map: Mapping[str, Mapping[str, Any]]
) -> dict:
    """Build a RayService resource from an API service."""
    return {
        "metadata": {
            "name": api_service.get("name", ""),
            "namespace": api_service.get("namespace", ""),
            "labels": build_ray_service_labels(api_service),
            "annotations": {},
        },
        "spec": build_ray_service_spec(api_service, compute_template_map),
    }


def build_ray_service_labels(api_service: Mapping[str, Any]) -> dict[str, str]:
    return {
        RAY_SERVICE_LABEL_KEY: api_service.get("name", ""),
        RAY_CLUSTER_USER_LABEL_KEY: api_service.get("user", ""),
        KUBERNETES_APPLICATION_NAME_LABEL_KEY: APPLICATION_NAME,
        KUBERNETES_MANAGED_BY_LABEL_KEY: COMPONENT_NAME,
    }


def _serve_config_spec(serve_config: Mapping[str, Any]) -> dict:
    actor = serve_config.get("actor_options") or {}
    return {
        "name": serve_config.get("deployment_name", ""),
        "numReplicas": serve_config.get("replicas", 0),
        "maxConcurrentQueries": serve_config.get("max_concurrent_queries", 0),
        "routePrefix": serve_config.get("route_prefix", ""),
        "userConfig": serve_config.get("user_config", ""),
        "autoscalingConfig": serve_config.get("autoscaling_config", ""),
        "rayActorOptions": {
            "runtimeEnv": actor.get("runtime_env", ""),
            "numCpus": actor.get("cpus_per_actor", 0),
            "numGpus": actor.get("gpus_per_actor", 0),
            "memory": actor.get("memory_per_actor", 0),
            "objectStoreMemory": actor.get("object_store_memory_per_actor", 0),
            "resources": actor.get("custom_resource", ""),
            "acceleratorType": actor.get("accelerator_type", ""),
        },
    }


def build_ray_service_spec(
    api_service: Mapping[str, Any], compute_template_map: Mapping[str, Mapping[str, Any]]
) -> dict:
    """Build the spec of a RayService: the serve graph and its cluster."""
    graph = api_service.get("serve_deployment_graph_spec") or {}
    return {
        "serveConfig": {
            "importPath": graph.get("import_path", ""),
            "runtimeEnv": _b64(graph.get("runtime_env", "")),
            "deployments": [
                _serve_config_spec(config) for config in graph.get("serve_configs") or ()
            ],
        },
        "rayClusterConfig": build_ray_cluster_spec(
            RAY_SERVICE_DEFAULT_VERSION,
            None,
            api_service.get("cluster_spec") or {},
            compute_template_map,
        ),
    }