"""Build RayCluster resources and compute-template config maps from API objects.

API objects are plain dicts keyed by the API's snake_case field names.
Kubernetes objects are dicts in manifest form with camelCase keys.
"""

from __future__ import annotations

import enum
import ipaddress
from typing import Any, Mapping, Sequence, TypeVar

from kuberay.settings import (
    APPLICATION_NAME,
    COMPONENT_NAME,
    KUBERNETES_APPLICATION_NAME_LABEL_KEY,
    KUBERNETES_MANAGED_BY_LABEL_KEY,
    RAY_CLUSTER_COMPUTE_TEMPLATE_ANNOTATION_KEY,
    RAY_CLUSTER_DEFAULT_IMAGE_REPOSITORY,
    RAY_CLUSTER_ENVIRONMENT_LABEL_KEY,
    RAY_CLUSTER_IMAGE_ANNOTATION_KEY,
    RAY_CLUSTER_NAME_LABEL_KEY,
    RAY_CLUSTER_USER_LABEL_KEY,
    RAY_CLUSTER_VERSION_LABEL_KEY,
)

DEFAULT_GPU_ACCELERATOR = "nvidia.com/gpu"
DEFAULT_ENVIRONMENT = "DEV"
COMPUTE_TEMPLATE_CONFIG_TYPE_LABEL = "ray.io/config-type"
COMPUTE_TEMPLATE_NAME_LABEL = "ray.io/compute-template"


class VolumeType(enum.Enum):
    """Kind of storage backing an API volume."""

    PERSISTENT_VOLUME_CLAIM = "PERSISTENT_VOLUME_CLAIM"
    HOST_PATH = "HOST_PATH"


class MountPropagationMode(enum.Enum):
    """How mounts propagate between host and container."""

    NONE = "NONE"
    HOSTTOCONTAINER = "HOSTTOCONTAINER"
    BIDIRECTIONAL = "BIDIRECTIONAL"

    @property
    def kubernetes_value(self) -> str | None:
        return {
            MountPropagationMode.HOSTTOCONTAINER: "HostToContainer",
            MountPropagationMode.BIDIRECTIONAL: "Bidirectional",
        }.get(self)


class HostPathType(enum.Enum):
    """What a host path volume is expected to point at."""

    DIRECTORY = "DIRECTORY"
    FILE = "FILE"

    @property
    def kubernetes_value(self) -> str:
        return "File" if self is HostPathType.FILE else "Directory"


_E = TypeVar("_E", bound=enum.Enum)


def _coerce(enum_cls: type[_E], value: Any) -> _E:
    """Accept an enum member or its name; a missing value is the first member."""
    if value is None:
        return next(iter(enum_cls))
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls[str(value)]
    except KeyError:
        raise ValueError(f"invalid {enum_cls.__name__}: {value!r}") from None


def new_ray_cluster(
    api_cluster: Mapping[str, Any], compute_template_map: Mapping[str, Mapping[str, Any]]
) -> dict:
    """Build a RayCluster resource from an API cluster."""
    return {
        "metadata": {
            "name": api_cluster.get("name", ""),
            "namespace": api_cluster.get("namespace", ""),
            "labels": build_ray_cluster_labels(api_cluster),
            "annotations": {},
        },
        "spec": build_ray_cluster_spec(
            api_cluster.get("version", ""),
            api_cluster.get("envs"),
            api_cluster.get("cluster_spec") or {},
            compute_template_map,
        ),
    }


def build_ray_cluster_labels(api_cluster: Mapping[str, Any]) -> dict[str, str]:
    environment = api_cluster.get("environment") or DEFAULT_ENVIRONMENT
    if isinstance(environment, enum.Enum):
        environment = environment.name
    return {
        RAY_CLUSTER_NAME_LABEL_KEY: api_cluster.get("name", ""),
        RAY_CLUSTER_USER_LABEL_KEY: api_cluster.get("user", ""),
        RAY_CLUSTER_VERSION_LABEL_KEY: api_cluster.get("version", ""),
        RAY_CLUSTER_ENVIRONMENT_LABEL_KEY: str(environment),
        KUBERNETES_APPLICATION_NAME_LABEL_KEY: APPLICATION_NAME,
        KUBERNETES_MANAGED_BY_LABEL_KEY: COMPONENT_NAME,
    }


def build_ray_cluster_spec(
    image_version: str,
    envs: Mapping[str, str] | None,
    cluster_spec: Mapping[str, Any],
    compute_template_map: Mapping[str, Mapping[str, Any]],
) -> dict:
    """Build the spec of a RayCluster: one head group and the worker groups."""
    head_spec = cluster_spec.get("head_group_spec") or {}
    head_template = compute_template_map[head_spec.get("compute_template", "")]
    worker_groups = []
    for spec in cluster_spec.get("worker_group_spec") or ():
        compute_template = compute_template_map[spec.get("compute_template", "")]
        replicas = spec.get("replicas", 0)
        min_replicas = spec.get("min_replicas", 0) or replicas
        max_replicas = spec.get("max_replicas", 0) or replicas
        worker_groups.append(
            {
                "groupName": spec.get("group_name", ""),
                "minReplicas": min_replicas,
                "maxReplicas": max_replicas,
                "replicas": replicas,
                "rayStartParams": spec.get("ray_start_params"),
                "template": build_worker_pod_template(
                    image_version, envs, spec, compute_template
                ),
            }
        )
    return {
        "rayVersion": image_version,
        "headGroupSpec": {
            "serviceType": head_spec.get("service_type", ""),
            "template": build_head_pod_template(
                image_version, envs, head_spec, head_template
            ),
            "replicas": 1,
            "rayStartParams": head_spec.get("ray_start_params"),
        },
        "workerGroupSpecs": worker_groups,
    }


def _node_group_annotations(compute_template: Mapping[str, Any], image: str) -> dict:
    return {
        RAY_CLUSTER_COMPUTE_TEMPLATE_ANNOTATION_KEY: compute_template.get("name", ""),
        RAY_CLUSTER_IMAGE_ANNOTATION_KEY: image,
    }


def _resources(compute_template: Mapping[str, Any]) -> dict:
    cpu = str(compute_template.get("cpu", 0))
    memory = f"{compute_template.get('memory', 0)}Gi"
    limits = {"cpu": cpu, "memory": memory}
    requests = {"cpu": cpu, "memory": memory}
    gpu = compute_template.get("gpu", 0)
    if gpu:
        accelerator = compute_template.get("gpu_accelerator") or DEFAULT_GPU_ACCELERATOR
        limits[accelerator] = str(gpu)
        requests[accelerator] = str(gpu)
    return {"limits": limits, "requests": requests}


def _user_envs(envs: Mapping[str, str] | None) -> list[dict]:
    return [{"name": name, "value": value} for name, value in (envs or {}).items()]


def _field_env(name: str, field_path: str) -> dict:
    return {"name": name, "valueFrom": {"fieldRef": {"fieldPath": field_path}}}


def _resource_env(name: str, resource: str) -> dict:
    return {
        "name": name,
        "valueFrom": {
            "resourceFieldRef": {"containerName": "ray-worker", "resource": resource}
        },
    }


def construct_ray_image(repository: str, version: str) -> str:
    return f"{repository}:{version}"


def build_head_pod_template(
    image_version: str,
    envs: Mapping[str, str] | None,
    spec: Mapping[str, Any],
    compute_template: Mapping[str, Any],
) -> dict:
    """Build the pod template of the head node."""
    spec_image = spec.get("image", "")
    image = spec_image or construct_ray_image(
        RAY_CLUSTER_DEFAULT_IMAGE_REPOSITORY, image_version
    )
    volumes = spec.get("volumes") or ()
    container = {
        "name": "ray-head",
        "image": image,
        "env": [_field_env("MY_POD_IP", "status.podIP"), *_user_envs(envs)],
        "ports": [
            {"name": "redis", "containerPort": 6379},
            {"name": "head", "containerPort": 10001},
            {"name": "dashboard", "containerPort": 8265},
            {"name": "metrics", "containerPort": 8080},
        ],
        "resources": _resources(compute_template),
        "volumeMounts": build_volume_mounts(volumes),
    }
    return {
        "metadata": {"annotations": _node_group_annotations(compute_template, spec_image)},
        "spec": {"containers": [container], "volumes": build_volumes(volumes)},
    }


def build_worker_pod_template(
    image_version: str,
    envs: Mapping[str, str] | None,
    spec: Mapping[str, Any],
    compute_template: Mapping[str, Any],
) -> dict:
    """Build the pod template of a worker group."""
    spec_image = spec.get("image", "")
    image = spec_image or construct_ray_image(
        RAY_CLUSTER_DEFAULT_IMAGE_REPOSITORY, image_version
    )
    volumes = spec.get("volumes") or ()
    init_container = {
        "name": "init-myservice",
        "image": "busybox:1.28",
        "command": [
            "sh",
            "-c",
            "until nslookup $RAY_IP.$(cat /var/run/secrets/kubernetes.io/serviceaccount/"
            "namespace).svc.cluster.local; do echo waiting for myservice; sleep 2; done",
        ],
    }
    container = {
        "name": "ray-worker",
        "image": image,
        "env": [
            {"name": "RAY_DISABLE_DOCKER_CPU_WARNING", "value": "1"},
            {"name": "TYPE", "value": "worker"},
            _resource_env("CPU_REQUEST", "requests.cpu"),
            _resource_env("CPU_LIMITS", "limits.cpu"),
            _resource_env("MEMORY_REQUESTS", "requests.cpu"),
            _resource_env("MEMORY_LIMITS", "limits.cpu"),
            _field_env("MY_POD_NAME", "metadata.name"),
            _field_env("MY_POD_IP", "status.podIP"),
            *_user_envs(envs),
        ],
        "ports": [{"containerPort": 80}],
        "lifecycle": {"preStop": {"exec": {"command": ["/bin/sh", "-c", "ray stop"]}}},
        "resources": _resources(compute_template),
        "volumeMounts": build_volume_mounts(volumes),
    }
    return {
        "metadata": {"annotations": _node_group_annotations(compute_template, spec_image)},
        "spec": {
            "initContainers": [init_container],
            "containers": [container],
            "volumes": build_volumes(volumes),
        },
    }


def build_volume_mounts(api_volumes: Sequence[Mapping[str, Any]]) -> list[dict]:
    """Container volume mounts for every API volume."""
    mounts = []
    for volume in api_volumes:
        mount = {
            "name": volume.get("name", ""),
            "readOnly": bool(volume.get("read_only", False)),
            "mountPath": volume.get("mount_path", ""),
        }
        mode = _coerce(MountPropagationMode, volume.get("mount_propagation_mode"))
        if mode.kubernetes_value is not None:
            mount["mountPropagation"] = mode.kubernetes_value
        mounts.append(mount)
    return mounts


def build_volumes(api_volumes: Sequence[Mapping[str, Any]]) -> list[dict]:
    """Pod volumes for the host path API volumes; other kinds are skipped."""
    volumes = []
    for volume in api_volumes:
        if _coerce(VolumeType, volume.get("volume_type")) is not VolumeType.HOST_PATH:
            continue
        path_type = _coerce(HostPathType, volume.get("host_path_type"))
        volumes.append(
            {
                "name": volume.get("name", ""),
                "hostPath": {
                    "path": volume.get("source", ""),
                    "type": path_type.kubernetes_value,
                },
            }
        )
    return volumes


def new_compute_template(template: Mapping[str, Any]) -> dict:
    """Build the config map that stores a compute template."""
    name = template.get("name", "")
    namespace = template.get("namespace", "")
    return {
        "metadata": {
            "name": name,
            "namespace": namespace,
            "labels": {
                COMPUTE_TEMPLATE_CONFIG_TYPE_LABEL: "compute-template",
                COMPUTE_TEMPLATE_NAME_LABEL: name,
            },
        },
        "data": {
            "name": name,
            "namespace": namespace,
            "cpu": str(int(template.get("cpu", 0))),
            "memory": str(int(template.get("memory", 0))),
            "gpu": str(int(template.get("gpu", 0))),
            "gpu_accelerator": template.get("gpu_accelerator", ""),
        },
    }


def _parse_ip(text: str) -> ipaddress.IPv4Address | ipaddress.IPv6Address | None:
    try:
        return ipaddress.ip_address(text)
    except ValueError:
        return None


def get_node_host_ip(
    node: Mapping[str, Any],
) -> ipaddress.IPv4Address | ipaddress.IPv6Address | None:
    """The node's internal IP, else its external IP.

    Returns None when the chosen address does not parse; raises ValueError
    when the node has neither kind of address.
    """
    addresses = (node.get("status") or {}).get("addresses") or []
    for address_type in ("InternalIP", "ExternalIP"):
        for address in addresses:
            if address.get("type") == address_type:
                return _parse_ip(address.get("address", ""))
    raise ValueError(f"host IP unknown; known addresses: {addresses}")