import ipaddress

import pytest

from kuberay.cluster import (
    HostPathType,
    MountPropagationMode,
    VolumeType,
    build_head_pod_template,
    build_ray_cluster_labels,
    build_ray_cluster_spec,
    build_volume_mounts,
    build_volumes,
    build_worker_pod_template,
    construct_ray_image,
    get_node_host_ip,
    new_compute_template,
    new_ray_cluster,
)
from kuberay.settings import COMPONENT_NAME, KUBERNETES_MANAGED_BY_LABEL_KEY

TEST_VOLUME = {
    "name": "hdfs",
    "volume_type": VolumeType.HOST_PATH,
    "source": "/opt/hdfs",
    "mount_path": "/mnt/hdfs",
    "read_only": True,
}

TEST_FILE_VOLUME = {
    "name": "test-file",
    "volume_type": VolumeType.HOST_PATH,
    "mount_propagation_mode": MountPropagationMode.HOSTTOCONTAINER,
    "source": "/root/proc/stat",
    "mount_path": "/proc/stat",
    "host_path_type": HostPathType.FILE,
    "read_only": True,
}

TEMPLATE = {"name": "small", "namespace": "ray-system", "cpu": 2, "memory": 4}


def test_build_volumes():
    got = build_volumes([TEST_VOLUME, TEST_FILE_VOLUME])
    assert got == [
        {"name": "hdfs", "hostPath": {"path": "/opt/hdfs", "type": "Directory"}},
        {"name": "test-file", "hostPath": {"path": "/root/proc/stat", "type": "File"}},
    ]


def test_build_volume_mounts():
    got = build_volume_mounts([TEST_VOLUME, TEST_FILE_VOLUME])
    assert got == [
        {"name": "hdfs", "readOnly": True, "mountPath": "/mnt/hdfs"},
        {
            "name": "test-file",
            "readOnly": True,
            "mountPath": "/proc/stat",
            "mountPropagation": "HostToContainer",
        },
    ]


def test_build_volumes_skips_claims_and_accepts_names():
    claim = {"name": "pvc", "volume_type": "PERSISTENT_VOLUME_CLAIM"}
    host = dict(TEST_VOLUME, volume_type="HOST_PATH")
    assert [v["name"] for v in build_volumes([claim, host])] == ["hdfs"]


def test_invalid_enum_name_rejected():
    with pytest.raises(ValueError):
        build_volumes([{"name": "x", "volume_type": "NFS"}])


def test_construct_ray_image():
    assert construct_ray_image("rayproject/ray", "1.9.0") == "rayproject/ray:1.9.0"


def test_new_compute_template():
    config_map = new_compute_template(dict(TEMPLATE, gpu=1, gpu_accelerator="acc"))
    assert config_map["metadata"]["labels"] == {
        "ray.io/config-type": "compute-template",
        "ray.io/compute-template": "small",
    }
    assert config_map["data"]["cpu"] == "2"
    assert config_map["data"]["memory"] == "4"
    assert config_map["data"]["gpu"] == "1"
    assert config_map["data"]["gpu_accelerator"] == "acc"


def test_head_pod_template_default_image_and_resources():
    template = build_head_pod_template("1.9.0", {"A": "b"}, {"compute_template": "small"}, TEMPLATE)
    container = template["spec"]["containers"][0]
    assert container["name"] == "ray-head"
    assert container["image"] == "rayproject/ray:1.9.0"
    assert container["resources"]["limits"] == {"cpu": "2", "memory": "4Gi"}
    assert [p["containerPort"] for p in container["ports"]] == [6379, 10001, 8265, 8080]
    assert container["env"][-1] == {"name": "A", "value": "b"}
    assert template["metadata"]["annotations"]["ray.io/compute-template"] == "small"


def test_head_pod_template_gpu_default_accelerator():
    template = build_head_pod_template("1.9.0", None, {"image": "img"}, dict(TEMPLATE, gpu=1))
    resources = template["spec"]["containers"][0]["resources"]
    assert resources["requests"]["nvidia.com/gpu"] == "1"
    assert resources["limits"]["nvidia.com/gpu"] == "1"
    assert template["spec"]["containers"][0]["image"] == "img"


def test_worker_pod_template():
    template = build_worker_pod_template("1.9.0", None, {"image": "w"}, TEMPLATE)
    container = template["spec"]["containers"][0]
    assert container["name"] == "ray-worker"
    assert template["spec"]["initContainers"][0]["image"] == "busybox:1.28"
    assert container["lifecycle"]["preStop"]["exec"]["command"] == ["/bin/sh", "-c", "ray stop"]
    assert "nvidia.com/gpu" not in container["resources"]["limits"]


def test_cluster_spec_replica_defaults():
    spec = {
        "head_group_spec": {"compute_template": "small"},
        "worker_group_spec": [
            {"group_name": "g", "compute_template": "small", "replicas": 3},
            {"group_name": "h", "compute_template": "small", "replicas": 1,
             "min_replicas": 1, "max_replicas": 5},
        ],
    }
    result = build_ray_cluster_spec("1.9.0", None, spec, {"small": TEMPLATE})
    first, second = result["workerGroupSpecs"]
    assert (first["minReplicas"], first["maxReplicas"]) == (3, 3)
    assert second["maxReplicas"] == 5
    assert result["headGroupSpec"]["replicas"] == 1
    assert result["rayVersion"] == "1.9.0"


def test_cluster_spec_missing_template():
    with pytest.raises(KeyError):
        build_ray_cluster_spec("1", None, {"head_group_spec": {"compute_template": "x"}}, {})


def test_new_ray_cluster_labels():
    api_cluster = {
        "name": "c1", "namespace": "ns", "user": "u", "version": "1.9.0",
        "cluster_spec": {"head_group_spec": {"compute_template": "small"}},
    }
    cluster = new_ray_cluster(api_cluster, {"small": TEMPLATE})
    labels = cluster["metadata"]["labels"]
    assert labels == build_ray_cluster_labels(api_cluster)
    assert labels[KUBERNETES_MANAGED_BY_LABEL_KEY] == COMPONENT_NAME
    assert labels["ray.io/environment"] == "DEV"
    assert cluster["metadata"]["annotations"] == {}


def test_get_node_host_ip_prefers_internal():
    node = {"status": {"addresses": [
        {"type": "ExternalIP", "address": "10.0.0.2"},
        {"type": "InternalIP", "address": "10.0.0.1"},
    ]}}
    assert get_node_host_ip(node) == ipaddress.ip_address("10.0.0.1")


def test_get_node_host_ip_unknown():
    with pytest.raises(ValueError):
        get_node_host_ip({"status": {"addresses": [{"type": "Hostname", "address": "h"}]}})