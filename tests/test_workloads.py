import base64

from kuberay.settings import COMPONENT_NAME, KUBERNETES_MANAGED_BY_LABEL_KEY
from kuberay.workloads import (
    build_ray_job_labels,
    build_ray_service_labels,
    build_ray_service_spec,
    new_ray_job,
    new_ray_service,
)

TEMPLATES = {"small": {"name": "small", "cpu": 1, "memory": 2}}
CLUSTER_SPEC = {
    "head_group_spec": {"compute_template": "small"},
    "worker_group_spec": [{"group_name": "g", "compute_template": "small", "replicas": 2}],
}


def _job(**extra):
    job = {
        "name": "job1",
        "namespace": "ns",
        "user": "alice",
        "entrypoint": "python run.py",
        "runtime_env": "pip: [requests]",
        "metadata": {"team": "infra"},
    }
    job.update(extra)
    return job


def test_job_without_cluster_spec_omits_it():
    job = new_ray_job(_job(cluster_selector={"ray.io/cluster": "c"}), {})
    assert "rayClusterSpec" not in job["spec"]
    assert job["spec"]["clusterSelector"] == {"ray.io/cluster": "c"}
    assert job["spec"]["ttlSecondsAfterFinished"] == 0


def test_job_runtime_env_round_trips_through_base64():
    job = new_ray_job(_job(), {})
    decoded = base64.b64decode(job["spec"]["runtimeEnv"]).decode("utf-8")
    assert decoded == "pip: [requests]"
    assert job["spec"]["entrypoint"] == "python run.py"


def test_job_with_cluster_spec_uses_default_version():
    job = new_ray_job(_job(cluster_spec=CLUSTER_SPEC), TEMPLATES)
    cluster = job["spec"]["rayClusterSpec"]
    assert cluster["rayVersion"] == "1.13"
    assert cluster["workerGroupSpecs"][0]["replicas"] == 2


def test_job_labels_and_annotations():
    job = new_ray_job(_job(), {})
    assert job["metadata"]["labels"] == build_ray_job_labels(_job())
    assert job["metadata"]["labels"]["ray.io/cluster-name"] == "job1"
    assert job["metadata"]["labels"][KUBERNETES_MANAGED_BY_LABEL_KEY] == COMPONENT_NAME
    assert job["metadata"]["annotations"] == {"team": "infra"}


def _service():
    return {
        "name": "svc",
        "namespace": "ns",
        "user": "bob",
        "cluster_spec": CLUSTER_SPEC,
        "serve_deployment_graph_spec": {
            "import_path": "app:graph",
            "runtime_env": "working_dir: .",
            "serve_configs": [
                {
                    "deployment_name": "d1",
                    "replicas": 3,
                    "route_prefix": "/d1",
                    "actor_options": {"cpus_per_actor": 0.5},
                }
            ],
        },
    }


def test_service_labels():
    service = new_ray_service(_service(), TEMPLATES)
    labels = service["metadata"]["labels"]
    assert labels == build_ray_service_labels(_service())
    assert labels["ray.io/service"] == "svc"
    assert labels["ray.io/user"] == "bob"


def test_service_spec_maps_serve_configs():
    spec = build_ray_service_spec(_service(), TEMPLATES)
    deployment = spec["serveConfig"]["deployments"][0]
    assert deployment["name"] == "d1"
    assert deployment["numReplicas"] == 3
    assert deployment["routePrefix"] == "/d1"
    assert deployment["rayActorOptions"]["numCpus"] == 0.5
    assert spec["serveConfig"]["importPath"] == "app:graph"


def test_service_spec_cluster_and_runtime_env():
    spec = build_ray_service_spec(_service(), TEMPLATES)
    assert spec["rayClusterConfig"]["rayVersion"] == "2.0.0"
    assert base64.b64decode(spec["serveConfig"]["runtimeEnv"]).decode() == "working_dir: ."