# kuberay

Helpers for describing Ray workloads on Kubernetes. The package turns API
descriptions of clusters, jobs, services and compute templates into
Kubernetes manifests (plain dicts), turns those manifests back into API
objects, looks resources up by name through a client you supply, and offers a
small command line that keeps the client's endpoint setting.

API objects are dicts keyed by snake_case field names; Kubernetes objects are
dicts in manifest form with camelCase keys.

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Command line

The `kuberay` command keeps its settings in a YAML file. Without `--config`
it uses `~/.kuberay.yaml`, and creates it on first use with the endpoint
`127.0.0.1:8887`. A file named with `--config` must already exist.

```
kuberay config get endpoint
kuberay config set endpoint 10.0.0.5:8887
kuberay config reset
kuberay version
kuberay info
```

- `config get KEY` prints the value. An environment variable named after the
  key in upper case (`ENDPOINT`) takes precedence over the file.
- `config set KEY VALUE` writes the value to the file.
- `config reset` sets `endpoint` back to `127.0.0.1:8887`.
- Only the `endpoint` key is supported; any other key prints a message and
  exits with status 1.
- `version` prints the package version (`0.1.0-dev`); `info` prints the
  version and the platform.

Global options:

- `--config PATH` — use another configuration file
- `-l / --log-level N` — 0 to silence, 4 for debugging (default 3)
- `-C / --color true|false|fabulous` — colourised log lines when `true`

## Library overview

- `kuberay.errors` — `UserError`, which carries an internal error, a
  client-facing message and a `StatusCode`; constructors such as
  `new_invalid_input_error`, `new_not_found_error`,
  `new_internal_server_error` and `new_already_exist_error`; `wrap` and
  `wrapf`, which add context while keeping a `UserError`'s client-facing
  parts; `extract_error_for_cli`; `CustomError`, `StatusError`, `ApiError`,
  `FlagError` and `SilentError`.
- `kuberay.settings` — label and annotation keys, `ClientOptions`, the
  `RealTime` clock and the `FakeTime` clock, which advances one whole second
  each time it is read (`fake_time_for_epoch` starts it at the Unix epoch),
  and `parse_time` for RFC 3339 timestamps.
- `kuberay.version` — `get_version`, `get_version_info`, `version_json`,
  `get_info` and `info_json`.
- `kuberay.cluster` — `new_ray_cluster`, `build_ray_cluster_spec`, the head
  and worker pod template builders, `build_volumes`, `build_volume_mounts`,
  `new_compute_template` and `get_node_host_ip`.
- `kuberay.workloads` — `new_ray_job` and `new_ray_service`; job and service
  runtime environments are base64-encoded.
- `kuberay.converter` — conversions from resources back to API objects, for
  example `from_crd_to_api_cluster`, `from_crd_to_api_job`,
  `from_crd_to_api_service` and `from_kube_to_api_compute_template`.
  Timestamps come out as whole seconds since the epoch.
- `kuberay.lookup` — the `ResourceClient` protocol (`get`, `list`, `create`,
  `delete`) and lookups by name. Cluster, job and service lookups raise a
  not-found `UserError` when the resource is missing and
  `UnmanagedResourceError` when it is not labelled as managed by
  `kuberay-apiserver`; `get_ray_cluster_events_by_name` raises `LookupError`
  when a cluster has no events.

Example:

```python
from kuberay.cluster import new_compute_template

config_map = new_compute_template(
    {"name": "small", "namespace": "ray-system", "cpu": 2, "memory": 4}
)
print(config_map["data"]["cpu"])  # "2"
```

## What the package does not do

- It does not talk to a Kubernetes cluster. Lookups work through a
  `ResourceClient` object that you provide; no client for a real cluster is
  included.
- It has no API server, no request handlers and no resource manager that
  creates, lists or deletes clusters, jobs, services or compute templates.
- The command line manages its own configuration and prints version
  information only; it has no commands for clusters or compute templates and
  does not connect to the endpoint it stores.