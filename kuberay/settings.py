"""Label keys, client options and clocks used by the API server."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Protocol

RAY_CLUSTER_NAME_LABEL_KEY = "ray.io/cluster-name"
RAY_CLUSTER_USER_LABEL_KEY = "ray.io/user"
RAY_CLUSTER_VERSION_LABEL_KEY = "ray.io/version"
RAY_CLUSTER_ENVIRONMENT_LABEL_KEY = "ray.io/environment"
RAY_SERVICE_LABEL_KEY = "ray.io/service"
KUBERNETES_APPLICATION_NAME_LABEL_KEY = "app.kubernetes.io/name"
KUBERNETES_MANAGED_BY_LABEL_KEY = "app.kubernetes.io/managed-by"

RAY_CLUSTER_COMPUTE_TEMPLATE_ANNOTATION_KEY = "ray.io/compute-template"
RAY_CLUSTER_IMAGE_ANNOTATION_KEY = "ray.io/compute-image"

RAY_CLUSTER_DEFAULT_IMAGE_REPOSITORY = "rayproject/ray"

APPLICATION_NAME = "kuberay"
COMPONENT_NAME = "kuberay-apiserver"


@dataclass(frozen=True)
class ClientOptions:
    """Rate limits for a Kubernetes client."""

    qps: float
    burst: int


class Clock(Protocol):
    def now(self) -> datetime: ...


class RealTime:
    """A clock that reads the system time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class FakeTime:
    """A clock that advances by one whole second each time it is read."""

    def __init__(self, now: datetime):
        self._now = _as_utc(now)

    def now(self) -> datetime:
        seconds = math.floor(self._now.timestamp()) + 1
        self._now = datetime.fromtimestamp(seconds, tz=timezone.utc)
        return self._now


def fake_time_for_epoch() -> FakeTime:
    return FakeTime(datetime(1970, 1, 1, tzinfo=timezone.utc))


_RFC3339 = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?"
    r"(Z|([+-])(\d{2}):(\d{2}))$"
)


def parse_time(value: str) -> datetime:
    """Parse an RFC 3339 timestamp and return it in UTC.

    Raises ValueError when the text is not a valid RFC 3339 timestamp.
    """
    match = _RFC3339.match(value)
    if match is None:
        raise ValueError(f"could not parse time: {value!r}")
    year, month, day, hour, minute, second = (int(match.group(i)) for i in range(1, 7))
    fraction = match.group(7) or ""
    microsecond = int((fraction + "000000")[:6]) if fraction else 0
    if match.group(8) == "Z":
        tz = timezone.utc
    else:
        offset = timedelta(hours=int(match.group(10)), minutes=int(match.group(11)))
        if offset >= timedelta(hours=24):
            raise ValueError(f"could not parse time: {value!r}")
        tz = timezone(-offset if match.group(9) == "-" else offset)
    parsed = datetime(year, month, day, hour, minute, second, microsecond, tzinfo=tz)
    return parsed.astimezone(timezone.utc)