"""Release version and platform information."""

from __future__ import annotations

import json
import platform
from dataclasses import dataclass

VERSION = "0.1.0"
PRE_RELEASE_ID = "dev"
GIT_COMMIT = ""
BUILD_DATE = ""

EXTRA_SEP = "-"


@dataclass(frozen=True)
class BuildMetadata:
    build_date: str
    git_commit: str


@dataclass(frozen=True)
class VersionInfo:
    version: str
    pre_release_id: str
    metadata: BuildMetadata

    def render(self) -> str:
        """The full version string, with pre-release and build metadata when known."""
        if not self.pre_release_id:
            return self.version
        with_pre_release = f"{self.version}{EXTRA_SEP}{self.pre_release_id}"
        if (
            is_release_candidate(self.pre_release_id)
            or not self.metadata.git_commit
            or not self.metadata.build_date
        ):
            return with_pre_release
        return f"{with_pre_release}+{self.metadata.git_commit}.{self.metadata.build_date}"

    def to_dict(self) -> dict:
        return {
            "Version": self.version,
            "PreReleaseID": self.pre_release_id,
            "Metadata": {
                "BuildDate": self.metadata.build_date,
                "GitCommit": self.metadata.git_commit,
            },
        }


@dataclass(frozen=True)
class SystemInfo:
    kuberay_version: str
    os: str

    def to_dict(self) -> dict:
        return {"KubeRayVersion": self.kuberay_version, "OS": self.os}


def is_release_candidate(pre_release_id: str) -> bool:
    return pre_release_id.startswith("rc.")


def get_version_info() -> VersionInfo:
    return VersionInfo(
        version=VERSION,
        pre_release_id=PRE_RELEASE_ID,
        metadata=BuildMetadata(build_date=BUILD_DATE, git_commit=GIT_COMMIT),
    )


def get_version() -> str:
    return get_version_info().render()


def version_json() -> str:
    return json.dumps(get_version_info().to_dict(), separators=(",", ":"))


def get_info() -> SystemInfo:
    return SystemInfo(kuberay_version=get_version(), os=platform.system().lower())


def info_json() -> str:
    return json.dumps(get_info().to_dict(), separators=(",", ":"))