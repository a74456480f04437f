"""
SQL Server LocalDB instance management.

Wraps the SqlLocalDB command line utility:
- Installed version discovery (SqlLocalDB versions)
- Instance inspection (SqlLocalDB info <name>)
- Create / start / stop / delete
- Version selection against an allowed-version list
- Detection of broken instances (missing backing files, corrupt configuration)

Usage:
    manager = LocalDbManager()
    info = manager.ensure_instance("dbharness", allowed_versions=("15.0", "13.0"))
"""

from __future__ import annotations

import logging
import os
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Sequence

from dbharness.domain.errors import ServerReadinessError

logger = logging.getLogger(__name__)

_VERSION_IN_PARENS = re.compile(r"\((\d+(?:\.\d+)+)\)")
_INFO_LINE = re.compile(r"^\s*([A-Za-z][A-Za-z \-]*?)\s*:\s*(.*?)\s*$")


def normalize_version(version: str) -> str:
    """Reduce a version string to major.minor ("15.0.4153.1" -> "15.0", "15" -> "15.0")."""
    parts = version.strip().split(".")
    major = parts[0]
    minor = parts[1] if len(parts) > 1 else "0"
    return f"{int(major)}.{int(minor)}"


def version_key(version: str) -> tuple[int, ...]:
    return tuple(int(part) for part in version.split("."))


def select_localdb_version(allowed: Sequence[str], installed: Sequence[str]) -> str:
    """
    Choose the LocalDB version for a new instance.

    With no allowed versions the latest installed version wins. Otherwise the
    allowed versions are tried newest first and the first installed one is
    used.

    Raises:
        ServerReadinessError: If nothing is installed or no allowed version is installed
    """
    installed_versions = sorted({normalize_version(v) for v in installed}, key=version_key, reverse=True)
    if not installed_versions:
        raise ServerReadinessError("LocalDB is not installed on this machine.")

    if not allowed:
        return installed_versions[0]

    for version in sorted(allowed, key=version_key, reverse=True):
        if normalize_version(version) in installed_versions:
            return normalize_version(version)

    raise ServerReadinessError(
        "None of the configured LocalDB versions are installed. "
        f"Configured: [{', '.join(allowed)}]. "
        f"Installed: [{', '.join(installed_versions)}].",
        configured_versions=allowed,
        installed_versions=installed_versions,
    )


@dataclass
class LocalDbInstanceInfo:
    """State of a LocalDB instance as reported by SqlLocalDB info."""

    name: str
    exists: bool
    configuration_corrupt: bool = False
    version: str | None = None
    state: str | None = None
    pipe_name: str | None = None

    @property
    def is_running(self) -> bool:
        return (self.state or "").lower() == "running"


class LocalDbManager:
    """
    SqlLocalDB command line wrapper.

    Every operation is idempotent and safe to call redundantly from several
    groups; no state is kept between calls.
    """

    def __init__(
        self,
        executable: str = "SqlLocalDB",
        instances_root: Path | str | None = None,
        timeout: int = 120,
    ):
        """
        Initialize LocalDB manager.

        Args:
            executable: SqlLocalDB executable name or path
            instances_root: Directory holding per-instance folders. Defaults to
                %LOCALAPPDATA%\\Microsoft\\Microsoft SQL Server Local DB\\Instances
            timeout: Seconds to wait for each SqlLocalDB invocation
        """
        self.executable = executable
        self.timeout = timeout
        if instances_root is not None:
            self.instances_root: Path | None = Path(instances_root)
        elif os.environ.get("LOCALAPPDATA"):
            self.instances_root = (
                Path(os.environ["LOCALAPPDATA"]) / "Microsoft" / "Microsoft SQL Server Local DB" / "Instances"
            )
        else:
            self.instances_root = None

    def _run(self, *args: str, check: bool = True) -> subprocess.CompletedProcess:
        command = [self.executable, *args]
        logger.debug("Running: %s", " ".join(command))
        try:
            result = subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except FileNotFoundError as e:
            raise ServerReadinessError(
                f"LocalDB is not installed on this machine ('{self.executable}' not found)."
            ) from e

        if check and result.returncode != 0:
            output = (result.stderr or result.stdout or "").strip()
            raise ServerReadinessError(
                f"SqlLocalDB {' '.join(args)} failed with exit code {result.returncode}: {output}"
            )
        return result

    def installed_versions(self) -> list[str]:
        """Installed LocalDB versions as major.minor strings, newest first."""
        result = self._run("versions")
        versions = {
            normalize_version(match.group(1))
            for match in _VERSION_IN_PARENS.finditer(result.stdout or "")
        }
        return sorted(versions, key=version_key, reverse=True)

    def get_instance_info(self, name: str) -> LocalDbInstanceInfo:
        """
        Inspect an instance.

        A corrupt instance is still reported as existing so the caller can
        recreate it.
        """
        result = self._run("info", name, check=False)
        output = f"{result.stdout or ''}\n{result.stderr or ''}"
        lowered = output.lower()

        if "corrupt" in lowered:
            return LocalDbInstanceInfo(name=name, exists=True, configuration_corrupt=True)
        if result.returncode != 0 or "doesn't exist" in lowered or "does not exist" in lowered:
            return LocalDbInstanceInfo(name=name, exists=False)

        fields: dict[str, str] = {}
        for line in output.splitlines():
            match = _INFO_LINE.match(line)
            if match:
                fields[match.group(1).strip().lower()] = match.group(2)

        return LocalDbInstanceInfo(
            name=fields.get("name") or name,
            exists=True,
            version=fields.get("version") or None,
            state=fields.get("state") or None,
            pipe_name=fields.get("instance pipe name") or None,
        )

    def has_backing_files(self, name: str) -> bool:
        """Whether the instance folder exists on disk (unknown roots count as present)."""
        if self.instances_root is None:
            return True
        return (self.instances_root / name).is_dir()

    def create_instance(self, name: str, version: str | None = None) -> None:
        args = ["create", name] + ([version] if version else [])
        self._run(*args)
        logger.info("Created LocalDB instance '%s' (version %s)", name, version or "default")

    def start_instance(self, name: str) -> None:
        self._run("start", name)
        logger.info("Started LocalDB instance '%s'", name)

    def stop_instance(self, name: str) -> None:
        result = self._run("stop", name, "-k", check=False)
        if result.returncode != 0:
            logger.debug("Stopping LocalDB instance '%s' failed: %s", name, (result.stderr or "").strip())

    def delete_instance(self, name: str) -> None:
        self._run("delete", name)
        logger.info("Deleted LocalDB instance '%s'", name)

    def ensure_instance(self, name: str, allowed_versions: Iterable[str] = ()) -> LocalDbInstanceInfo:
        """
        Make sure ``name`` exists, is healthy and is running.

        A registered instance without its backing files, or with a corrupt
        configuration, is deleted and recreated. This discards its data,
        which is acceptable for throwaway test instances only.

        Raises:
            ServerReadinessError: LocalDB missing or no allowed version installed
        """
        installed = self.installed_versions()
        if not installed:
            raise ServerReadinessError("LocalDB is not installed on this machine.")
        allowed = tuple(allowed_versions)

        info = self.get_instance_info(name)
        if info.exists and info.configuration_corrupt:
            logger.warning("LocalDB instance '%s' has a corrupt configuration; recreating", name)
            self._recreate(name, allowed, installed)
        elif info.exists and not self.has_backing_files(name):
            logger.warning("LocalDB instance '%s' has no backing files; recreating", name)
            self._recreate(name, allowed, installed)
        elif not info.exists:
            version = select_localdb_version(allowed, installed)
            self.create_instance(name, version)
        else:
            logger.debug("Reusing LocalDB instance '%s' (%s)", name, info.version)

        info = self.get_instance_info(name)
        if not info.is_running:
            self.start_instance(name)
            info = self.get_instance_info(name)
        return info

    def _recreate(self, name: str, allowed: Sequence[str], installed: Sequence[str]) -> None:
        version = select_localdb_version(allowed, installed)
        self.stop_instance(name)
        self.delete_instance(name)
        self.create_instance(name, version)
