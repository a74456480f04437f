"""
Deployment artifact loading.

A deployment artifact is a zip package (a .dacpac with an additional
model script) or an already unpacked directory containing:
- predeploy.sql: optional pre-deployment script
- postdeploy.sql: optional post-deployment script
- model.sql: DDL/DML body used by rapid deploy
- DacMetadata.xml: optional, supplies the package name

Artifacts are loaded fresh for every deployment and never cached.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
import xml.etree.ElementTree as ET
import zipfile
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from dbharness.domain.errors import DeploymentError

logger = logging.getLogger(__name__)

PRE_SCRIPT = "predeploy.sql"
POST_SCRIPT = "postdeploy.sql"
MODEL_SCRIPT = "model.sql"
METADATA = "DacMetadata.xml"


@dataclass(frozen=True)
class DeploymentArtifact:
    """Parsed schema package."""

    source_path: Path
    package_name: str
    model_script: str
    pre_script: str | None = None
    post_script: str | None = None


def _decode(data: bytes) -> str:
    # dacpac scripts are usually UTF-8 with BOM; tooling sometimes writes UTF-16
    if data.startswith((b"\xff\xfe", b"\xfe\xff")):
        return data.decode("utf-16")
    return data.decode("utf-8-sig")


def _package_name(metadata: bytes | None, fallback: str) -> str:
    if not metadata:
        return fallback
    try:
        root = ET.fromstring(metadata)
    except ET.ParseError:
        logger.warning("Ignoring unreadable %s; using '%s' as package name", METADATA, fallback)
        return fallback
    for element in root.iter():
        if element.tag.rsplit("}", 1)[-1] == "Name" and element.text and element.text.strip():
            return element.text.strip()
    return fallback


def _read_members(path: Path) -> dict[str, bytes]:
    """Read the known members of a zip package or directory (case-insensitive names)."""
    wanted = {name.lower(): name for name in (PRE_SCRIPT, POST_SCRIPT, MODEL_SCRIPT, METADATA)}
    members: dict[str, bytes] = {}

    if path.is_dir():
        for entry in path.iterdir():
            if entry.is_file() and entry.name.lower() in wanted:
                members[wanted[entry.name.lower()]] = entry.read_bytes()
        return members

    try:
        with zipfile.ZipFile(path) as package:
            for info in package.infolist():
                base = info.filename.rsplit("/", 1)[-1].lower()
                if base in wanted and not info.is_dir():
                    members[wanted[base]] = package.read(info)
    except zipfile.BadZipFile as e:
        raise DeploymentError(f"Deployment artifact is not a valid package: {path}") from e
    return members


def load_artifact(path: Path | str) -> DeploymentArtifact:
    """
    Load a deployment artifact from a package file or directory.

    Every member is optional; an artifact without model.sql loads with an
    empty model script.

    Raises:
        DeploymentError: If the artifact is missing or is not a valid package
    """
    path = Path(path)
    if not path.exists():
        raise DeploymentError(f"Deployment artifact not found: {path}")

    members = _read_members(path)
    pre_script = members.get(PRE_SCRIPT)
    post_script = members.get(POST_SCRIPT)
    model_script = members.get(MODEL_SCRIPT)

    artifact = DeploymentArtifact(
        source_path=path,
        package_name=_package_name(members.get(METADATA), path.stem),
        model_script=_decode(model_script) if model_script is not None else "",
        pre_script=_decode(pre_script) if pre_script is not None else None,
        post_script=_decode(post_script) if post_script is not None else None,
    )
    logger.debug(
        "Loaded artifact %s (package=%s, pre=%s, post=%s, model=%d chars)",
        path, artifact.package_name, artifact.pre_script is not None,
        artifact.post_script is not None, len(artifact.model_script),
    )
    return artifact


@contextmanager
def unpacked_artifact(path: Path | str) -> Iterator[DeploymentArtifact]:
    """
    Unpack a package into a scratch directory and load it from there.

    The scratch directory is removed on exit, success or failure.
    """
    path = Path(path)
    if not path.exists():
        raise DeploymentError(f"Deployment artifact not found: {path}")

    scratch = Path(tempfile.mkdtemp(prefix="dbharness-"))
    logger.debug("Unpacking %s into %s", path, scratch)
    try:
        if path.is_dir():
            shutil.copytree(path, scratch, dirs_exist_ok=True)
        else:
            try:
                with zipfile.ZipFile(path) as package:
                    package.extractall(scratch)
            except zipfile.BadZipFile as e:
                raise DeploymentError(f"Deployment artifact is not a valid package: {path}") from e
        artifact = load_artifact(scratch)
        yield DeploymentArtifact(
            source_path=path,
            package_name=artifact.package_name if artifact.package_name != scratch.stem else path.stem,
            model_script=artifact.model_script,
            pre_script=artifact.pre_script,
            post_script=artifact.post_script,
        )
    finally:
        shutil.rmtree(scratch, ignore_errors=True)
        logger.debug("Removed scratch directory %s", scratch)
