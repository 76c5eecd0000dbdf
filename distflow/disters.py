"""Dister strategies: package a built product into distribution artifacts."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Protocol, Tuple, runtime_checkable

from core.archive import ArchiveArtifact, ArchiveManager
from core.command_runner import CommandRunner
from core.config_loader import ensure_known_keys, normalize_string_list
from core.console import Console
from core.template import TemplateResolver, validate_placeholders

from .osarch import OSArch, parse_os_archs
from .registry import Flag

if TYPE_CHECKING:
    from .registry import DisterRegistry

OS_ARCH_BIN_TYPE_NAME = "os-arch-bin"
OS_ARCH_TZST_TYPE_NAME = "os-arch-tzst"
MANUAL_TYPE_NAME = "manual"

DEFAULT_DIST_ID = OS_ARCH_BIN_TYPE_NAME

MANUAL_PLACEHOLDERS = ("product", "version", "dist_id", "os", "arch", "build_output", "artifact", "root")


@dataclass(frozen=True, slots=True)
class DistRequest:
    """Everything a dister needs to produce one artifact."""

    project_root: Path
    product_id: str
    version: str
    dist_id: str
    os_arch: OSArch
    build_output: Path
    artifact_path: Path
    runner: CommandRunner
    console: Console

    def template_context(self) -> Dict[str, str]:
        return {
            "product": self.product_id,
            "version": self.version,
            "dist_id": self.dist_id,
            "os": self.os_arch.os,
            "arch": self.os_arch.arch,
            "build_output": str(self.build_output),
            "artifact": str(self.artifact_path),
            "root": str(self.project_root),
        }


@runtime_checkable
class Dister(Protocol):
    artifact_extension: str
    os_archs: Tuple[OSArch, ...] | None

    def type_name(self) -> str:
        ...

    def flags(self) -> Tuple[Flag, ...]:
        ...

    def run(self, request: DistRequest) -> List[Path]:
        """Create the artifact at ``request.artifact_path`` and return the produced paths."""
        ...


def _parse_os_archs(config: Mapping[str, Any]) -> Tuple[OSArch, ...] | None:
    raw = config.get("os_archs")
    if raw is None:
        return None
    os_archs = parse_os_archs(raw, field_name="os_archs")
    if not os_archs:
        raise ValueError("os_archs must not be empty when specified")
    return tuple(os_archs)


class _ArchiveDister:
    """Packages the build output of one OS/arch into a tarball."""

    _type_name = ""
    artifact_extension = ""

    def __init__(self, config: Mapping[str, Any]) -> None:
        ensure_known_keys(config, {"os_archs"}, section=f"{self._type_name} config")
        self.os_archs = _parse_os_archs(config)

    def type_name(self) -> str:
        return self._type_name

    def flags(self) -> Tuple[Flag, ...]:
        return ()

    def run(self, request: DistRequest) -> List[Path]:
        if not request.build_output.is_file():
            raise FileNotFoundError(f"Build output '{request.build_output}' does not exist")
        member = (
            f"{request.product_id}-{request.version}/bin/{request.os_arch}/{request.build_output.name}"
        )
        manager = ArchiveManager(request.console)
        created = manager.create_archive(
            artifact=ArchiveArtifact(entries={member: request.build_output}, label=request.product_id),
            target_path=request.artifact_path,
            format_hint=self.artifact_extension,
        )
        return [created]


class OSArchBinDister(_ArchiveDister):
    """One gzip tarball per OS/arch holding the product executable."""

    _type_name = OS_ARCH_BIN_TYPE_NAME
    artifact_extension = "tgz"


class OSArchTzstDister(_ArchiveDister):
    """Same layout as ``os-arch-bin`` compressed with zstandard."""

    _type_name = OS_ARCH_TZST_TYPE_NAME
    artifact_extension = "tzst"


class ManualDister:
    """Runs a user-supplied command that must create the artifact itself."""

    def __init__(self, config: Mapping[str, Any]) -> None:
        ensure_known_keys(config, {"command", "extension", "os_archs", "environment"}, section="manual config")
        raw_command = config.get("command")
        if isinstance(raw_command, str):
            raise TypeError("command must be a list of arguments")
        command = normalize_string_list(raw_command, field_name="command")
        if not command:
            raise ValueError("command is required")
        validate_placeholders(command, MANUAL_PLACEHOLDERS, label="command")

        extension = config.get("extension")
        if not isinstance(extension, str) or not extension.strip().strip("."):
            raise ValueError("extension is required (for example 'tgz' or 'zip')")
        extension = extension.strip().strip(".")
        if "/" in extension or "\\" in extension:
            raise ValueError(f"extension '{extension}' must not contain path separators")

        environment = config.get("environment") or {}
        if not isinstance(environment, Mapping):
            raise TypeError("environment must be a table/mapping")

        self.command = tuple(command)
        self.artifact_extension = extension
        self.os_archs = _parse_os_archs(config)
        self.environment = {str(key): str(value) for key, value in environment.items()}

    def type_name(self) -> str:
        return MANUAL_TYPE_NAME

    def flags(self) -> Tuple[Flag, ...]:
        return ()

    def run(self, request: DistRequest) -> List[Path]:
        resolver = TemplateResolver(request.template_context())
        command = resolver.resolve_command(self.command)
        environment = {key: str(resolver.resolve(value)) for key, value in self.environment.items()}
        request.artifact_path.parent.mkdir(parents=True, exist_ok=True)
        request.console.debug(f"Running manual dister for {request.product_id} ({request.os_arch})")
        request.runner.run(
            command,
            cwd=request.project_root,
            env=environment or None,
            note=f"dist {request.product_id}.{request.dist_id} {request.os_arch}",
        )
        return [request.artifact_path]


def register_builtin_disters(registry: "DisterRegistry") -> None:
    registry.register(OS_ARCH_BIN_TYPE_NAME, OSArchBinDister)
    registry.register(OS_ARCH_TZST_TYPE_NAME, OSArchTzstDister)
    registry.register(MANUAL_TYPE_NAME, ManualDister)


__all__ = [
    "DEFAULT_DIST_ID",
    "DistRequest",
    "Dister",
    "MANUAL_TYPE_NAME",
    "ManualDister",
    "OSArchBinDister",
    "OSArchTzstDister",
    "OS_ARCH_BIN_TYPE_NAME",
    "OS_ARCH_TZST_TYPE_NAME",
    "register_builtin_disters",
]
