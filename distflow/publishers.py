"""Publisher strategies: ship already-built dist artifacts somewhere."""
from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any, List, Mapping, Protocol, TextIO, Tuple, runtime_checkable
import shlex
import shutil

from core.command_runner import CommandRunner, SubprocessCommandRunner, format_command
from core.config_loader import ensure_known_keys, normalize_string_list
from core.template import TemplateResolver, validate_placeholders

from .params import ProductTaskOutputInfo
from .registry import Flag

if TYPE_CHECKING:
    from .registry import PublisherRegistry

LOCAL_TYPE_NAME = "local"
COMMAND_TYPE_NAME = "command"

COMMAND_PLACEHOLDERS = ("artifact", "filename", "product", "version", "dist_id", "group_id")


@runtime_checkable
class Publisher(Protocol):
    def type_name(self) -> str:
        ...

    def flags(self) -> Tuple[Flag, ...]:
        ...

    def validate_config(self, config: Mapping[str, Any]) -> None:
        ...

    def run_publish(
        self,
        output_info: ProductTaskOutputInfo,
        config: Mapping[str, Any],
        flag_values: Mapping[str, Any],
        dry_run: bool,
        out: TextIO,
    ) -> None:
        """Publish the artifacts of exactly one product, or describe it when *dry_run*."""
        ...


def group_path(group_id: str | None) -> Path:
    if not group_id:
        return Path()
    return Path(*[part for part in group_id.split(".") if part])


class LocalPublisher:
    """Copies artifacts into ``<destination>/<group>/<product>/<version>/``."""

    def type_name(self) -> str:
        return LOCAL_TYPE_NAME

    def flags(self) -> Tuple[Flag, ...]:
        return (
            Flag(
                name="destination",
                type="string",
                description="Directory to publish into (overrides the configured destination)",
            ),
        )

    def validate_config(self, config: Mapping[str, Any]) -> None:
        ensure_known_keys(config, {"destination"}, section="local publisher config")
        destination = config.get("destination")
        if destination is not None and (not isinstance(destination, str) or not destination.strip()):
            raise ValueError("destination must be a non-empty string")

    def run_publish(
        self,
        output_info: ProductTaskOutputInfo,
        config: Mapping[str, Any],
        flag_values: Mapping[str, Any],
        dry_run: bool,
        out: TextIO,
    ) -> None:
        self.validate_config(config)
        destination = flag_values.get("destination") or config.get("destination")
        if not destination:
            raise ValueError("no destination configured (set 'destination' or pass --destination)")

        target_dir = Path(destination).expanduser() / group_path(output_info.group_id) / output_info.product_id / output_info.version
        for source in output_info.artifact_paths():
            target = target_dir / source.name
            if dry_run:
                print(f"[DRY] Would copy {source} to {target}", file=out)
                continue
            target_dir.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source, target)
            print(f"Copied {source} to {target}", file=out)


class CommandPublisher:
    """Runs a configured upload command once per artifact."""

    def __init__(self, runner: CommandRunner | None = None) -> None:
        self._runner = runner or SubprocessCommandRunner()

    def type_name(self) -> str:
        return COMMAND_TYPE_NAME

    def flags(self) -> Tuple[Flag, ...]:
        return (
            Flag(
                name="extra-args",
                type="string",
                default="",
                description="Additional arguments appended to every publish command",
            ),
        )

    def validate_config(self, config: Mapping[str, Any]) -> None:
        ensure_known_keys(config, {"command", "environment"}, section="command publisher config")
        if not config:
            return
        raw_command = config.get("command")
        if isinstance(raw_command, str):
            raise TypeError("command must be a list of arguments")
        command = normalize_string_list(raw_command, field_name="command")
        if not command:
            raise ValueError("command is required")
        validate_placeholders(command, COMMAND_PLACEHOLDERS, label="command")
        environment = config.get("environment")
        if environment is not None and not isinstance(environment, Mapping):
            raise TypeError("environment must be a table/mapping")

    def run_publish(
        self,
        output_info: ProductTaskOutputInfo,
        config: Mapping[str, Any],
        flag_values: Mapping[str, Any],
        dry_run: bool,
        out: TextIO,
    ) -> None:
        self.validate_config(config)
        if not config:
            raise ValueError(f"no '{COMMAND_TYPE_NAME}' publish configuration for product '{output_info.product_id}'")
        base_command = normalize_string_list(config.get("command"), field_name="command")
        extra_args: List[str] = shlex.split(str(flag_values.get("extra-args") or ""))
        environment = {str(key): str(value) for key, value in (config.get("environment") or {}).items()}

        for dist_id in output_info.dist_ids():
            for artifact in output_info.artifacts[dist_id]:
                resolver = TemplateResolver(
                    {
                        "artifact": str(artifact),
                        "filename": artifact.name,
                        "product": output_info.product_id,
                        "version": output_info.version,
                        "dist_id": dist_id,
                        "group_id": output_info.group_id or "",
                    }
                )
                command = [*resolver.resolve_command(base_command), *extra_args]
                if dry_run:
                    print(f"[DRY] Would run: {format_command(command)}", file=out)
                    continue
                result = self._runner.run(
                    command,
                    env=environment or None,
                    note=f"publish {output_info.product_id}.{dist_id}",
                )
                print(f"Ran: {format_command(command)}", file=out)
                if result.stdout.strip():
                    print(result.stdout.rstrip(), file=out)


def register_builtin_publishers(registry: "PublisherRegistry") -> None:
    registry.register(LOCAL_TYPE_NAME, LocalPublisher)
    registry.register(COMMAND_TYPE_NAME, CommandPublisher)


__all__ = [
    "COMMAND_TYPE_NAME",
    "CommandPublisher",
    "LOCAL_TYPE_NAME",
    "LocalPublisher",
    "Publisher",
    "group_path",
    "register_builtin_publishers",
]
