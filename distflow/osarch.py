"""Operating system / architecture pairs."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, List
import platform

_OS_ALIASES = {
    "linux": "linux",
    "darwin": "darwin",
    "macos": "darwin",
    "windows": "windows",
    "freebsd": "freebsd",
}

_ARCH_ALIASES = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "i386": "386",
    "i686": "386",
    "x86": "386",
    "armv7l": "arm",
    "armv6l": "arm",
}


@dataclass(frozen=True, slots=True, order=True)
class OSArch:
    os: str
    arch: str

    @classmethod
    def parse(cls, value: Any) -> "OSArch":
        if isinstance(value, OSArch):
            return value
        if not isinstance(value, str):
            raise TypeError(f"OS/architecture must be a string like 'linux-amd64', got {value!r}")
        text = value.strip()
        os_name, sep, arch = text.partition("-")
        if not sep or not os_name or not arch or "-" in arch:
            raise ValueError(f"Invalid OS/architecture '{value}': expected '<os>-<arch>'")
        return cls(os=os_name.lower(), arch=arch.lower())

    @classmethod
    def current(cls) -> "OSArch":
        system = platform.system().lower()
        machine = platform.machine().lower()
        return cls(os=_OS_ALIASES.get(system, system), arch=_ARCH_ALIASES.get(machine, machine))

    @property
    def executable_suffix(self) -> str:
        return ".exe" if self.os == "windows" else ""

    def __str__(self) -> str:
        return f"{self.os}-{self.arch}"


def parse_os_archs(values: Iterable[Any], *, field_name: str) -> List[OSArch]:
    """Parse a list of OS/arch strings, dropping duplicates but keeping order."""

    if isinstance(values, (str, bytes)):
        raise TypeError(f"{field_name} must be a list of '<os>-<arch>' strings")
    parsed: List[OSArch] = []
    for value in values:
        try:
            os_arch = OSArch.parse(value)
        except (TypeError, ValueError) as exc:
            raise type(exc)(f"{field_name}: {exc}") from exc
        if os_arch not in parsed:
            parsed.append(os_arch)
    return parsed


__all__ = ["OSArch", "parse_os_archs"]
