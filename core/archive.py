"""Deterministic archive creation for distribution artifacts."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Mapping, Protocol, runtime_checkable
import gzip
import io
import os
import shutil
import tarfile
import tempfile
import zipfile

import zstandard as zstd

_SUFFIX_FORMATS: list[tuple[str, str]] = [
    (".tar.zst", "zst"),
    (".tzst", "zst"),
    (".tar.gz", "gztar"),
    (".tgz", "gztar"),
    (".tar", "tar"),
    (".zip", "zip"),
]

_FORMAT_ALIASES: dict[str, str] = {
    "zst": "zst",
    "tar.zst": "zst",
    "tzst": "zst",
    "gztar": "gztar",
    "gz": "gztar",
    "tar.gz": "gztar",
    "tgz": "gztar",
    "tar": "tar",
    "zip": "zip",
}

# 1980-01-01, the earliest timestamp zip can store.
_FIXED_MTIME = 315532800
_ZIP_DATE_TIME = (1980, 1, 1, 0, 0, 0)


@runtime_checkable
class ArchiveConsole(Protocol):
    """Minimal console interface required by :class:`ArchiveManager`."""

    dry_run: bool

    def info(self, message: str) -> None:
        ...

    def error(self, message: str) -> None:
        ...

    def dry(self, message: str) -> None:
        ...

    def debug(self, message: str) -> None:
        ...


@dataclass(slots=True)
class ArchiveArtifact:
    """Files to package, keyed by their POSIX path inside the archive."""

    entries: Mapping[str, Path] = field(default_factory=dict)
    label: str | None = None

    def sorted_entries(self) -> list[tuple[str, Path]]:
        return sorted(
            ((PurePosixPath(name).as_posix(), Path(path)) for name, path in self.entries.items()),
            key=lambda item: item[0],
        )


def resolve_archive_format(target: Path, format_hint: str | None = None) -> str:
    if format_hint:
        normalized = format_hint.strip().lower()
        if normalized in _FORMAT_ALIASES:
            return _FORMAT_ALIASES[normalized]
        raise ValueError(f"Unsupported archive format hint '{format_hint}'")

    filename = target.name.lower()
    for suffix, fmt in sorted(_SUFFIX_FORMATS, key=lambda item: len(item[0]), reverse=True):
        if filename.endswith(suffix):
            return fmt

    raise ValueError(
        f"Unable to determine archive format from '{target.name}'. "
        "Provide an explicit format_hint or use a supported suffix."
    )


class ArchiveManager:
    """Create reproducible compressed archives from a set of files.

    Member order, timestamps and ownership are fixed so that archiving the
    same inputs twice produces byte-identical output.
    """

    def __init__(self, console: ArchiveConsole, *, zstd_level: int = 19) -> None:
        self._console = console
        self._zstd_level = zstd_level

    def create_archive(
        self,
        *,
        artifact: ArchiveArtifact,
        target_path: Path | str,
        format_hint: str | None = None,
    ) -> Path:
        """Create an archive holding *artifact* at *target_path*.

        The format is inferred from the target suffix unless *format_hint*
        is given. Existing targets are replaced.
        """

        target = Path(target_path)
        entries = artifact.sorted_entries()
        if not entries:
            raise ValueError(f"Nothing to archive for {artifact.label or target.name}")
        for name, source in entries:
            if not source.is_file():
                raise FileNotFoundError(f"Archive input '{source}' for member '{name}' does not exist")

        archive_format = resolve_archive_format(target, format_hint)

        if self._console.dry_run:
            self._console.dry(f"Would archive {artifact.label or target.name} to {target}")
            return target

        target.parent.mkdir(parents=True, exist_ok=True)
        self._console.debug(f"Writing {archive_format} archive {target} ({len(entries)} members)")

        if archive_format == "zip":
            return self._make_zip_archive(target_path=target, entries=entries)

        temp_tar = self._create_pax_tar(entries=entries, temp_dir=target.parent)
        try:
            if archive_format == "gztar":
                with temp_tar.open("rb") as src, target.open("wb") as raw:
                    with gzip.GzipFile(filename="", mode="wb", fileobj=raw, compresslevel=9, mtime=0) as dst:
                        shutil.copyfileobj(src, dst)
            elif archive_format == "zst":
                compressor = zstd.ZstdCompressor(level=self._zstd_level, write_checksum=True)
                with temp_tar.open("rb") as src, target.open("wb") as dst:
                    compressor.copy_stream(src, dst)
            elif archive_format == "tar":
                shutil.copyfile(temp_tar, target)
            else:
                raise RuntimeError(f"Unsupported archive format '{archive_format}'")
        finally:
            temp_tar.unlink(missing_ok=True)

        return target

    @staticmethod
    def _tar_info(name: str, *, size: int = 0, mode: int = 0o644, directory: bool = False) -> tarfile.TarInfo:
        info = tarfile.TarInfo(name)
        info.mtime = _FIXED_MTIME
        info.uid = info.gid = 0
        info.uname = info.gname = ""
        if directory:
            info.type = tarfile.DIRTYPE
            info.mode = 0o755
        else:
            info.size = size
            info.mode = mode
        return info

    def _create_pax_tar(self, *, entries: list[tuple[str, Path]], temp_dir: Path) -> Path:
        with tempfile.NamedTemporaryFile(dir=temp_dir, suffix=".tar", delete=False) as temp_handle:
            temp_path = Path(temp_handle.name)

        try:
            with tarfile.open(temp_path, mode="w", format=tarfile.PAX_FORMAT) as tar:
                written_dirs: set[str] = set()
                for name, source in entries:
                    parents = list(PurePosixPath(name).parents)[:-1]
                    for parent in reversed(parents):
                        directory = parent.as_posix()
                        if directory not in written_dirs:
                            tar.addfile(self._tar_info(directory, directory=True))
                            written_dirs.add(directory)
                    mode = 0o755 if os.access(source, os.X_OK) else 0o644
                    data = source.read_bytes()
                    tar.addfile(self._tar_info(name, size=len(data), mode=mode), io.BytesIO(data))
        except Exception:
            temp_path.unlink(missing_ok=True)
            raise

        return temp_path

    def _make_zip_archive(self, *, target_path: Path, entries: list[tuple[str, Path]]) -> Path:
        with zipfile.ZipFile(
            target_path,
            mode="w",
            compression=zipfile.ZIP_DEFLATED,
            compresslevel=9,
        ) as archive:
            for name, source in entries:
                info = zipfile.ZipInfo(name, date_time=_ZIP_DATE_TIME)
                info.compress_type = zipfile.ZIP_DEFLATED
                mode = 0o755 if os.access(source, os.X_OK) else 0o644
                info.external_attr = (mode | 0o100000) << 16
                archive.writestr(info, source.read_bytes())
        return target_path

    def read_members(self, archive_path: Path | str, format_hint: str | None = None) -> dict[str, bytes]:
        """Return the regular-file members of an archive as ``name -> bytes``."""

        archive = Path(archive_path)
        if not archive.exists():
            raise FileNotFoundError(f"Archive '{archive}' does not exist")
        archive_format = resolve_archive_format(archive, format_hint)

        if archive_format == "zip":
            with zipfile.ZipFile(archive, "r") as zip_ref:
                return {name: zip_ref.read(name) for name in zip_ref.namelist() if not name.endswith("/")}

        if archive_format == "zst":
            decompressor = zstd.ZstdDecompressor()
            with archive.open("rb") as handle, decompressor.stream_reader(handle) as reader:
                return self._read_tar_stream(reader, mode="r|")
        mode = "r:gz" if archive_format == "gztar" else "r:"
        with archive.open("rb") as handle:
            return self._read_tar_stream(handle, mode=mode)

    @staticmethod
    def _read_tar_stream(fileobj: io.RawIOBase | io.BufferedIOBase, *, mode: str) -> dict[str, bytes]:
        members: dict[str, bytes] = {}
        with tarfile.open(fileobj=fileobj, mode=mode) as tar:
            for member in tar:
                if not member.isfile():
                    continue
                extracted = tar.extractfile(member)
                if extracted is not None:
                    members[member.name] = extracted.read()
        return members


__all__ = [
    "ArchiveArtifact",
    "ArchiveConsole",
    "ArchiveManager",
    "resolve_archive_format",
]
