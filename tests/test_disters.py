from __future__ import annotations

from pathlib import Path
from typing import List, Mapping, Sequence
import tempfile
import unittest

from core.archive import ArchiveManager
from core.command_runner import CommandResult, CommandRunner, RecordingCommandRunner
from core.console import quiet_console
from distflow.disters import DistRequest, ManualDister, OSArchBinDister, OSArchTzstDister
from distflow.osarch import OSArch

LINUX = OSArch("linux", "amd64")


class ArtifactWritingRunner(CommandRunner):
    """Records commands and creates the file named by the last argument."""

    def __init__(self) -> None:
        self.calls: List[tuple[List[str], dict]] = []

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        check: bool = True,
        note: str | None = None,
    ) -> CommandResult:
        self.calls.append((list(command), dict(env or {})))
        Path(command[-1]).write_text("package")
        return CommandResult(command=command, returncode=0, stdout="", stderr="")


class DisterTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name)
        self.build_output = self.root / "out" / "build" / "foo" / "0.1.0" / "linux-amd64" / "foo"
        self.build_output.parent.mkdir(parents=True)
        self.build_output.write_bytes(b"binary")

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def request(self, dist_id: str, extension: str, runner: CommandRunner | None = None) -> DistRequest:
        return DistRequest(
            project_root=self.root,
            product_id="foo",
            version="0.1.0",
            dist_id=dist_id,
            os_arch=LINUX,
            build_output=self.build_output,
            artifact_path=self.root / "out" / "dist" / "foo" / "0.1.0" / dist_id / f"foo-0.1.0-linux-amd64.{extension}",
            runner=runner or RecordingCommandRunner(),
            console=quiet_console(),
        )


class ArchiveDisterTests(DisterTestCase):
    def test_os_arch_bin_layout(self) -> None:
        dister = OSArchBinDister({})
        request = self.request("os-arch-bin", "tgz")
        produced = dister.run(request)
        self.assertEqual(produced, [request.artifact_path])
        members = ArchiveManager(quiet_console()).read_members(request.artifact_path)
        self.assertEqual(members, {"foo-0.1.0/bin/linux-amd64/foo": b"binary"})

    def test_os_arch_tzst_layout(self) -> None:
        dister = OSArchTzstDister({})
        self.assertEqual(dister.artifact_extension, "tzst")
        request = self.request("os-arch-tzst", "tzst")
        dister.run(request)
        members = ArchiveManager(quiet_console()).read_members(request.artifact_path)
        self.assertEqual(list(members), ["foo-0.1.0/bin/linux-amd64/foo"])

    def test_missing_build_output(self) -> None:
        self.build_output.unlink()
        with self.assertRaises(FileNotFoundError):
            OSArchBinDister({}).run(self.request("os-arch-bin", "tgz"))

    def test_os_archs_config(self) -> None:
        self.assertIsNone(OSArchBinDister({}).os_archs)
        self.assertEqual(OSArchBinDister({"os_archs": ["linux-amd64"]}).os_archs, (LINUX,))
        with self.assertRaises(ValueError):
            OSArchBinDister({"os_archs": []})
        with self.assertRaises(ValueError):
            OSArchBinDister({"compression": "max"})


class ManualDisterTests(DisterTestCase):
    def test_runs_command_with_placeholders(self) -> None:
        dister = ManualDister(
            {
                "command": ["fpm", "--name", "{{product}}", "--version", "{{version}}", "{{build_output}}", "{{artifact}}"],
                "extension": "deb",
                "environment": {"TARGET": "{{os}}/{{arch}}"},
            }
        )
        runner = ArtifactWritingRunner()
        request = self.request("deb", "deb", runner)

        produced = dister.run(request)

        self.assertEqual(produced, [request.artifact_path])
        command, env = runner.calls[0]
        self.assertEqual(
            command,
            ["fpm", "--name", "foo", "--version", "0.1.0", str(self.build_output), str(request.artifact_path)],
        )
        self.assertEqual(env, {"TARGET": "linux/amd64"})
        self.assertTrue(request.artifact_path.is_file())

    def test_config_validation(self) -> None:
        with self.assertRaises(ValueError):
            ManualDister({"extension": "deb"})
        with self.assertRaises(TypeError):
            ManualDister({"command": "fpm -t deb", "extension": "deb"})
        with self.assertRaises(ValueError):
            ManualDister({"command": ["fpm"]})
        with self.assertRaises(ValueError):
            ManualDister({"command": ["fpm"], "extension": "a/b"})
        with self.assertRaises(ValueError):
            ManualDister({"command": ["fpm", "{{secret}}"], "extension": "deb"})
        self.assertEqual(ManualDister({"command": ["fpm"], "extension": ".rpm"}).artifact_extension, "rpm")


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
