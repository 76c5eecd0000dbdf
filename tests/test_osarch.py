from __future__ import annotations

import unittest
from unittest.mock import patch

from distflow.osarch import OSArch, parse_os_archs


class OSArchTests(unittest.TestCase):
    def test_parse_and_format(self) -> None:
        os_arch = OSArch.parse(" Linux-AMD64 ")
        self.assertEqual(os_arch, OSArch("linux", "amd64"))
        self.assertEqual(str(os_arch), "linux-amd64")

    def test_parse_rejects_malformed_values(self) -> None:
        for value in ("linux", "-amd64", "linux-", "linux-amd64-v2"):
            with self.subTest(value=value):
                with self.assertRaises(ValueError):
                    OSArch.parse(value)
        with self.assertRaises(TypeError):
            OSArch.parse(42)

    def test_executable_suffix(self) -> None:
        self.assertEqual(OSArch("windows", "amd64").executable_suffix, ".exe")
        self.assertEqual(OSArch("darwin", "arm64").executable_suffix, "")

    def test_current_uses_go_style_names(self) -> None:
        with patch("distflow.osarch.platform.system", return_value="Linux"), patch(
            "distflow.osarch.platform.machine", return_value="x86_64"
        ):
            self.assertEqual(OSArch.current(), OSArch("linux", "amd64"))
        with patch("distflow.osarch.platform.system", return_value="Darwin"), patch(
            "distflow.osarch.platform.machine", return_value="arm64"
        ):
            self.assertEqual(OSArch.current(), OSArch("darwin", "arm64"))

    def test_parse_os_archs_keeps_order_and_drops_duplicates(self) -> None:
        parsed = parse_os_archs(["linux-amd64", "darwin-arm64", "linux-amd64"], field_name="os_archs")
        self.assertEqual(parsed, [OSArch("linux", "amd64"), OSArch("darwin", "arm64")])

    def test_parse_os_archs_names_the_field(self) -> None:
        with self.assertRaises(ValueError) as ctx:
            parse_os_archs(["linux"], field_name="build.os_archs")
        self.assertIn("build.os_archs", str(ctx.exception))
        with self.assertRaises(TypeError):
            parse_os_archs("linux-amd64", field_name="build.os_archs")


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
