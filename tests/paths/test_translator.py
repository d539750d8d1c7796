"""Tests for host path to Docker mount conversion."""

from __future__ import annotations

import pytest

from impactncd.paths.translator import collapse_slashes, to_docker_mount_path


class TestToDockerMountPath:
    @pytest.mark.parametrize(
        ("path", "expected"),
        [
            ("C:\\Users\\x", "/c/Users/x"),
            ("D:/data/outputs/", "/d/data/outputs"),
            ("c:\\", "/c"),
            ("/home/alice//repo/", "/home/alice/repo"),
        ],
    )
    def test_local(self, path: str, expected: str) -> None:
        assert to_docker_mount_path(path, True) == expected

    def test_remote_keeps_posix_paths(self) -> None:
        assert to_docker_mount_path("/mnt/data/outputs", False) == "/mnt/data/outputs"

    def test_remote_does_not_rewrite_drive_letters(self) -> None:
        assert to_docker_mount_path("C:\\x", False) == "C:/x"

    def test_output_never_has_backslash_or_double_slash(self) -> None:
        result = to_docker_mount_path("E:\\\\share\\\\sub\\", True)
        assert "\\" not in result
        assert "//" not in result
        assert result == "/e/share/sub"


class TestCollapseSlashes:
    def test_root_is_kept(self) -> None:
        assert collapse_slashes("//") == "/"

    def test_trailing_removed(self) -> None:
        assert collapse_slashes("/a/b/") == "/a/b"
