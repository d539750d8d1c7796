"""Tests for sim_design path value extraction."""

from __future__ import annotations

from impactncd.paths.yaml_config import OUTPUT_DIR_KEY, SYNTHPOP_DIR_KEY, is_absolute, join_path, read_path_value

DESIGN = """\
# simulation design
locale: de
output_dir: /mnt/Storage_1/outputs   # big disk
synthpop_dir: "./inputs/synthpop"
nested:
  output_dir: /ignored
"""


class TestReadPathValue:
    def test_absolute_value(self) -> None:
        assert read_path_value(DESIGN, OUTPUT_DIR_KEY, "/repo") == "/mnt/Storage_1/outputs"

    def test_relative_value_joined_to_base(self) -> None:
        assert read_path_value(DESIGN, SYNTHPOP_DIR_KEY, "/repo/") == "/repo/inputs/synthpop"

    def test_missing_key(self) -> None:
        assert read_path_value("locale: de\n", OUTPUT_DIR_KEY, "/repo") is None

    def test_empty_value(self) -> None:
        assert read_path_value("output_dir:\n", OUTPUT_DIR_KEY, "/repo") is None

    def test_none_text(self) -> None:
        assert read_path_value(None, OUTPUT_DIR_KEY, "/repo") is None

    def test_windows_absolute_normalized(self) -> None:
        text = "output_dir: 'C:\\Sim\\outputs'\n"
        assert read_path_value(text, OUTPUT_DIR_KEY, "C:\\repo") == "C:/Sim/outputs"

    def test_indented_key_ignored(self) -> None:
        assert read_path_value("  output_dir: /x\n", OUTPUT_DIR_KEY, "/repo") is None


class TestHelpers:
    def test_is_absolute(self) -> None:
        assert is_absolute("/a")
        assert is_absolute("D:\\a")
        assert is_absolute("\\\\server\\share")
        assert not is_absolute("inputs/a")

    def test_join_path_collapses(self) -> None:
        assert join_path("C:\\repo\\", "./outputs//run") == "C:/repo/outputs/run"
