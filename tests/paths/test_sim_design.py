"""Tests for sim_design discovery."""

from __future__ import annotations

from impactncd.paths.sim_design import LocalFiles, load_sim_design_paths


class FakeFiles:
    def __init__(self, files: dict[str, str]) -> None:
        self.files = files
        self.reads: list[str] = []

    async def read_file(self, path: str) -> str | None:
        self.reads.append(path)
        return self.files.get(path)

    async def path_exists(self, path: str) -> bool:
        return path in self.files

    async def directory_exists(self, path: str) -> bool:
        return True


class TestLoadSimDesignPaths:
    async def test_prefers_inputs_local_override(self) -> None:
        files = FakeFiles(
            {
                "/repo/inputs/sim_design.local.yaml": "output_dir: /local/out\nsynthpop_dir: /local/sp\n",
                "/repo/inputs/sim_design.yaml": "output_dir: /shared/out\n",
            }
        )
        result = await load_sim_design_paths("/repo", files)

        assert result is not None
        assert result.source == "/repo/inputs/sim_design.local.yaml"
        assert result.output_dir == "/local/out"
        assert result.synthpop_dir == "/local/sp"

    async def test_falls_through_candidates(self) -> None:
        files = FakeFiles({"/repo/sim_design.yaml": "output_dir: outputs\nsynthpop_dir: inputs/synthpop\n"})
        result = await load_sim_design_paths("/repo/", files)

        assert result is not None
        assert result.output_dir == "/repo/outputs"
        assert len(files.reads) == 4

    async def test_none_when_absent(self) -> None:
        assert await load_sim_design_paths("/repo", FakeFiles({})) is None


class TestLocalFiles:
    async def test_reads_and_checks(self, tmp_path) -> None:
        design = tmp_path / "sim_design.yaml"
        design.write_text("output_dir: /x\n", encoding="utf-8")
        files = LocalFiles()

        assert await files.read_file(str(design)) == "output_dir: /x\n"
        assert await files.read_file(str(tmp_path / "missing.yaml")) is None
        assert await files.path_exists(str(design))
        assert await files.directory_exists(str(tmp_path))
        assert not await files.directory_exists(str(design))
