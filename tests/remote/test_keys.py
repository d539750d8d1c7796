"""Tests for local key material helpers."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from impactncd.remote.keys import add_to_agent, ensure_key_pair, ensure_known_host, read_key_file
from impactncd.shared.exceptions import SshAuthError
from impactncd.shared.process import CommandResult


def _result(stdout: str = "", returncode: int = 0) -> CommandResult:
    return CommandResult(args=(), returncode=returncode, stdout=stdout, stderr="")


class TestEnsureKeyPair:
    async def test_existing_pair_untouched(self, tmp_path) -> None:
        key = tmp_path / "id_ed25519_bob"
        key.write_text("priv", encoding="utf-8")
        (tmp_path / "id_ed25519_bob.pub").write_text("pub", encoding="utf-8")

        with patch("impactncd.remote.keys.run_command", AsyncMock()) as run:
            assert not await ensure_key_pair(str(key), comment="impactncd-bob")
        run.assert_not_awaited()

    async def test_generates(self, tmp_path) -> None:
        key = tmp_path / "keys" / "id_ed25519_bob"
        with patch("impactncd.remote.keys.run_command", AsyncMock(return_value=_result())) as run:
            assert await ensure_key_pair(str(key), comment="impactncd-bob")

        args = run.call_args.args[0]
        assert args[:3] == ["ssh-keygen", "-t", "ed25519"]
        assert str(key) in args
        assert (tmp_path / "keys").is_dir()

    async def test_failure(self, tmp_path) -> None:
        with patch("impactncd.remote.keys.run_command", AsyncMock(return_value=_result(returncode=1))):
            with pytest.raises(SshAuthError, match="ssh-keygen failed"):
                await ensure_key_pair(str(tmp_path / "k"), comment="c")


class TestEnsureKnownHost:
    async def test_appends_scan(self, tmp_path) -> None:
        known = tmp_path / "known_hosts"
        known.write_text("example.org ssh-rsa AAA", encoding="utf-8")
        scan = _result("github.com ssh-ed25519 AAAAGH")

        with patch("impactncd.remote.keys.run_command", AsyncMock(return_value=scan)):
            assert await ensure_known_host(str(known))

        assert known.read_text(encoding="utf-8") == "example.org ssh-rsa AAA\ngithub.com ssh-ed25519 AAAAGH\n"

    async def test_already_present(self, tmp_path) -> None:
        known = tmp_path / "known_hosts"
        known.write_text("github.com ssh-ed25519 AAAAGH\n", encoding="utf-8")

        with patch("impactncd.remote.keys.run_command", AsyncMock()) as run:
            assert await ensure_known_host(str(known))
        run.assert_not_awaited()

    async def test_scan_failure_is_soft(self, tmp_path) -> None:
        with patch("impactncd.remote.keys.run_command", AsyncMock(return_value=_result(returncode=1))):
            assert not await ensure_known_host(str(tmp_path / "known_hosts"))


class TestAgent:
    async def test_no_agent_socket(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("SSH_AUTH_SOCK", raising=False)
        assert not await add_to_agent("/k")

    async def test_add(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SSH_AUTH_SOCK", "/tmp/agent.sock")
        with patch("impactncd.remote.keys.run_command", AsyncMock(return_value=_result())) as run:
            assert await add_to_agent("/k")
        assert run.call_args.args[0] == ["ssh-add", "/k"]


class TestReadKeyFile:
    async def test_missing(self, tmp_path) -> None:
        assert await read_key_file(str(tmp_path / "nope.pub")) is None

    async def test_strips(self, tmp_path) -> None:
        path = tmp_path / "k.pub"
        path.write_text("ssh-ed25519 AAA c\n\n", encoding="utf-8")
        assert await read_key_file(str(path)) == "ssh-ed25519 AAA c"
