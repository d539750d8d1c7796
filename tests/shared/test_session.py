"""Tests for session construction."""

from __future__ import annotations

import os

import pytest

from impactncd.config import Settings
from impactncd.shared.exceptions import PreconditionError
from impactncd.shared.models import LocalLocation, RemoteLocation, SessionFlags
from impactncd.shared.session import build_session_state, key_file_name, normalize_identity, parse_location


class TestNormalizeIdentity:
    def test_strips_whitespace_and_lowercases(self) -> None:
        assert normalize_identity("  Al ice\t") == "alice"

    def test_key_file_name(self) -> None:
        assert key_file_name("alice") == "id_ed25519_alice"


class TestParseLocation:
    def test_local(self) -> None:
        assert isinstance(parse_location("LOCAL", remote_user="ws"), LocalLocation)
        assert isinstance(parse_location("", remote_user="ws"), LocalLocation)

    def test_remote(self) -> None:
        loc = parse_location("REMOTE@10.0.0.5", remote_user="ws")
        assert isinstance(loc, RemoteLocation)
        assert loc.ip == "10.0.0.5"
        assert loc.ssh_target == "ws@10.0.0.5"
        assert str(loc) == "REMOTE@10.0.0.5"

    def test_remote_without_ip(self) -> None:
        with pytest.raises(PreconditionError, match="without address"):
            parse_location("REMOTE@", remote_user="ws")

    def test_garbage(self) -> None:
        with pytest.raises(PreconditionError, match="unrecognised"):
            parse_location("somewhere", remote_user="ws")


class TestBuildSessionState:
    def test_local_session(self, settings: Settings) -> None:
        state = build_session_state(
            user_name="Alice",
            password=" Pass Word ",
            location=LocalLocation(),
            settings=settings,
            local_repo_path="/work/IMPACTncd_Germany/",
        )

        assert state.user_name == "alice"
        assert state.password == "password"
        assert state.selected_repo == "IMPACTncd_Germany"
        assert state.container_name == "IMPACTncd_Germany_alice"
        assert state.paths.repo_root == "/work/IMPACTncd_Germany"
        assert state.paths.ssh_private_key == os.path.join(settings.ssh_dir_expanded, "id_ed25519_alice")
        assert state.paths.ssh_public_key.endswith("id_ed25519_alice.pub")
        assert state.paths.container_key_source == state.paths.ssh_private_key
        assert state.port == settings.default_port
        assert not state.is_remote

    def test_remote_session(self, settings: Settings) -> None:
        state = build_session_state(
            user_name="bob",
            password="pw",
            location=RemoteLocation(ip="10.0.0.5", user="php-workstation"),
            settings=settings,
            repo="IMPACTncd_Germany",
            flags=SessionFlags(high_compute=True),
            port=8790,
        )

        assert state.is_remote
        assert state.paths.repo_root == f"{settings.remote_repo_base}/IMPACTncd_Germany"
        assert state.paths.container_key_source == "/home/php-workstation/.ssh/id_ed25519_bob"
        assert state.paths.known_hosts_source == "/home/php-workstation/.ssh/known_hosts"
        assert state.port == 8790
        assert state.flags.high_compute

    def test_empty_user_rejected(self, settings: Settings) -> None:
        with pytest.raises(PreconditionError, match="user name"):
            build_session_state(
                user_name="  ", password="x", location=LocalLocation(), settings=settings, local_repo_path="/r"
            )

    def test_remote_requires_repo(self, settings: Settings) -> None:
        with pytest.raises(PreconditionError, match="repository name"):
            build_session_state(
                user_name="bob", password="x", location=RemoteLocation(ip="1.2.3.4"), settings=settings
            )

    def test_local_requires_path(self, settings: Settings) -> None:
        with pytest.raises(PreconditionError, match="local repository path"):
            build_session_state(user_name="bob", password="x", location=LocalLocation(), settings=settings)
