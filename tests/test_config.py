# Copyright (c) Syntropy Systems
"""Tests for configuration loading, saving and token lookup."""

from __future__ import annotations

import stat
from pathlib import Path

import pytest
import yaml

from jenx.config import (
    JenxConfig,
    first_set,
    load_config,
    resolve_config_path,
    save_config,
)
from jenx.credentials import resolve_token
from jenx.errors import ConfigError, CredentialError
from jenx.models.target import Credential, JenkinsTarget

from jenkins_fake import HOST, TOKEN_ENV, make_target


def _write(path: Path, content: str) -> Path:
    _ = path.write_text(content.strip() + "\n")
    return path


class TestLoadConfig:
    """Tests for load_config."""

    def test_valid_config(self, tmp_path: Path) -> None:
        """Test loading a single target with defaults filled in."""
        path = _write(
            tmp_path / "config.yaml",
            """
jenkins:
  - id: prod
    host: "  https://jenkins.example.com/ "
    username: ci-user
    credential:
      type: env
      ref: JENKINS_PROD_TOKEN
""",
        )

        config = load_config(path)

        assert len(config.targets) == 1
        target = config.targets[0]
        assert target.id == "prod"
        assert target.name == "prod"
        assert target.host == "https://jenkins.example.com"
        assert target.credential.ref == "JENKINS_PROD_TOKEN"
        assert config.concurrency == 4
        assert config.max_permutations == 20
        assert config.config_path == path

    def test_tuning_keys(self, tmp_path: Path) -> None:
        """Test that numeric tuning keys override defaults."""
        path = _write(
            tmp_path / "config.yaml",
            """
concurrency: 8
max_permutations: 50
timeout: 10
queue_poll_interval: 0.5
build_poll_interval: 1
""",
        )

        config = load_config(path)

        assert config.targets == []
        assert config.concurrency == 8
        assert config.max_permutations == 50
        assert config.timeout == 10.0
        assert config.queue_poll_interval == 0.5
        assert config.build_poll_interval == 1.0

    def test_missing_file_gives_defaults(self, tmp_path: Path) -> None:
        """Test that a missing file is not an error."""
        config = load_config(tmp_path / "nope.yaml")

        assert config.targets == []
        assert config.timeout == 30.0

    def test_rejects_unsupported_credential_type(self, tmp_path: Path) -> None:
        """Test that only env credentials are accepted."""
        path = _write(
            tmp_path / "config.yaml",
            """
jenkins:
  - id: prod
    host: https://jenkins.example.com
    username: ci-user
    credential:
      type: file
      ref: some-ref
""",
        )

        with pytest.raises(ConfigError, match=r"credential\.type"):
            _ = load_config(path)

    def test_rejects_duplicate_ids(self, tmp_path: Path) -> None:
        """Test that target ids must be unique."""
        path = _write(
            tmp_path / "config.yaml",
            """
jenkins:
  - id: prod
    host: https://a.example.com
    username: u
    credential: {type: env, ref: A}
  - id: prod
    host: https://b.example.com
    username: u
    credential: {type: env, ref: B}
""",
        )

        with pytest.raises(ConfigError, match=r"jenkins\[1\]\.id"):
            _ = load_config(path)

    def test_rejects_missing_host(self, tmp_path: Path) -> None:
        """Test that host is required."""
        path = _write(
            tmp_path / "config.yaml",
            """
jenkins:
  - id: prod
    username: u
    credential: {type: env, ref: A}
""",
        )

        with pytest.raises(ConfigError, match=r"jenkins\[0\]\.host is required"):
            _ = load_config(path)

    def test_rejects_invalid_yaml(self, tmp_path: Path) -> None:
        """Test that parse errors surface as ConfigError."""
        path = _write(tmp_path / "config.yaml", "jenkins: [unclosed")

        with pytest.raises(ConfigError):
            _ = load_config(path)


class TestResolveConfigPath:
    """Tests for config path resolution."""

    def test_explicit_path(self, tmp_path: Path) -> None:
        """Test that an explicit absolute path wins."""
        path = tmp_path / "c.yaml"

        assert resolve_config_path(path) == path

    def test_relative_path_rejected(self) -> None:
        """Test that relative paths are refused."""
        with pytest.raises(ConfigError, match="absolute"):
            _ = resolve_config_path(Path("relative.yaml"))

    def test_env_var(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that $JENX_CONFIG is used when no path is given."""
        path = tmp_path / "from-env.yaml"
        monkeypatch.setenv("JENX_CONFIG", str(path))

        assert resolve_config_path() == path

    def test_default_under_home(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test the ~/.jenx fallback."""
        monkeypatch.delenv("JENX_CONFIG", raising=False)
        monkeypatch.setenv("HOME", str(tmp_path))

        assert resolve_config_path() == tmp_path / ".jenx" / "config.yaml"


class TestSaveConfig:
    """Tests for save_config."""

    def test_round_trip(self, tmp_path: Path) -> None:
        """Test that a saved config loads back identically."""
        path = tmp_path / "nested" / "config.yaml"
        config = JenxConfig(targets=[make_target()], concurrency=6)

        save_config(path, config)
        loaded = load_config(path)

        assert loaded.targets == config.targets
        assert loaded.concurrency == 6

    def test_permissions(self, tmp_path: Path) -> None:
        """Test that the directory is private and the file owner-only."""
        path = tmp_path / "private" / "config.yaml"

        save_config(path, JenxConfig(targets=[make_target()]))

        assert stat.S_IMODE(path.parent.stat().st_mode) == 0o700
        assert stat.S_IMODE(path.stat().st_mode) == 0o600

    def test_no_temp_files_left(self, tmp_path: Path) -> None:
        """Test that only the config file remains after saving."""
        path = tmp_path / "cfg" / "config.yaml"

        save_config(path, JenxConfig())
        save_config(path, JenxConfig(concurrency=2))

        assert [p.name for p in path.parent.iterdir()] == ["config.yaml"]
        data = yaml.safe_load(path.read_text())
        assert data["concurrency"] == 2


class TestResolveToken:
    """Tests for env credential lookup."""

    def test_reads_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that the token comes from the named variable."""
        monkeypatch.setenv(TOKEN_ENV, "abc123")

        assert resolve_token(make_target()) == "abc123"

    def test_missing_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that an unset variable names the target."""
        monkeypatch.delenv(TOKEN_ENV, raising=False)

        with pytest.raises(CredentialError, match="Test Jenkins"):
            _ = resolve_token(make_target())

    def test_blank_ref(self) -> None:
        """Test that a blank ref is refused."""
        target = JenkinsTarget(
            id="x", host=HOST, username="u", credential=Credential(type="env", ref=" ")
        )

        with pytest.raises(CredentialError, match="ref is required"):
            _ = resolve_token(target)


class TestFindTarget:
    """Tests for JenxConfig.find_target."""

    def test_single_target_is_default(self) -> None:
        """Test that the only target is picked without an id."""
        config = JenxConfig(targets=[make_target()])

        assert config.find_target(None).id == "test"

    def test_ambiguous_without_id(self) -> None:
        """Test that several targets require an explicit id."""
        config = JenxConfig(targets=[make_target(), make_target(id="other")])

        with pytest.raises(ConfigError, match="--target"):
            _ = config.find_target(None)

    def test_unknown_id(self) -> None:
        """Test that unknown ids are reported."""
        config = JenxConfig(targets=[make_target()])

        with pytest.raises(ConfigError, match="Unknown target"):
            _ = config.find_target("nope")


class TestFirstSet:
    """Tests for layering flag, plan and config values."""

    def test_zero_counts_as_set(self) -> None:
        """Test that an explicit 0 is not replaced by later values."""
        assert first_set(0, 8, default=4) == 0
        assert first_set(None, 0, default=4) == 0

    def test_falls_back_in_order(self) -> None:
        """Test that the first non-None value wins, then the default."""
        assert first_set(None, 8, default=4) == 8
        assert first_set(None, None, default=4) == 4
