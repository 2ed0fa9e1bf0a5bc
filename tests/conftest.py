# Copyright (c) Syntropy Systems
"""Pytest fixtures for jenx tests."""

from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest
import yaml

from jenx.client import JenkinsClient

from jenkins_fake import HOST, TOKEN_ENV, FakeJenkins


@pytest.fixture
def fake_jenkins() -> FakeJenkins:
    """Create a fresh fake Jenkins server."""
    return FakeJenkins()


@pytest.fixture
def jenkins_client(fake_jenkins: FakeJenkins) -> Generator[JenkinsClient, None, None]:
    """JenkinsClient connected to the fake server."""
    client = fake_jenkins.client()
    yield client
    client.close()


@pytest.fixture
def config_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Write a config with one target and export its token."""
    monkeypatch.setenv(TOKEN_ENV, "secret-token")
    monkeypatch.delenv("JENX_CONFIG", raising=False)
    path = tmp_path / "jenx" / "config.yaml"
    path.parent.mkdir()
    config = {
        "jenkins": [
            {
                "id": "test",
                "host": HOST + "/",
                "username": "ci-bot",
                "credential": {"type": "env", "ref": TOKEN_ENV},
            }
        ],
        "queue_poll_interval": 0.001,
        "build_poll_interval": 0.001,
    }
    with path.open("w") as f:
        yaml.safe_dump(config, f)
    return path


@pytest.fixture
def plan_file(tmp_path: Path) -> Path:
    """Write the maintenance plan used across tests."""
    path = tmp_path / "plan.yaml"
    plan = {
        "job": "deploy",
        "fixed": {"REASON": "maintenance"},
        "choices": {"REGION": ["US", "EU"], "ACTION": ["drain", "reload"]},
    }
    with path.open("w") as f:
        yaml.safe_dump(plan, f, sort_keys=False)
    return path
