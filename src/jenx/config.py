# Copyright (c) Syntropy Systems
"""Configuration management for jenx."""
from __future__ import annotations

import contextlib
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import TypeVar, cast

import yaml
from pydantic import ValidationError

from jenx.errors import ConfigError
from jenx.models.target import CredentialType, JenkinsTarget

CONFIG_ENV_VAR = "JENX_CONFIG"

T = TypeVar("T")


@dataclass
class JenxConfig:
    """Configuration for jenx."""

    targets: list[JenkinsTarget] = field(default_factory=list)

    # Per-request HTTP timeout in seconds
    timeout: float = 30.0

    # Builds in flight at once
    concurrency: int = 4

    # Hard ceiling on permutations generated for one plan
    max_permutations: int = 20

    # Seconds between queue item lookups
    queue_poll_interval: float = 2.0

    # Seconds between build status lookups
    build_poll_interval: float = 3.0

    config_path: Path | None = None

    def find_target(self, target_id: str | None) -> JenkinsTarget:
        """Return the target with the given id, or the only one configured."""
        if not self.targets:
            msg = "No Jenkins targets configured. Run 'jenx init' first."
            raise ConfigError(msg)
        if target_id is None:
            if len(self.targets) > 1:
                ids = ", ".join(t.id for t in self.targets)
                msg = f"Several targets configured ({ids}); pick one with --target"
                raise ConfigError(msg)
            return self.targets[0]
        for target in self.targets:
            if target.id == target_id:
                return target
        msg = f"Unknown target: {target_id}"
        raise ConfigError(msg)


def first_set(*values: T | None, default: T) -> T:
    """Return the first value that is not None, else ``default``.

    Layers CLI flags over plan values over config values; an explicit 0
    still counts as set.
    """
    for value in values:
        if value is not None:
            return value
    return default


def get_global_config_dir() -> Path:
    """Get the global jenx config directory (~/.jenx)."""
    return Path.home() / ".jenx"


def resolve_config_path(path: Path | None = None) -> Path:
    """Resolve the config file location.

    Looks in:
    1. Provided path
    2. $JENX_CONFIG
    3. ~/.jenx/config.yaml

    Explicit and environment paths must be absolute.
    """
    if path is None:
        env_path = os.environ.get(CONFIG_ENV_VAR, "").strip()
        if env_path:
            path = Path(env_path)

    if path is not None:
        if not path.is_absolute():
            msg = f"config path must be absolute: {path}"
            raise ConfigError(msg)
        return path

    return get_global_config_dir() / "config.yaml"


def validate_targets(raw_targets: object) -> list[JenkinsTarget]:
    """Validate and normalize the raw `jenkins` list of a config file."""
    if raw_targets is None:
        return []
    if not isinstance(raw_targets, list):
        msg = "'jenkins' must be a list of targets"
        raise ConfigError(msg)

    targets: list[JenkinsTarget] = []
    seen_ids: set[str] = set()
    for i, raw in enumerate(cast("list[object]", raw_targets)):
        try:
            target = JenkinsTarget.model_validate(raw)
        except ValidationError as e:
            msg = f"jenkins[{i}] is invalid: {e}"
            raise ConfigError(msg) from e

        target_id = target.id.strip()
        if not target_id:
            msg = f"jenkins[{i}].id is required"
            raise ConfigError(msg)
        if target_id in seen_ids:
            msg = f'jenkins[{i}].id "{target_id}" is duplicated'
            raise ConfigError(msg)
        seen_ids.add(target_id)
        if not target.host.strip():
            msg = f"jenkins[{i}].host is required"
            raise ConfigError(msg)
        if not target.username.strip():
            msg = f"jenkins[{i}].username is required"
            raise ConfigError(msg)
        if target.credential.type != CredentialType.ENV.value:
            msg = f'jenkins[{i}].credential.type must be "{CredentialType.ENV.value}"'
            raise ConfigError(msg)
        if not target.credential.ref.strip():
            msg = f"jenkins[{i}].credential.ref is required"
            raise ConfigError(msg)

        target.id = target_id
        target.host = target.host.strip().rstrip("/")
        target.username = target.username.strip()
        target.credential.ref = target.credential.ref.strip()
        if not target.name.strip():
            target.name = target_id
        targets.append(target)

    return targets


def load_config(path: Path | None = None) -> JenxConfig:
    """Load configuration from the config file or defaults.

    A missing file yields the defaults with no targets.
    """
    config_path = resolve_config_path(path)
    config = JenxConfig(config_path=config_path)

    if not config_path.exists():
        return config

    try:
        with config_path.open() as f:
            data = cast("object", yaml.safe_load(f) or {})
    except (OSError, yaml.YAMLError) as e:
        msg = f"read {config_path}: {e}"
        raise ConfigError(msg) from e

    if not isinstance(data, dict):
        msg = f"{config_path}: config must be a mapping"
        raise ConfigError(msg)
    data = cast("dict[str, object]", data)

    config.targets = validate_targets(data.get("jenkins"))

    timeout = data.get("timeout")
    if isinstance(timeout, (int, float)):
        config.timeout = float(timeout)
    concurrency = data.get("concurrency")
    if isinstance(concurrency, (int, float)):
        config.concurrency = int(concurrency)
    max_permutations = data.get("max_permutations")
    if isinstance(max_permutations, (int, float)):
        config.max_permutations = int(max_permutations)
    queue_poll_interval = data.get("queue_poll_interval")
    if isinstance(queue_poll_interval, (int, float)):
        config.queue_poll_interval = float(queue_poll_interval)
    build_poll_interval = data.get("build_poll_interval")
    if isinstance(build_poll_interval, (int, float)):
        config.build_poll_interval = float(build_poll_interval)

    return config


def save_config(path: Path, config: JenxConfig) -> None:
    """Atomically write the persisted part of the config.

    The directory is created with 0700 and the file lands with 0600 via a
    temp file renamed over the destination.
    """
    directory = path.parent
    try:
        directory.mkdir(mode=0o700, parents=True, exist_ok=True)
        directory.chmod(0o700)
    except OSError as e:
        msg = f"create config dir {directory}: {e}"
        raise ConfigError(msg) from e

    payload: dict[str, object] = {
        "jenkins": [target.model_dump(mode="json") for target in config.targets],
        "timeout": config.timeout,
        "concurrency": config.concurrency,
        "max_permutations": config.max_permutations,
        "queue_poll_interval": config.queue_poll_interval,
        "build_poll_interval": config.build_poll_interval,
    }

    fd, tmp_name = tempfile.mkstemp(
        dir=directory, prefix=".jenx-config-", suffix=".yaml"
    )
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w") as f:
            yaml.safe_dump(payload, f, default_flow_style=False, sort_keys=False)
        tmp_path.chmod(0o600)
        _ = tmp_path.replace(path)
    except OSError as e:
        msg = f"write config {path}: {e}"
        raise ConfigError(msg) from e
    finally:
        with contextlib.suppress(FileNotFoundError):
            tmp_path.unlink()
