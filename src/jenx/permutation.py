# Copyright (c) Syntropy Systems
"""Plan files and permutation generation."""
from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional, cast

import yaml

from jenx.errors import ConfigError, PermutationError
from jenx.models.run import JobSpec

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from pathlib import Path

DEFAULT_MAX_PERMUTATIONS = 20


@dataclass
class ParameterSelection:
    """Parameter values chosen for a job.

    ``fixed_values`` are applied unchanged to every permutation;
    ``choice_values`` drive the cartesian expansion, one dimension per name.
    """

    fixed_values: dict[str, str] = field(default_factory=dict)
    choice_values: dict[str, list[str]] = field(default_factory=dict)


def build_permutations(
    selection: ParameterSelection,
    max_count: int = DEFAULT_MAX_PERMUTATIONS,
) -> list[JobSpec]:
    """Expand a selection into concrete job specifications.

    The first choice name is the outermost loop and candidate values keep
    the caller's order. Raises PermutationError when a choice has no values
    or when more than ``max_count`` permutations would be generated; a
    partial list is never returned.
    """
    names: list[str] = []
    values: list[Sequence[str]] = []
    for name, candidates in selection.choice_values.items():
        if not candidates:
            msg = f"choice parameter {name} has no selected values"
            raise PermutationError(msg)
        names.append(name)
        values.append(candidates)

    specs: list[JobSpec] = []
    # With no choices, product() yields one empty combo: the fixed-only spec.
    for combo in itertools.product(*values):
        params = dict(selection.fixed_values)
        params.update(zip(names, combo))
        specs.append(JobSpec(params))
        if len(specs) > max_count:
            msg = f"generated {len(specs)} permutations, max allowed is {max_count}"
            raise PermutationError(msg)

    return specs


def job_url_for(host: str, job: str) -> str:
    """Resolve a job reference to its URL.

    Absolute ``http(s)://`` URLs are kept; a path like ``folder/deploy`` is
    expanded to ``<host>/job/folder/job/deploy/``.
    """
    job = job.strip()
    if job.startswith(("http://", "https://")):
        return job.rstrip("/") + "/"
    parts = [part for part in job.split("/") if part]
    if not parts:
        msg = "job reference is empty"
        raise ConfigError(msg)
    return host.rstrip("/") + "".join(f"/job/{part}" for part in parts) + "/"


def _as_text(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


@dataclass
class PlanConfig:
    """A job plus the parameter selection to expand for it."""

    job: str
    fixed: dict[str, str] = field(default_factory=dict)
    choices: dict[str, list[str]] = field(default_factory=dict)
    target: str | None = None
    concurrency: int | None = None
    max_permutations: int | None = None

    @classmethod
    def from_yaml(cls, path: Path) -> PlanConfig:
        """Load a plan from a YAML file."""
        try:
            with path.open() as f:
                data = cast("object", yaml.safe_load(f))
        except yaml.YAMLError as e:
            msg = f"parse {path}: {e}"
            raise ConfigError(msg) from e

        if not isinstance(data, dict):
            msg = f"{path}: plan must be a mapping"
            raise ConfigError(msg)
        return cls.from_dict(cast("dict[str, object]", data))

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> PlanConfig:
        """Build a plan from already-parsed YAML data."""
        job = data.get("job")
        if not isinstance(job, str) or not job.strip():
            msg = "Plan must have a 'job' field"
            raise ConfigError(msg)

        fixed_raw = data.get("fixed") or {}
        if not isinstance(fixed_raw, dict):
            msg = "Plan 'fixed' must be a mapping"
            raise ConfigError(msg)
        fixed = {
            str(name): _as_text(value)
            for name, value in cast("dict[object, object]", fixed_raw).items()
        }

        choices_raw = data.get("choices") or {}
        if not isinstance(choices_raw, dict):
            msg = "Plan 'choices' must be a mapping"
            raise ConfigError(msg)
        choices: dict[str, list[str]] = {}
        for name, raw in cast("dict[object, object]", choices_raw).items():
            if raw is None:
                choices[str(name)] = []
            elif isinstance(raw, list):
                choices[str(name)] = [_as_text(v) for v in cast("list[object]", raw)]
            else:
                choices[str(name)] = [_as_text(raw)]

        return cls(
            job=job.strip(),
            fixed=fixed,
            choices=choices,
            target=cast("Optional[str]", data.get("target")),
            concurrency=_optional_int(data, "concurrency"),
            max_permutations=_optional_int(data, "max_permutations"),
        )

    def selection(self) -> ParameterSelection:
        """Return the parameter selection described by this plan."""
        return ParameterSelection(
            fixed_values=dict(self.fixed),
            choice_values={name: list(values) for name, values in self.choices.items()},
        )


def _optional_int(data: Mapping[str, object], key: str) -> int | None:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        msg = f"Plan '{key}' must be an integer"
        raise ConfigError(msg)
    return value
