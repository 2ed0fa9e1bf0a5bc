# Copyright (c) Syntropy Systems
"""Run lifecycle models: job specs, states, updates and batch records."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence


class RunState(str, Enum):
    """Lifecycle state of a single job in a batch."""

    PLANNED = "PLANNED"
    QUEUED = "QUEUED"
    RUNNING = "RUNNING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    ABORTED = "ABORTED"
    ERROR = "ERROR"

    @property
    def is_terminal(self) -> bool:
        """Whether no further events follow this state."""
        return self not in (RunState.PLANNED, RunState.QUEUED, RunState.RUNNING)

    @property
    def is_retryable(self) -> bool:
        """Whether a job ending in this state is picked up by a failed-only retry."""
        return self in (RunState.FAILED, RunState.ABORTED, RunState.ERROR)


@dataclass(frozen=True)
class JobSpec:
    """One concrete parameter assignment, executed as a single build."""

    params: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "params", MappingProxyType(dict(self.params)))

    def __hash__(self) -> int:
        return hash(frozenset(self.params.items()))

    def as_dict(self) -> dict[str, str]:
        """Return a mutable copy of the parameters."""
        return dict(self.params)

    def summary(self) -> str:
        """Format parameters as ``k=v`` pairs sorted by name."""
        return ", ".join(f"{k}={self.params[k]}" for k in sorted(self.params))


@dataclass(frozen=True)
class RunUpdate:
    """A progress event emitted by the run executor for one job index."""

    index: int
    state: RunState
    queue_url: str = ""
    build_url: str = ""
    build_number: int = 0
    result: str = ""
    error: Exception | None = None
    done: bool = False


@dataclass
class RunRecord:
    """Folded view of every update seen for one job index."""

    index: int
    spec: JobSpec
    state: RunState = RunState.PLANNED
    queue_url: str = ""
    build_url: str = ""
    build_number: int = 0
    result: str = ""
    error: str = ""
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    ended_at: datetime | None = None

    @property
    def url(self) -> str:
        """Best known link for the job: build URL, else queue URL."""
        return self.build_url or self.queue_url

    @property
    def outcome(self) -> str:
        """Error text if any, else the build result string."""
        return self.error or self.result


def failed_subset(
    specs: Sequence[JobSpec],
    states: Sequence[RunState],
) -> list[JobSpec]:
    """Return the specs whose terminal state was FAILED, ABORTED or ERROR.

    ``states`` is indexed in parallel with ``specs``.
    """
    return [spec for spec, state in zip(specs, states) if state.is_retryable]


class RunBatch:
    """The ordered specs of one execution attempt and their run records.

    Updates are folded "last write wins": only non-empty fields of an update
    overwrite the record, so a later RUNNING event keeps the queue URL
    captured earlier.
    """

    specs: list[JobSpec]
    records: list[RunRecord]
    _finished: set[int]

    def __init__(self, specs: Iterable[JobSpec]) -> None:
        self.specs = list(specs)
        self.records = []
        self._finished = set()
        self.reset()

    def reset(self) -> None:
        """Plan a fresh record for every spec."""
        self.records = [
            RunRecord(index=i, spec=spec) for i, spec in enumerate(self.specs)
        ]
        self._finished = set()

    def apply(self, update: RunUpdate) -> None:
        """Fold a single update into its record. Out-of-range indices are ignored."""
        if update.index < 0 or update.index >= len(self.records):
            return
        record = self.records[update.index]
        record.state = update.state
        if update.queue_url:
            record.queue_url = update.queue_url
        if update.build_url:
            record.build_url = update.build_url
        if update.build_number:
            record.build_number = update.build_number
        if update.result:
            record.result = update.result
        if update.error is not None:
            record.error = str(update.error)
        if update.done:
            record.ended_at = datetime.now(timezone.utc)
            self._finished.add(update.index)

    @property
    def finished(self) -> bool:
        """Whether every job has reached its terminal event."""
        return len(self._finished) == len(self.records)

    @property
    def states(self) -> list[RunState]:
        """Current state of every record, by index."""
        return [record.state for record in self.records]

    def counts(self) -> Counter[RunState]:
        """Number of records in each state."""
        return Counter(self.states)

    def failed_specs(self) -> list[JobSpec]:
        """Specs that ended FAILED, ABORTED or ERROR."""
        return failed_subset(self.specs, self.states)

    def rebuild_failed_only(self) -> list[JobSpec]:
        """Narrow the batch to its failed specs for a retry.

        Returns the retry subset. When nothing failed the batch is left
        untouched and an empty list is returned.
        """
        failed = self.failed_specs()
        if failed:
            self.specs = failed
            self.reset()
        return failed
