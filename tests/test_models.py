# Copyright (c) Syntropy Systems
"""Tests for run lifecycle models and the failed-only retry subset."""

from __future__ import annotations

from jenx.errors import JenkinsClientError
from jenx.models.api import JobParamsResponse, QueueItemResponse, map_param_type
from jenx.models.run import JobSpec, RunBatch, RunState, RunUpdate, failed_subset


def _specs(count: int) -> list[JobSpec]:
    return [JobSpec({"N": str(i)}) for i in range(count)]


class TestRunState:
    """Tests for RunState helpers."""

    def test_terminal_states(self) -> None:
        """Test which states end a job's event sequence."""
        terminal = {state for state in RunState if state.is_terminal}

        assert terminal == {
            RunState.SUCCESS,
            RunState.FAILED,
            RunState.ABORTED,
            RunState.ERROR,
        }

    def test_retryable_states(self) -> None:
        """Test which states a failed-only retry picks up."""
        retryable = {state for state in RunState if state.is_retryable}

        assert retryable == {RunState.FAILED, RunState.ABORTED, RunState.ERROR}


class TestFailedSubset:
    """Tests for deriving the retry subset."""

    def test_picks_failed_error_aborted(self) -> None:
        """Test the subset for a mixed batch keeps indices 1, 2 and 3."""
        specs = _specs(5)
        states = [
            RunState.SUCCESS,
            RunState.FAILED,
            RunState.ERROR,
            RunState.ABORTED,
            RunState.SUCCESS,
        ]

        subset = failed_subset(specs, states)

        assert subset == [specs[1], specs[2], specs[3]]

    def test_all_success_is_empty(self) -> None:
        """Test that a clean batch has nothing to retry."""
        specs = _specs(3)

        assert failed_subset(specs, [RunState.SUCCESS] * 3) == []


class TestRunBatch:
    """Tests for folding updates into run records."""

    def test_starts_planned(self) -> None:
        """Test that every record starts PLANNED."""
        batch = RunBatch(_specs(3))

        assert batch.states == [RunState.PLANNED] * 3
        assert not batch.finished

    def test_later_update_keeps_earlier_fields(self) -> None:
        """Test that a RUNNING update does not erase the captured queue URL."""
        batch = RunBatch(_specs(1))

        batch.apply(RunUpdate(index=0, state=RunState.QUEUED))
        batch.apply(RunUpdate(index=0, state=RunState.QUEUED, queue_url="q/1/"))
        batch.apply(
            RunUpdate(index=0, state=RunState.RUNNING, build_url="b/7/", build_number=7)
        )

        record = batch.records[0]
        assert record.state == RunState.RUNNING
        assert record.queue_url == "q/1/"
        assert record.build_url == "b/7/"
        assert record.build_number == 7
        assert record.url == "b/7/"
        assert record.ended_at is None

    def test_terminal_update_finishes_record(self) -> None:
        """Test that done updates close the record and the batch."""
        batch = RunBatch(_specs(2))

        batch.apply(RunUpdate(index=0, state=RunState.SUCCESS, result="SUCCESS", done=True))
        assert not batch.finished
        batch.apply(
            RunUpdate(
                index=1,
                state=RunState.ERROR,
                error=JenkinsClientError("trigger failed (500): boom"),
                done=True,
            )
        )

        assert batch.finished
        assert batch.records[0].ended_at is not None
        assert batch.records[1].outcome == "trigger failed (500): boom"
        assert batch.counts()[RunState.SUCCESS] == 1
        assert batch.counts()[RunState.ERROR] == 1

    def test_out_of_range_update_ignored(self) -> None:
        """Test that unknown indices do not raise."""
        batch = RunBatch(_specs(1))

        batch.apply(RunUpdate(index=5, state=RunState.SUCCESS, done=True))
        batch.apply(RunUpdate(index=-1, state=RunState.SUCCESS, done=True))

        assert batch.states == [RunState.PLANNED]

    def test_rebuild_failed_only(self) -> None:
        """Test that a retry narrows the batch to failures and re-plans it."""
        specs = _specs(5)
        batch = RunBatch(specs)
        for index, state in enumerate(
            [RunState.SUCCESS, RunState.FAILED, RunState.ERROR, RunState.ABORTED, RunState.SUCCESS]
        ):
            batch.apply(RunUpdate(index=index, state=state, done=True))

        retry = batch.rebuild_failed_only()

        assert retry == [specs[1], specs[2], specs[3]]
        assert batch.specs == retry
        assert batch.states == [RunState.PLANNED] * 3
        assert batch.records[0].spec == specs[1]

    def test_rebuild_failed_only_noop_when_clean(self) -> None:
        """Test that an all-success batch is left untouched."""
        specs = _specs(2)
        batch = RunBatch(specs)
        for index in range(2):
            batch.apply(RunUpdate(index=index, state=RunState.SUCCESS, done=True))

        retry = batch.rebuild_failed_only()

        assert retry == []
        assert batch.specs == specs
        assert batch.states == [RunState.SUCCESS, RunState.SUCCESS]


class TestJobSpec:
    """Tests for JobSpec helpers."""

    def test_summary_sorted(self) -> None:
        """Test that the summary lists parameters by name."""
        spec = JobSpec({"REGION": "US", "ACTION": "drain"})

        assert spec.summary() == "ACTION=drain, REGION=US"

    def test_hashable(self) -> None:
        """Test that equal specs hash equally and can key a dict or set."""
        first = JobSpec({"REGION": "US", "ACTION": "drain"})
        second = JobSpec({"ACTION": "drain", "REGION": "US"})

        assert first == second
        assert hash(first) == hash(second)
        assert len({first, second, JobSpec({"REGION": "EU"})}) == 2

    def test_copy_is_independent(self) -> None:
        """Test that the source mapping can change without touching the spec."""
        source = {"A": "1"}
        spec = JobSpec(source)
        source["A"] = "2"

        assert spec.params["A"] == "1"


class TestApiModels:
    """Tests for Jenkins wire models."""

    def test_queue_item_defaults(self) -> None:
        """Test that a pending queue item parses without an executable."""
        item = QueueItemResponse.model_validate({"_class": "hudson.model.Queue$WaitingItem"})

        assert item.cancelled is False
        assert item.executable is None

    def test_param_type_mapping(self) -> None:
        """Test mapping of Jenkins parameter classes."""
        assert map_param_type("ChoiceParameterDefinition") is not None
        assert map_param_type("hudson.model.StringParameterDefinition") is not None
        assert map_param_type("RunParameterDefinition") is None

    def test_job_params_tolerates_empty_entries(self) -> None:
        """Test that null actions and definition lists parse cleanly."""
        response = JobParamsResponse.model_validate(
            {
                "actions": [None, {}, {"parameterDefinitions": None}],
                "property": None,
            }
        )

        assert len(response.actions) == 2
        assert response.properties == []
