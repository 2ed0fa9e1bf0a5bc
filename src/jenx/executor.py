# Copyright (c) Syntropy Systems
"""Bounded worker pool that drives job specs through the build protocol."""
from __future__ import annotations

import contextlib
import logging
import queue
import threading
from typing import TYPE_CHECKING, Protocol, Union

from jenx.errors import JenkinsClientError, RunCancelledError
from jenx.models.run import RunState, RunUpdate

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator, Mapping, Sequence

    from jenx.models.run import JobSpec

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 4

# How often the feeder re-checks the scope while waiting for a free worker.
_FEED_TICK = 0.05


class BuildProtocol(Protocol):
    """The three remote operations the executor needs."""

    def trigger_build(
        self,
        job_url: str,
        params: Mapping[str, str],
        scope: threading.Event | None = None,
    ) -> str:
        ...

    def resolve_queue(
        self,
        queue_url: str,
        scope: threading.Event | None = None,
    ) -> tuple[str, int]:
        ...

    def poll_build(
        self,
        build_url: str,
        scope: threading.Event | None = None,
    ) -> str:
        ...


def map_result(result: str) -> RunState:
    """Map a Jenkins build result string to a terminal state."""
    if result == "SUCCESS":
        return RunState.SUCCESS
    if result == "ABORTED":
        return RunState.ABORTED
    return RunState.FAILED


class _Closed:
    """Sentinel marking the end of a RunStream."""


_CLOSED = _Closed()


class RunStream:
    """Single-consumer stream of RunUpdate values from many workers.

    Iterating blocks until the next update and stops once the stream is
    closed, which happens exactly once, after every worker has returned.
    """

    _queue: queue.Queue[Union[RunUpdate, _Closed]]
    _closed: threading.Event

    def __init__(self) -> None:
        self._queue = queue.Queue()
        self._closed = threading.Event()

    def send(self, update: RunUpdate) -> None:
        """Publish an update. Safe to call from several threads."""
        self._queue.put(update)

    def close(self) -> None:
        """Mark the end of the stream."""
        self._queue.put(_CLOSED)

    def get(self, timeout: float | None = None) -> RunUpdate | None:
        """Return the next update, or None once the stream is closed.

        Raises queue.Empty if ``timeout`` elapses first.
        """
        if self._closed.is_set():
            return None
        item = self._queue.get(timeout=timeout)
        if isinstance(item, _Closed):
            self._closed.set()
            return None
        return item

    @property
    def closed(self) -> bool:
        """Whether the consumer has reached the end of the stream."""
        return self._closed.is_set()

    def __iter__(self) -> Iterator[RunUpdate]:
        while True:
            update = self.get()
            if update is None:
                return
            yield update


class RunExecutor:
    """Runs a batch of job specs as Jenkins builds with a concurrency cap.

    Each worker claims one index at a time from a shared work queue and
    emits, in order: QUEUED on claim, QUEUED with the queue URL once
    triggered, RUNNING with the build URL once the queue item resolves, and
    a terminal SUCCESS/FAILED/ABORTED, or ERROR at whichever step failed.
    """

    client: BuildProtocol
    concurrency: int

    def __init__(self, client: BuildProtocol, concurrency: int = DEFAULT_CONCURRENCY) -> None:
        self.client = client
        self.concurrency = max(1, concurrency)

    def run(
        self,
        scope: threading.Event,
        job_url: str,
        specs: Sequence[JobSpec],
    ) -> RunStream:
        """Start the batch and return its update stream.

        Setting ``scope`` cancels the whole batch: workers stop at their next
        claim or polling tick without emitting further updates, and the
        stream closes once they have all returned.
        """
        specs = list(specs)
        stream = RunStream()
        work: queue.Queue[int | None] = queue.Queue(maxsize=1)

        def emit(update: RunUpdate) -> None:
            if scope.is_set():
                raise RunCancelledError
            stream.send(update)

        workers = [
            threading.Thread(
                target=self._worker,
                args=(scope, job_url, specs, work, emit),
                name=f"jenx-worker-{i}",
                daemon=True,
            )
            for i in range(self.concurrency)
        ]
        feeder = threading.Thread(
            target=self._feed,
            args=(scope, len(specs), work),
            name="jenx-feeder",
            daemon=True,
        )

        def close_when_done() -> None:
            feeder.join()
            for worker in workers:
                worker.join()
            stream.close()

        closer = threading.Thread(target=close_when_done, name="jenx-closer", daemon=True)

        for worker in workers:
            worker.start()
        feeder.start()
        closer.start()
        logger.debug(
            "Started %d job(s) on %s with %d worker(s)",
            len(specs),
            job_url,
            self.concurrency,
        )
        return stream

    def _feed(self, scope: threading.Event, count: int, work: queue.Queue[int | None]) -> None:
        """Hand out job indices until done or cancelled, then stop the workers."""
        for index in range(count):
            while not scope.is_set():
                try:
                    work.put(index, timeout=_FEED_TICK)
                    break
                except queue.Full:
                    continue
            if scope.is_set():
                logger.debug("Run cancelled; %d job(s) never claimed", count - index)
                break

        for _ in range(self.concurrency):
            work.put(None)

    def _worker(
        self,
        scope: threading.Event,
        job_url: str,
        specs: list[JobSpec],
        work: queue.Queue[int | None],
        emit: Callable[[RunUpdate], None],
    ) -> None:
        while True:
            index = work.get()
            if index is None:
                return
            if scope.is_set():
                continue

            try:
                self._run_job(scope, job_url, index, specs[index], emit)
            except RunCancelledError:
                logger.debug("Job %d unwound after cancellation", index)
            except Exception as e:
                logger.exception("Job %d failed unexpectedly", index)
                with contextlib.suppress(RunCancelledError):
                    emit(RunUpdate(index=index, state=RunState.ERROR, error=e, done=True))

    def _run_job(
        self,
        scope: threading.Event,
        job_url: str,
        index: int,
        spec: JobSpec,
        emit: Callable[[RunUpdate], None],
    ) -> None:
        emit(RunUpdate(index=index, state=RunState.QUEUED))

        try:
            queue_url = self.client.trigger_build(job_url, spec.params, scope)
        except JenkinsClientError as e:
            emit(RunUpdate(index=index, state=RunState.ERROR, error=e, done=True))
            return
        emit(RunUpdate(index=index, state=RunState.QUEUED, queue_url=queue_url))

        try:
            build_url, build_number = self.client.resolve_queue(queue_url, scope)
        except JenkinsClientError as e:
            emit(
                RunUpdate(
                    index=index,
                    state=RunState.ERROR,
                    queue_url=queue_url,
                    error=e,
                    done=True,
                )
            )
            return
        emit(
            RunUpdate(
                index=index,
                state=RunState.RUNNING,
                queue_url=queue_url,
                build_url=build_url,
                build_number=build_number,
            )
        )

        try:
            result = self.client.poll_build(build_url, scope)
        except JenkinsClientError as e:
            emit(
                RunUpdate(
                    index=index,
                    state=RunState.ERROR,
                    build_url=build_url,
                    build_number=build_number,
                    error=e,
                    done=True,
                )
            )
            return
        emit(
            RunUpdate(
                index=index,
                state=map_result(result),
                build_url=build_url,
                build_number=build_number,
                result=result,
                done=True,
            )
        )
