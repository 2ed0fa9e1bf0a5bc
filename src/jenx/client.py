# Copyright (c) Syntropy Systems
"""HTTP client for the Jenkins remote build protocol."""
from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, TypeVar

import httpx
from pydantic import BaseModel, ValidationError
from typing_extensions import Self

from jenx.credentials import resolve_token
from jenx.errors import (
    JenkinsClientError,
    QueueItemCancelledError,
    RetryExhaustedError,
    RunCancelledError,
)
from jenx.models.api import (
    BuildResponse,
    CrumbResponse,
    JobParamsResponse,
    ParamDef,
    QueueItemResponse,
    map_param_type,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping
    from types import TracebackType

    from jenx.config import JenxConfig
    from jenx.models.target import JenkinsTarget

logger = logging.getLogger(__name__)

ResponseModel = TypeVar("ResponseModel", bound=BaseModel)
PollResult = TypeVar("PollResult")

# Consecutive lookup failures tolerated while polling; one more is fatal.
MAX_CONSECUTIVE_FAILURES = 5

UNKNOWN_RESULT = "UNKNOWN"

_PARAM_FIELDS = "name,description,type,choices,defaultParameterValue[value]"
JOB_PARAMS_TREE = (
    f"actions[parameterDefinitions[{_PARAM_FIELDS}]],"
    f"property[parameterDefinitions[{_PARAM_FIELDS}]]"
)


def _api_url(url: str) -> str:
    return url.rstrip("/") + "/api/json"


class JenkinsClient:
    """Client for triggering and tracking builds on one Jenkins target.

    Every call takes an optional cancellation scope (a ``threading.Event``);
    polling loops check it on every tick. Each HTTP request also carries the
    client-wide timeout.
    """

    target: JenkinsTarget
    timeout: float
    queue_poll_interval: float
    build_poll_interval: float
    _client: httpx.Client
    _crumb: CrumbResponse | None
    _crumb_checked: bool
    _crumb_lock: threading.Lock

    def __init__(  # noqa: PLR0913
        self,
        target: JenkinsTarget,
        token: str,
        timeout: float = 30.0,
        *,
        queue_poll_interval: float = 2.0,
        build_poll_interval: float = 3.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            target: Jenkins server to talk to
            token: API token for the target's username
            timeout: Request timeout in seconds
            queue_poll_interval: Seconds between queue item lookups
            build_poll_interval: Seconds between build status lookups
            transport: Optional httpx transport (used by tests)

        """
        self.target = target
        self.timeout = timeout
        self.queue_poll_interval = queue_poll_interval
        self.build_poll_interval = build_poll_interval
        self._client = httpx.Client(
            timeout=timeout,
            auth=(target.username, token),
            verify=not target.insecure_skip_tls_verify,
            transport=transport,
        )
        self._crumb = None
        self._crumb_checked = False
        self._crumb_lock = threading.Lock()

    @property
    def host(self) -> str:
        """Base URL of the Jenkins server, without trailing slash."""
        return self.target.host.rstrip("/")

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> Self:
        """Enter the client context and return self."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Exit the client context and close the HTTP client."""
        self.close()

    def _request(
        self,
        method: str,
        url: str,
        *,
        data: Mapping[str, str] | None = None,
        params: Mapping[str, str] | None = None,
        headers: Mapping[str, str] | None = None,
        allow_status: tuple[int, ...] = (),
    ) -> httpx.Response:
        """Make an HTTP request, raising JenkinsClientError on failure."""
        try:
            response = self._client.request(
                method,
                url,
                data=data,
                params=params,
                headers=headers,
            )
        except httpx.RequestError as e:
            msg = f"{method} {url} failed: {e}"
            raise JenkinsClientError(msg) from e

        if response.status_code in allow_status:
            return response
        if not response.is_success:
            msg = f"{method} {url} failed ({response.status_code}): {response.text}"
            raise JenkinsClientError(msg)
        return response

    def _get_json(
        self,
        url: str,
        response_model: type[ResponseModel],
        params: Mapping[str, str] | None = None,
    ) -> ResponseModel:
        response = self._request("GET", url, params=params)
        try:
            return response_model.model_validate(response.json())
        except (ValidationError, ValueError) as e:
            msg = f"decode response from {url}: {e}"
            raise JenkinsClientError(msg) from e

    # --- Crumb handshake ---

    def ensure_crumb(self) -> None:
        """Fetch the CSRF crumb once per client.

        Concurrent callers wait for the first fetch instead of repeating it.
        A 404 from the crumb issuer means CSRF protection is disabled.
        """
        with self._crumb_lock:
            if self._crumb_checked:
                return

            url = _api_url(f"{self.host}/crumbIssuer")
            response = self._request("GET", url, allow_status=(404,))
            if response.status_code == 404:
                logger.debug("Crumb issuer not found on %s; CSRF disabled", self.host)
                self._crumb_checked = True
                return

            try:
                crumb = CrumbResponse.model_validate(response.json())
            except (ValidationError, ValueError) as e:
                msg = f"decode crumb response: {e}"
                raise JenkinsClientError(msg) from e

            if crumb.field and crumb.value:
                self._crumb = crumb
                logger.debug("Acquired crumb header %s from %s", crumb.field, self.host)
            self._crumb_checked = True

    def crumb_header(self) -> dict[str, str]:
        """Return the crumb as a header mapping (empty if none)."""
        with self._crumb_lock:
            if self._crumb is None:
                return {}
            return {self._crumb.field: self._crumb.value}

    # --- Remote build protocol ---

    def trigger_build(
        self,
        job_url: str,
        params: Mapping[str, str],
        scope: threading.Event | None = None,
    ) -> str:
        """Queue a build of a job with the given parameters.

        Not retried: a repeated trigger could queue the build twice.

        Returns:
            URL of the queue item created for the build

        """
        if scope is not None and scope.is_set():
            raise RunCancelledError

        self.ensure_crumb()
        headers = {
            "Content-Type": "application/x-www-form-urlencoded",
            **self.crumb_header(),
        }
        trigger_url = job_url.rstrip("/") + "/buildWithParameters"
        response = self._request(
            "POST",
            trigger_url,
            data=dict(params),
            headers=headers,
        )

        queue_url = response.headers.get("Location", "")
        if not queue_url:
            msg = "trigger succeeded but queue location missing"
            raise JenkinsClientError(msg)
        return queue_url

    def resolve_queue(
        self,
        queue_url: str,
        scope: threading.Event | None = None,
    ) -> tuple[str, int]:
        """Wait for a queue item to turn into a build.

        Returns:
            (build URL, build number)

        Raises:
            QueueItemCancelledError: If the item was cancelled on Jenkins
            RetryExhaustedError: If lookups keep failing
            RunCancelledError: If the scope is cancelled first

        """

        def check(item: QueueItemResponse) -> tuple[str, int] | None:
            if item.cancelled:
                raise QueueItemCancelledError(queue_url)
            if item.executable is not None and item.executable.url:
                return item.executable.url, item.executable.number
            if item.why:
                logger.debug("Queue item %s waiting: %s", queue_url, item.why)
            return None

        return self._poll(
            "resolve queue",
            _api_url(queue_url),
            QueueItemResponse,
            self.queue_poll_interval,
            scope,
            check,
        )

    def poll_build(
        self,
        build_url: str,
        scope: threading.Event | None = None,
    ) -> str:
        """Wait for a build to finish.

        Returns:
            The build result string; ``UNKNOWN`` if Jenkins reports none

        """

        def check(build: BuildResponse) -> str | None:
            if build.building:
                return None
            return build.result or UNKNOWN_RESULT

        return self._poll(
            "poll build",
            _api_url(build_url),
            BuildResponse,
            self.build_poll_interval,
            scope,
            check,
        )

    def _poll(  # noqa: PLR0913
        self,
        operation: str,
        url: str,
        response_model: type[ResponseModel],
        interval: float,
        scope: threading.Event | None,
        check: Callable[[ResponseModel], PollResult | None],
    ) -> PollResult:
        """Fetch ``url`` every ``interval`` seconds until ``check`` returns a value.

        Lookup failures are swallowed up to MAX_CONSECUTIVE_FAILURES in a row;
        any successful lookup resets the count.
        """
        if scope is None:
            scope = threading.Event()

        failures = 0
        while True:
            if scope.wait(timeout=interval):
                raise RunCancelledError
            try:
                response = self._get_json(url, response_model)
            except JenkinsClientError as e:
                failures += 1
                if failures > MAX_CONSECUTIVE_FAILURES:
                    logger.warning("%s gave up on %s after %d failures", operation, url, failures)
                    raise RetryExhaustedError(operation, failures, e) from e
                logger.debug("%s: lookup %d failed: %s", operation, failures, e)
                continue

            failures = 0
            result = check(response)
            if result is not None:
                return result

    # --- Job metadata ---

    def get_job_params(self, job_url: str) -> list[ParamDef]:
        """Get a job's parameter definitions.

        Unsupported parameter kinds are skipped and duplicates (by name)
        keep their first occurrence.
        """
        response = self._get_json(
            _api_url(job_url),
            JobParamsResponse,
            params={"tree": JOB_PARAMS_TREE},
        )

        defs: list[ParamDef] = []
        seen: set[str] = set()
        for holder in [*response.actions, *response.properties]:
            for wire in holder.parameter_definitions:
                kind = map_param_type(wire.type)
                if kind is None or wire.name in seen:
                    continue
                seen.add(wire.name)
                default = wire.default_parameter_value
                defs.append(
                    ParamDef(
                        name=wire.name,
                        kind=kind,
                        description=wire.description or "",
                        choices=list(wire.choices),
                        default=default.as_text() if default is not None else "",
                    )
                )
        return defs


def get_client(config: JenxConfig, target_id: str | None = None) -> JenkinsClient:
    """Create a JenkinsClient for a configured target.

    Args:
        config: Loaded jenx configuration
        target_id: Target to connect to (optional when only one is configured)

    Returns:
        JenkinsClient instance using the config's timeout and poll intervals

    """
    target = config.find_target(target_id)
    token = resolve_token(target)
    return JenkinsClient(
        target,
        token,
        config.timeout,
        queue_poll_interval=config.queue_poll_interval,
        build_poll_interval=config.build_poll_interval,
    )
