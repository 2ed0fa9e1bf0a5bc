# Copyright (c) Syntropy Systems
"""Exception hierarchy for jenx."""
from __future__ import annotations


class JenxError(Exception):
    """Base class for all jenx errors."""


class ConfigError(JenxError, ValueError):
    """Invalid configuration or plan file."""


class PermutationError(JenxError, ValueError):
    """Parameter selection cannot be expanded into job specifications."""


class CredentialError(JenxError):
    """API token for a Jenkins target could not be resolved."""


class JenkinsClientError(JenxError):
    """Error from Jenkins server communication."""


class QueueItemCancelledError(JenkinsClientError):
    """The queue item was cancelled on the Jenkins side."""

    def __init__(self, queue_url: str) -> None:
        self.queue_url = queue_url
        super().__init__("queue item cancelled")


class RetryExhaustedError(JenkinsClientError):
    """Too many consecutive lookup failures while polling."""

    def __init__(self, operation: str, attempts: int, cause: Exception) -> None:
        self.operation = operation
        self.attempts = attempts
        self.cause = cause
        super().__init__(f"{operation} failed after {attempts} retries: {cause}")


class RunCancelledError(JenxError):
    """The batch cancellation scope was triggered."""

    def __init__(self) -> None:
        super().__init__("run cancelled")
