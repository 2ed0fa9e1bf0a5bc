# Copyright (c) Syntropy Systems
"""Pydantic models for configured Jenkins targets."""

from __future__ import annotations

from enum import Enum

from pydantic import Field

from .base import JenxBaseModel


class CredentialType(str, Enum):
    """Where a target's API token comes from."""

    ENV = "env"


class Credential(JenxBaseModel):
    """Reference to a target's API token."""

    type: str = CredentialType.ENV.value
    ref: str = ""


class JenkinsTarget(JenxBaseModel):
    """A Jenkins server the operator can trigger builds on."""

    id: str = ""
    name: str = ""
    host: str = ""
    username: str = ""
    credential: Credential = Field(default_factory=Credential)
    insecure_skip_tls_verify: bool = False

    @property
    def label(self) -> str:
        """Human-readable target name."""
        return self.name or self.id or self.host
