# Copyright (c) Syntropy Systems
"""Pydantic models for Jenkins JSON API responses."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import Field, JsonValue, field_validator

from .base import JenxBaseModel


class CrumbResponse(JenxBaseModel):
    """Response from ``/crumbIssuer/api/json``."""

    field: str = Field(default="", alias="crumbRequestField")
    value: str = Field(default="", alias="crumb")


class Executable(JenxBaseModel):
    """Build started from a queue item."""

    number: int = 0
    url: str = ""


class QueueItemResponse(JenxBaseModel):
    """Response from ``<queue item>/api/json``."""

    cancelled: bool = False
    executable: Optional[Executable] = None
    why: Optional[str] = None


class BuildResponse(JenxBaseModel):
    """Response from ``<build>/api/json``."""

    building: bool = False
    result: Optional[str] = None


class ParamKind(str, Enum):
    """Supported Jenkins parameter definition kinds."""

    CHOICE = "Choice"
    STRING = "String"
    TEXT = "Text"
    BOOLEAN = "Boolean"
    PASSWORD = "Password"


_PARAM_TYPE_KINDS = (
    ("ChoiceParameterDefinition", ParamKind.CHOICE),
    ("StringParameterDefinition", ParamKind.STRING),
    ("TextParameterDefinition", ParamKind.TEXT),
    ("BooleanParameterDefinition", ParamKind.BOOLEAN),
    ("PasswordParameterDefinition", ParamKind.PASSWORD),
)


def map_param_type(type_name: str) -> ParamKind | None:
    """Map a Jenkins parameter definition class name to a kind, if supported."""
    for marker, kind in _PARAM_TYPE_KINDS:
        if marker in type_name:
            return kind
    return None


class DefaultParameterValue(JenxBaseModel):
    """Default value wrapper used by Jenkins parameter definitions."""

    value: JsonValue = None

    def as_text(self) -> str:
        """Render the default the way Jenkins form fields expect it."""
        if self.value is None:
            return ""
        if isinstance(self.value, bool):
            return "true" if self.value else "false"
        return str(self.value)


class ParamDefinitionWire(JenxBaseModel):
    """A parameter definition as returned by the Jenkins API."""

    name: str
    description: Optional[str] = None
    type: str = ""
    choices: list[str] = Field(default_factory=list)
    default_parameter_value: Optional[DefaultParameterValue] = Field(
        default=None, alias="defaultParameterValue"
    )

    @field_validator("choices", mode="before")
    @classmethod
    def _parse_choices(cls, value: object) -> object:
        if value is None:
            return []
        return value


class ParamDefinitionHolder(JenxBaseModel):
    """An ``actions[]`` or ``property[]`` entry carrying parameter definitions."""

    parameter_definitions: list[ParamDefinitionWire] = Field(
        default_factory=list, alias="parameterDefinitions"
    )

    @field_validator("parameter_definitions", mode="before")
    @classmethod
    def _parse_definitions(cls, value: object) -> object:
        if value is None:
            return []
        return value


class JobParamsResponse(JenxBaseModel):
    """Response from ``<job>/api/json`` restricted to parameter definitions."""

    actions: list[ParamDefinitionHolder] = Field(default_factory=list)
    properties: list[ParamDefinitionHolder] = Field(
        default_factory=list, alias="property"
    )

    @field_validator("actions", "properties", mode="before")
    @classmethod
    def _drop_empty(cls, value: object) -> object:
        if value is None:
            return []
        if isinstance(value, list):
            return [entry for entry in value if entry is not None]
        return value


class ParamDef(JenxBaseModel):
    """A job parameter the operator can set."""

    name: str
    kind: ParamKind
    description: str = ""
    choices: list[str] = Field(default_factory=list)
    default: str = ""
