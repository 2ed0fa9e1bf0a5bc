# Copyright (c) Syntropy Systems
"""Shared Pydantic model helpers for jenx."""

from __future__ import annotations

from typing import ClassVar

from pydantic import BaseModel, ConfigDict


class JenxBaseModel(BaseModel):
    """Base model with shared config for jenx schemas."""

    model_config: ClassVar[ConfigDict] = ConfigDict(
        extra="ignore",
        populate_by_name=True,
    )
