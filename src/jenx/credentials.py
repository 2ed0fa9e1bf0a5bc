# Copyright (c) Syntropy Systems
"""API token lookup for Jenkins targets."""
from __future__ import annotations

import os
from typing import TYPE_CHECKING

from jenx.errors import CredentialError
from jenx.models.target import CredentialType

if TYPE_CHECKING:
    from jenx.models.target import JenkinsTarget


def resolve_token(target: JenkinsTarget) -> str:
    """Return the API token for a target.

    Tokens are read from the environment variable named by the target's
    credential ref.
    """
    if target.credential.type != CredentialType.ENV.value:
        msg = f"unsupported credential type: {target.credential.type!r}"
        raise CredentialError(msg)

    ref = target.credential.ref.strip()
    if not ref:
        msg = f"credential ref is required for target {target.label!r}"
        raise CredentialError(msg)

    token = os.environ.get(ref, "")
    if not token:
        msg = f"env credential {ref!r} not found for target {target.label!r}"
        raise CredentialError(msg)
    return token
