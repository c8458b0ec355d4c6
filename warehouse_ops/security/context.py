from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass


@dataclass(frozen=True)
class SessionContext:
    """
    Per-request authorization context.

    Attached to `request.state.session` by the global security dependency.
    `permissions` is None when the user has neither explicit permissions nor a matching role.
    """

    ok: bool
    user_id: str | None = None
    role: str | None = None
    permissions: Mapping[str, list[str]] | None = None
    branch: str | None = None
