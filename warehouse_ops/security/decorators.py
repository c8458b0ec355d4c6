from __future__ import annotations

from collections.abc import Callable


def require_permission(page: str, action: str) -> Callable:
    """
    Attach a "page:action" requirement to a route handler.

    The decorator does not check anything itself; the global security
    dependency reads the metadata after routing and enforces it together
    with the YAML route rules. Stacking several decorators means any-of.
    """

    def decorator(fn: Callable) -> Callable:
        existing = set(getattr(fn, "__security_permissions__", set()))
        setattr(fn, "__security_permissions__", existing | {(page, action)})
        return fn

    return decorator
