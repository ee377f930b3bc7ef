from __future__ import annotations


class DeptGuardError(Exception):
    """Base class for errors raised by the authorization core."""


class NotFoundReference(DeptGuardError):
    """A role, overlay, department or menu id does not resolve to a row."""

    def __init__(self, kind: str, ref: object) -> None:
        super().__init__(f"{kind} not found: {ref!r}")
        self.kind = kind
        self.ref = ref


class DataSourceError(DeptGuardError):
    """Role or menu data could not be read from storage."""


class InvalidPattern(DeptGuardError):
    """A regex menu pattern failed to compile. Matching treats it as never matching."""

    def __init__(self, pattern: str, reason: str) -> None:
        super().__init__(f"invalid menu pattern {pattern!r}: {reason}")
        self.pattern = pattern


class Conflict(DeptGuardError):
    """An overlay row changed underneath a write (optimistic lock or racing insert)."""


class PermissionDenied(DeptGuardError):
    """The caller does not meet the threshold for a write, or the write is forbidden outright."""


class OverlayValidationError(DeptGuardError, ValueError):
    """A write payload failed validation."""
