"""Typed contract errors raised by simbench core operations."""

from __future__ import annotations


class CountMatrixError(ValueError):
    """A count matrix violates the input contract.

    `precondition` names the violated rule and `source` the offending input
    (a version label, file path, or ``None`` when unknown).
    """

    def __init__(self, precondition: str, message: str, source: str | None = None):
        self.precondition = str(precondition)
        self.source = source
        where = f" [{source}]" if source else ""
        super().__init__(f"{precondition}{where}: {message}")


class UnknownPropertyError(ValueError):
    def __init__(self, name: str, known: tuple[str, ...]):
        self.name = str(name)
        self.known = tuple(known)
        super().__init__(
            f"Unknown property '{name}'. Expected one of: {', '.join(known)}."
        )


class VersionSetError(ValueError):
    """A dataset version set has a missing/duplicate reference or duplicate labels."""
