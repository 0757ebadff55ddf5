from __future__ import annotations

from collections.abc import Sequence


class MergeEngineError(Exception):
    """Base class for errors raised by the merge engine."""


class StoreUnavailableError(MergeEngineError):
    """Raised when a store cannot be reached or read before any mutation happens."""

    def __init__(self, store: str, message: str) -> None:
        self.store = store
        super().__init__(f"{store}: {message}")


class CascadeIncompleteError(MergeEngineError):
    """Raised when deleting a provisional customer whose dependents were not all rewritten."""

    def __init__(
        self,
        authoritative_id: str,
        provisional_id: str,
        remaining: int,
        write_errors: int,
        missing_kinds: Sequence[str] = (),
    ) -> None:
        self.authoritative_id = authoritative_id
        self.provisional_id = provisional_id
        self.remaining = remaining
        self.write_errors = write_errors
        self.missing_kinds = tuple(missing_kinds)
        message = (
            f"refusing to delete {provisional_id} (target {authoritative_id}): "
            f"{remaining} dependent documents still reference it, {write_errors} write errors"
        )
        if self.missing_kinds:
            message += f", no rewrite for {', '.join(self.missing_kinds)}"
        super().__init__(message)


class InvalidConfigError(ValueError):
    """Raised when an environment variable contains an invalid value."""

    def __init__(self, key: str, message: str) -> None:
        self.key = key
        super().__init__(message)

    def __str__(self) -> str:
        return f"{self.args[0]} ({self.key})"


__all__ = [
    "CascadeIncompleteError",
    "InvalidConfigError",
    "MergeEngineError",
    "StoreUnavailableError",
]
