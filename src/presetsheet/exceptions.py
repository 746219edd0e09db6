"""Custom exceptions for presetsheet."""

from __future__ import annotations


class PresetSheetError(Exception):
    """Base exception for all presetsheet errors."""

    pass


class ValidationError(PresetSheetError):
    """Raised when sheet rows or a configuration fail validation.

    Every violation found is collected into ``errors`` so the user can fix
    them all in one pass.
    """

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        self.errors = errors or []
        super().__init__(message)

    @classmethod
    def from_errors(cls, summary: str, errors: list[str]) -> ValidationError:
        """Build an error whose message lists every violation."""
        lines = "\n".join(f"- {e}" for e in errors)
        return cls(f"{summary} ({len(errors)} problem(s)):\n{lines}", errors)


class FormatError(PresetSheetError):
    """Raised when an import payload or archive cannot be understood."""

    pass


class UnresolvedReferenceError(PresetSheetError):
    """Raised when a cross-reference between entities cannot be resolved."""

    def __init__(self, kind: str, reference: str) -> None:
        self.kind = kind
        self.reference = reference
        super().__init__(f"Unresolved {kind} reference: {reference!r}")


class TransportError(PresetSheetError):
    """Base exception for transport-related errors."""

    pass


class NetworkError(TransportError):
    """Raised when a remote service cannot be reached."""

    pass


class APIError(TransportError):
    """Raised when a remote service answers with an error."""

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        super().__init__(f"API error {status_code}: {message}")


class BuildError(TransportError):
    """Raised when the build upload fails after all retries."""

    def __init__(self, attempts: int, last_error: Exception | None) -> None:
        self.attempts = attempts
        self.last_error = last_error
        reason = str(last_error) if last_error else "Unknown error"
        super().__init__(
            f"Failed to build the configuration after {attempts} attempt(s). "
            f"Last error: {reason}"
        )
