"""Error taxonomy for flow execution.

Construction errors are raised synchronously when a context is built with an
empty identity field. Collaborator failures are turned into ``WrappedError``
values at the site they occur. Recording failures only surface as
``RecordingError`` under the escalating recording policy.
"""

from __future__ import annotations


class RedflowError(Exception):
    """Base class for all errors raised by this package."""


class ContextConstructionError(RedflowError, ValueError):
    """A required identity field was empty when building a context."""

    def __init__(self, level: str, field_name: str, reason: str = "must not be empty") -> None:
        self.level = level
        self.field_name = field_name
        super().__init__(f"{level} context: {field_name} {reason}")


class WrappedError(RedflowError):
    """A failure contextualized with a description of what was being attempted.

    ``str(err)`` is ``"<description>: <cause message>"``. The cause stays
    inspectable through ``err.cause`` and ``err.__cause__``.
    """

    def __init__(self, description: str, cause: BaseException) -> None:
        self.description = description
        self.cause = cause
        super().__init__(f"{description}: {cause}")
        self.__cause__ = cause

    def unwrap(self) -> BaseException:
        """Return the innermost cause that is not itself a ``WrappedError``."""
        err: BaseException = self
        while isinstance(err, WrappedError):
            err = err.cause
        return err


class RecordingError(RedflowError):
    """Recording workers kept failing under the escalating policy."""

    def __init__(self, failures: int, last_error: BaseException | None) -> None:
        self.failures = failures
        self.last_error = last_error
        message = f"recording failed {failures} times in a row"
        if last_error is not None:
            message = f"{message}: {last_error}"
        super().__init__(message)


class NothingToLoadError(RedflowError):
    """There is no persisted state to resume from."""

    def __init__(self, message: str = "nothing to load") -> None:
        super().__init__(message)


__all__ = [
    "ContextConstructionError",
    "NothingToLoadError",
    "RecordingError",
    "RedflowError",
    "WrappedError",
]
