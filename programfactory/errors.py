"""Error taxonomy for programfactory."""

from __future__ import annotations

from typing import Iterable, Optional


class ProgramFactoryError(Exception):
    """Base class for all programfactory errors."""


class SessionNotFound(ProgramFactoryError, LookupError):
    """Raised when a workflow session id is unknown."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class InvalidTransition(ProgramFactoryError):
    """The state machine was asked to move along an edge that does not exist."""

    def __init__(
        self,
        session_id: str,
        current: Optional[str],
        target: Optional[str],
        reason: str = "",
    ) -> None:
        message = f"Session {session_id}: cannot move from {current} to {target}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.session_id = session_id
        self.current = current
        self.target = target


class MissingRequiredData(ProgramFactoryError):
    """A step was invoked before the step data it depends on exists."""

    def __init__(self, session_id: str, keys: Iterable[str]) -> None:
        self.session_id = session_id
        self.keys = list(keys)
        super().__init__(
            f"Session {session_id} is missing required data: {', '.join(self.keys)}"
        )


class GenerationServiceFailure(ProgramFactoryError):
    """The completion service failed or returned content that could not be parsed."""


class TemplateNotFound(ProgramFactoryError, LookupError):
    """No stored template matched.

    Render-time lookups always resolve to a compiled-in default, so this only
    reaches callers of template management operations.
    """
