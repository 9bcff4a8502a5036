"""Exceptions raised by the action bus, handler registries and suspensions."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from actionflow.actions import Action


class ActionFlowError(Exception):
    """Base class for all actionflow errors."""


class HandlerConflictError(ActionFlowError, ValueError):
    """A reducer or side-effect handler is already registered for the kind."""

    def __init__(self, kind: str, what: str = "Reducer") -> None:
        super().__init__(f"{what} for [{kind}] already defined.")
        self.kind = kind


class MissingHandlerError(ActionFlowError, LookupError):
    def __init__(self, kind: str, what: str = "reducer") -> None:
        super().__init__(f"Cannot modify action handler - no {what} for action {kind}")
        self.kind = kind


class UnknownActionKindError(ActionFlowError, ValueError):
    pass


class NestedSideEffectError(ActionFlowError, RuntimeError):
    """A side effect tried to dispatch while handling a side-effect action."""

    def __init__(self, kind: str) -> None:
        super().__init__(f"Nested side effect not allowed (while handling [{kind}])")
        self.kind = kind


class ModelAlreadySuspendedError(ActionFlowError, RuntimeError):
    def __init__(self) -> None:
        super().__init__("The model is already suspended.")


class SuspendTimeoutError(ActionFlowError, TimeoutError):
    def __init__(self, timeout: float) -> None:
        super().__init__(f"Model suspend timeout ({timeout}s)")
        self.timeout = timeout


class ActionFailedError(ActionFlowError):
    """Raised on a wake stream when the waking action is an error action.

    Only used when the action does not already carry an exception as payload.
    """

    def __init__(self, action: Action) -> None:
        super().__init__(f"Action [{action.kind}] failed")
        self.action = action
