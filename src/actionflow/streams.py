"""Subscriptions and the current-value stream backing every model's state."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Generic, TypeVar

T = TypeVar("T")

StateListener = Callable[[T], None]


class Subscription:
    """A disposable handle returned by every `subscribe`-style call."""

    def __init__(self, teardown: Callable[[], None] | None = None) -> None:
        self._teardown = teardown
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def unsubscribe(self) -> None:
        if self._closed:
            return
        self._closed = True
        teardown, self._teardown = self._teardown, None
        if teardown is not None:
            teardown()


class StateStream(Generic[T]):
    """Holds the last committed state and pushes every new commit to listeners.

    Listener failures are reported through `logger` and never reach the
    model or the remaining listeners.
    """

    def __init__(self, initial: T, *, name: str, logger: logging.Logger) -> None:
        self._value = initial
        self._listeners: list[StateListener[T]] = []
        self._name = name
        self._logger = logger

    @property
    def value(self) -> T:
        return self._value

    def subscribe(self, listener: StateListener[T]) -> Subscription:
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return Subscription(_remove)

    def publish(self, value: T) -> None:
        self._value = value
        for listener in list(self._listeners):
            try:
                listener(value)
            except Exception:
                self._logger.exception("State listener failed", extra={"model": self._name})

    def close(self) -> None:
        self._listeners.clear()
