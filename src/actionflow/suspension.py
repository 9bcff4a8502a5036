"""Suspend/wake state machine overlaying a model's normal processing.

While suspended, a model stops reducing. Every action on the bus is passed
to the caller's wake function together with the current sync value:

1) the very same sync object comes back (`is`): keep sleeping, drop the action,
2) a different object comes back: keep sleeping, remember the new value and
   forward the action to the wake stream,
3) `None` comes back: wake up; the action is emitted and the stream completes
   (or fails, for an error action).

Forwarded actions are held by the stream until the episode ends so that a
subscriber reacting to them cannot dispatch into a model that is still asleep.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future
from contextlib import AbstractContextManager, nullcontext
from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

from actionflow.actions import Action
from actionflow.errors import ModelAlreadySuspendedError, SuspendTimeoutError
from actionflow.scheduling import Scheduler, TimerHandle
from actionflow.streams import Subscription

logger = logging.getLogger(__name__)

U = TypeVar("U")

WakeFn = Callable[[Action, U], "U | None"]


class SuspensionState(str, Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"


@dataclass(slots=True)
class _Observer:
    on_next: Callable[[Action], None] | None
    on_error: Callable[[BaseException], None] | None
    on_complete: Callable[[], None] | None


class WakeStream:
    """One-shot channel carrying the actions observed during one suspension.

    The outcome is either completion (held actions, then the waking action)
    or a single error. Subscribing after the outcome replays it. The outcome
    may be settled on a timer thread, so registration and settlement share
    `lock`; the controller passes the bus lock.
    """

    def __init__(self, *, name: str = "model", lock: threading.RLock | None = None) -> None:
        self._name = name
        self._lock = lock if lock is not None else threading.RLock()
        self._held: list[Action] = []
        self._actions: tuple[Action, ...] = ()
        self._error: BaseException | None = None
        self._done = False
        self._observers: list[_Observer] = []

    @property
    def done(self) -> bool:
        return self._done

    @property
    def error(self) -> BaseException | None:
        return self._error

    @property
    def actions(self) -> tuple[Action, ...]:
        """Actions delivered on completion; empty until then or on error."""

        return self._actions

    def subscribe(
        self,
        on_next: Callable[[Action], None] | None = None,
        on_error: Callable[[BaseException], None] | None = None,
        on_complete: Callable[[], None] | None = None,
    ) -> Subscription:
        observer = _Observer(on_next, on_error, on_complete)
        with self._lock:
            settled = self._done
            if not settled:
                self._observers.append(observer)
        if settled:
            self._deliver(observer)
            return Subscription()

        def _remove() -> None:
            with self._lock:
                if observer in self._observers:
                    self._observers.remove(observer)

        return Subscription(_remove)

    def as_future(self) -> Future[tuple[Action, ...]]:
        future: Future[tuple[Action, ...]] = Future()

        def _resolve() -> None:
            future.set_result(self._actions)

        self.subscribe(on_error=future.set_exception, on_complete=_resolve)
        return future

    def _hold(self, action: Action) -> None:
        with self._lock:
            self._held.append(action)

    def _complete(self, action: Action) -> None:
        with self._lock:
            self._held.append(action)
            self._actions = tuple(self._held)
            self._held = []
            observers = self._settle()
        self._notify(observers)

    def _fail(self, error: BaseException) -> None:
        with self._lock:
            self._error = error
            self._held = []
            observers = self._settle()
        if not any(o.on_error is not None for o in observers):
            logger.warning(
                "Suspension ended with an unobserved error",
                extra={"model": self._name, "error": repr(error)},
            )
        self._notify(observers)

    def _settle(self) -> list[_Observer]:
        self._done = True
        observers, self._observers = self._observers, []
        return observers

    def _notify(self, observers: list[_Observer]) -> None:
        for observer in observers:
            self._deliver(observer)

    def _deliver(self, observer: _Observer) -> None:
        try:
            if self._error is not None:
                if observer.on_error is not None:
                    observer.on_error(self._error)
                return
            if observer.on_next is not None:
                for action in self._actions:
                    observer.on_next(action)
            if observer.on_complete is not None:
                observer.on_complete()
        except Exception:
            logger.exception("Wake stream observer failed", extra={"model": self._name})


@dataclass(slots=True)
class _Episode(Generic[U]):
    wake_fn: WakeFn[U]
    sync_data: U
    stream: WakeStream
    timer: TimerHandle | None = None


class SuspensionController(Generic[U]):
    """ACTIVE/SUSPENDED state machine for a single model.

    Timeouts arrive from the scheduler, possibly on another thread; they
    acquire `lock` (the bus lock) so that they never interleave with a
    broadcast in progress.
    """

    def __init__(
        self,
        *,
        scheduler: Scheduler,
        lock: threading.RLock | None = None,
        name: str = "model",
    ) -> None:
        self._scheduler = scheduler
        self._lock = lock
        self._name = name
        self._episode: _Episode[U] | None = None

    @property
    def state(self) -> SuspensionState:
        return SuspensionState.ACTIVE if self._episode is None else SuspensionState.SUSPENDED

    @property
    def sync_data(self) -> U | None:
        return self._episode.sync_data if self._episode is not None else None

    def is_active(self) -> bool:
        return self._episode is None

    def _guard(self) -> AbstractContextManager[object]:
        return self._lock if self._lock is not None else nullcontext()

    def suspend(self, sync_data: U, wake_fn: WakeFn[U], timeout: float = 0.0) -> WakeStream:
        if sync_data is None:
            raise ValueError("sync_data must not be None; use an empty dict if not interested")
        if timeout < 0:
            raise ValueError("timeout must be >= 0")
        with self._guard():
            if self._episode is not None:
                raise ModelAlreadySuspendedError()
            episode: _Episode[U] = _Episode(
                wake_fn=wake_fn,
                sync_data=sync_data,
                stream=WakeStream(name=self._name, lock=self._lock),
            )
            self._episode = episode
            if timeout > 0:
                episode.timer = self._scheduler.call_later(
                    timeout, lambda: self._on_timeout(episode, timeout)
                )
        logger.debug("Model suspended", extra={"model": self._name, "timeout": timeout})
        return episode.stream

    def wake_up(self, action: Action) -> None:
        """Evaluate one bus action against the pending wake function."""

        episode = self._episode
        if episode is None:
            return
        try:
            answer = episode.wake_fn(action, episode.sync_data)
        except Exception as e:
            self._end(episode)
            logger.debug(
                "Wake function failed", extra={"model": self._name, "action": action.kind}
            )
            episode.stream._fail(e)
            return

        if answer is None:
            self._end(episode)
            logger.debug("Model woken up", extra={"model": self._name, "action": action.kind})
            if action.is_error:
                episode.stream._fail(action.to_exception())
            else:
                episode.stream._complete(action)
        elif answer is not episode.sync_data:
            episode.sync_data = answer
            episode.stream._hold(action)

    def _end(self, episode: _Episode[U]) -> None:
        self._episode = None
        if episode.timer is not None:
            episode.timer.cancel()
            episode.timer = None

    def _on_timeout(self, episode: _Episode[U], timeout: float) -> None:
        with self._guard():
            if self._episode is not episode:
                return
            self._end(episode)
            logger.warning(
                "Model suspend timed out", extra={"model": self._name, "timeout": timeout}
            )
            episode.stream._fail(SuspendTimeoutError(timeout))
