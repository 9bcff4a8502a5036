"""The central action bus.

Every dispatched action is broadcast synchronously to all registered models
in registration order and then to raw-action subscribers. Actions dispatched
while a broadcast is running (side effects, listeners, wake stream observers)
are queued behind it, which keeps one total order over all actions.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from actionflow.actions import Action, Dispatcher
from actionflow.config import EngineSettings
from actionflow.errors import NestedSideEffectError
from actionflow.scheduling import Scheduler, ThreadingScheduler
from actionflow.streams import StateStream, Subscription

if TYPE_CHECKING:
    from actionflow.model import Model

logger = logging.getLogger(__name__)

T = TypeVar("T")

ActionListener = Callable[[Action], None]


@dataclass(slots=True)
class _Registration(Generic[T]):
    model: Model[T, Any]
    state: StateStream[T]


class ActionBus:
    def __init__(
        self,
        *,
        settings: EngineSettings | None = None,
        scheduler: Scheduler | None = None,
    ) -> None:
        self.settings = settings or EngineSettings()
        self.scheduler: Scheduler = scheduler or ThreadingScheduler()
        self.lock = threading.RLock()
        self._registrations: list[_Registration[Any]] = []
        self._listeners: list[ActionListener] = []
        self._queue: deque[Action] = deque()
        self._broadcasting = False

    def dispatch(self, action: Action) -> None:
        with self.lock:
            self._queue.append(action)
            if self._broadcasting:
                return
            self._broadcasting = True
            try:
                while self._queue:
                    self._broadcast(self._queue.popleft())
            except BaseException:
                if self._queue:
                    logger.warning(
                        "Dropping queued actions after a failed dispatch",
                        extra={"dropped": [a.kind for a in self._queue]},
                    )
                    self._queue.clear()
                raise
            finally:
                self._broadcasting = False

    def register_model(
        self, model: Model[T, Any], initial_state: T
    ) -> tuple[StateStream[T], Subscription]:
        """Wire `model` into the broadcast, seeded with `initial_state`."""

        stream: StateStream[T] = StateStream(initial_state, name=model.name, logger=model.logger)
        registration = _Registration(model=model, state=stream)
        with self.lock:
            self._registrations.append(registration)

        def _detach() -> None:
            with self.lock:
                if registration in self._registrations:
                    self._registrations.remove(registration)
            stream.close()

        return stream, Subscription(_detach)

    def subscribe(self, listener: ActionListener) -> Subscription:
        """Observe every broadcast action after all models have processed it."""

        with self.lock:
            self._listeners.append(listener)

        def _remove() -> None:
            with self.lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return Subscription(_remove)

    def _broadcast(self, action: Action) -> None:
        if self.settings.trace_actions:
            logger.debug(
                "Broadcasting action",
                extra={"kind": action.kind, "side_effect": action.is_side_effect},
            )
        for registration in list(self._registrations):
            self._deliver(registration, action)
        for listener in list(self._listeners):
            try:
                listener(action)
            except Exception:
                logger.exception("Action listener failed", extra={"kind": action.kind})

    def _deliver(self, registration: _Registration[T], action: Action) -> None:
        model = registration.model
        if not model.is_active():
            model.wake_up(action)
            return
        new_state = model.reduce(registration.state.value, action)
        registration.state.publish(new_state)
        model.side_effects(new_state, action, self._side_effect_dispatcher(action))

    def _side_effect_dispatcher(self, cause: Action) -> Dispatcher:
        def dispatch(se_action: Action) -> None:
            if cause.is_side_effect:
                raise NestedSideEffectError(cause.kind)
            self.dispatch(se_action.as_side_effect())

        return dispatch
