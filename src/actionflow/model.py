from __future__ import annotations

import logging
from enum import Enum
from typing import Generic, TypeVar

from actionflow.actions import Action, Dispatcher
from actionflow.bus import ActionBus
from actionflow.draft import DraftReducer
from actionflow.registry import (
    ActionMatchHook,
    ActionPredicate,
    HandlerModifier,
    HandlerRegistry,
    Kind,
    SideEffectHandler,
)
from actionflow.streams import StateListener, Subscription
from actionflow.suspension import SuspensionController, WakeFn, WakeStream

T = TypeVar("T")
U = TypeVar("U")


class Model(Generic[T, U]):
    """A state container driven by the actions broadcast on a bus.

    The model does not decide when its state changes: it only supplies
    reducers and side effects per action kind, and the bus commits the
    results. `T` is the state type; `U` is the sync value used with
    `suspend()`.

    Models should not read each other's state. To coordinate, one model
    suspends and waits for actions the other one dispatches.
    """

    def __init__(
        self,
        bus: ActionBus,
        initial_state: T,
        *,
        name: str | None = None,
        logger: logging.Logger | None = None,
        action_kinds: type[Enum] | None = None,
    ) -> None:
        self.name = name or type(self).__name__
        self.logger = logger or logging.getLogger(f"{__name__}.{self.name}")
        self._bus = bus
        self._handlers: HandlerRegistry[T] = HandlerRegistry(action_kinds)
        self._suspension: SuspensionController[U] = SuspensionController(
            scheduler=bus.scheduler, lock=bus.lock, name=self.name
        )
        self._state, self._subscription = bus.register_model(self, initial_state)

    @property
    def handlers(self) -> HandlerRegistry[T]:
        return self._handlers

    def get_state(self) -> T:
        """Return the last committed state.

        Application logic should not use this to exchange data between models.
        """

        return self._state.value

    def add_listener(self, fn: StateListener[T]) -> Subscription:
        """Call `fn(state)` after every commit until the handle is unsubscribed."""

        return self._state.subscribe(fn)

    def reduce(self, state: T, action: Action) -> T:
        return self._handlers.reduce(state, action)

    def side_effects(self, state: T, action: Action, dispatch: Dispatcher) -> None:
        self._handlers.run_side_effects(state, action, dispatch)

    def on_action_match(self, hook: ActionMatchHook[T] | None) -> None:
        self._handlers.on_action_match(hook)

    def add_handler(
        self,
        kind: Kind,
        reducer: DraftReducer[T] | None,
        side_effect: SideEffectHandler[T] | None = None,
    ) -> HandlerModifier[T]:
        return self._handlers.add_handler(kind, reducer, side_effect)

    def add_subtype_handler(
        self,
        kind: Kind,
        predicate: ActionPredicate,
        reducer: DraftReducer[T] | None,
        side_effect: SideEffectHandler[T] | None = None,
    ) -> HandlerModifier[T]:
        return self._handlers.add_subtype_handler(kind, predicate, reducer, side_effect)

    def replace_handler(
        self,
        kind: Kind,
        reducer: DraftReducer[T] | None,
        side_effect: SideEffectHandler[T] | None = None,
    ) -> HandlerModifier[T]:
        return self._handlers.replace_handler(kind, reducer, side_effect)

    def extend_handler(
        self,
        kind: Kind,
        reducer: DraftReducer[T] | None,
        side_effect: SideEffectHandler[T] | None = None,
    ) -> HandlerModifier[T]:
        return self._handlers.extend_handler(kind, reducer, side_effect)

    def alias_handlers(self, kind: Kind, *other_kinds: Kind) -> HandlerModifier[T]:
        return self._handlers.alias_handlers(kind, *other_kinds)

    def suspend(
        self, sync_data: U, wake_fn: WakeFn[U], timeout: float | None = None
    ) -> WakeStream:
        """Pause the model right after the action currently processed.

        From then on the model neither reduces nor runs side effects; each
        action goes to `wake_fn(action, sync_data)` instead (see
        `actionflow.suspension`). Without an explicit `timeout` the bus
        default applies; 0 waits indefinitely.
        """

        if timeout is None:
            timeout = self._bus.settings.default_suspend_timeout
        return self._suspension.suspend(sync_data, wake_fn, timeout)

    def suspend_with_timeout(
        self, timeout: float, sync_data: U, wake_fn: WakeFn[U]
    ) -> WakeStream:
        return self._suspension.suspend(sync_data, wake_fn, timeout)

    def wake_up(self, action: Action) -> None:
        self._suspension.wake_up(action)

    def is_active(self) -> bool:
        return self._suspension.is_active()

    @property
    def suspension(self) -> SuspensionController[U]:
        """The suspend/wake state machine overlaying this model."""

        return self._suspension

    def unregister(self) -> None:
        self._subscription.unsubscribe()
