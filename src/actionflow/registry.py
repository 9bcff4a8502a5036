"""Per-model tables of reducers and side-effect handlers keyed by action kind."""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from typing import Generic, TypeVar

from actionflow.actions import Action, Dispatcher, kind_key
from actionflow.draft import DraftReducer, Reducer, produce
from actionflow.errors import HandlerConflictError, MissingHandlerError, UnknownActionKindError

T = TypeVar("T")

Kind = str | Enum
SideEffectHandler = Callable[[T, Action, Dispatcher], None]
ActionPredicate = Callable[[Action], bool]
ActionMatchHook = Callable[[T, Action, bool], None]


class HandlerModifier(Generic[T]):
    """Returned by the registration methods to alias the entry just registered.

    Example:
        registry.add_handler("SAVE", on_save).reduce_also_on("SAVE_AS", "AUTOSAVE")
    """

    def __init__(self, registry: HandlerRegistry[T], kind: str) -> None:
        self._registry = registry
        self._kind = kind

    def reduce_also_on(self, *kinds: Kind) -> HandlerModifier[T]:
        self._registry._alias(self._registry._reducers, "reducer", self._kind, kinds)
        return self

    def side_effect_also_on(self, *kinds: Kind) -> HandlerModifier[T]:
        self._registry._alias(
            self._registry._side_effects, "side-effect producer", self._kind, kinds
        )
        return self


class HandlerRegistry(Generic[T]):
    """Maps action kinds to exactly one reducer and one side-effect handler.

    Reducers are draft reducers (see `actionflow.draft`). When `action_kinds`
    is given, only members of that enum may be registered; anything else
    fails at registration time.
    """

    def __init__(self, action_kinds: type[Enum] | None = None) -> None:
        self._reducers: dict[str, Reducer[T]] = {}
        self._side_effects: dict[str, SideEffectHandler[T]] = {}
        self._allowed: frozenset[str] | None = (
            frozenset(kind_key(m) for m in action_kinds) if action_kinds is not None else None
        )
        self._on_action_match: ActionMatchHook[T] | None = None

    def _key(self, kind: Kind) -> str:
        key = kind_key(kind)
        if self._allowed is not None and key not in self._allowed:
            raise UnknownActionKindError(f"Action kind [{key}] is not a declared kind")
        return key

    def _check_free(self, key: str, reducer: object, side_effect: object) -> None:
        if reducer is not None and key in self._reducers:
            raise HandlerConflictError(key, "Reducer")
        if side_effect is not None and key in self._side_effects:
            raise HandlerConflictError(key, "Side-effect producer")

    def _alias_targets(
        self, table: dict[str, Callable], what: str, kind: str, others: tuple[Kind, ...]
    ) -> list[str]:
        handler = table.get(kind)
        if handler is None:
            raise MissingHandlerError(kind, what)
        keys = [self._key(o) for o in others]
        for key in keys:
            current = table.get(key)
            if current is not None and current is not handler:
                raise HandlerConflictError(key, what.capitalize())
        return keys

    def _alias(
        self, table: dict[str, Callable], what: str, kind: str, others: tuple[Kind, ...]
    ) -> None:
        for key in self._alias_targets(table, what, kind, others):
            table[key] = table[kind]

    def has_reducer(self, kind: Kind) -> bool:
        return kind_key(kind) in self._reducers

    def has_side_effect(self, kind: Kind) -> bool:
        return kind_key(kind) in self._side_effects

    def on_action_match(self, hook: ActionMatchHook[T] | None) -> None:
        """Install a debugging hook called as `hook(state, action, matched)` on every reduce."""

        self._on_action_match = hook

    def add_handler(
        self,
        kind: Kind,
        reducer: DraftReducer[T] | None,
        side_effect: SideEffectHandler[T] | None = None,
    ) -> HandlerModifier[T]:
        key = self._key(kind)
        self._check_free(key, reducer, side_effect)
        if reducer is not None:
            self._reducers[key] = produce(reducer)
        if side_effect is not None:
            self._side_effects[key] = side_effect
        return HandlerModifier(self, key)

    def add_subtype_handler(
        self,
        kind: Kind,
        predicate: ActionPredicate,
        reducer: DraftReducer[T] | None,
        side_effect: SideEffectHandler[T] | None = None,
    ) -> HandlerModifier[T]:
        """Like `add_handler`, but only for actions where `predicate(action)` holds.

        This lets several instances of one model family share an action kind
        while each reacts to its own subset (e.g. by a payload id).
        """

        key = self._key(kind)
        self._check_free(key, reducer, side_effect)
        if reducer is not None:
            produced = produce(reducer)

            def _reduce(state: T, action: Action) -> T:
                return produced(state, action) if predicate(action) else state

            self._reducers[key] = _reduce
        if side_effect is not None:
            handler = side_effect

            def _side_effect(state: T, action: Action, dispatch: Dispatcher) -> None:
                if predicate(action):
                    handler(state, action, dispatch)

            self._side_effects[key] = _side_effect
        return HandlerModifier(self, key)

    def replace_handler(
        self,
        kind: Kind,
        reducer: DraftReducer[T] | None,
        side_effect: SideEffectHandler[T] | None = None,
    ) -> HandlerModifier[T]:
        key = self._key(kind)
        self._reducers.pop(key, None)
        self._side_effects.pop(key, None)
        return self.add_handler(key, reducer, side_effect)

    def extend_handler(
        self,
        kind: Kind,
        reducer: DraftReducer[T] | None,
        side_effect: SideEffectHandler[T] | None = None,
    ) -> HandlerModifier[T]:
        """Layer behaviour on top of whatever is registered for `kind`.

        The existing reducer runs first and `reducer` patches its result; the
        existing side effect runs before `side_effect`.
        """

        key = self._key(kind)
        current_reducer = self._reducers.get(key)
        if reducer is not None:
            produced = produce(reducer)
            if current_reducer is None:
                self._reducers[key] = produced
            else:
                previous = current_reducer

                def _reduce(state: T, action: Action) -> T:
                    return produced(previous(state, action), action)

                self._reducers[key] = _reduce

        current_side_effect = self._side_effects.get(key)
        if side_effect is not None:
            if current_side_effect is None:
                self._side_effects[key] = side_effect
            else:
                first, second = current_side_effect, side_effect

                def _side_effect(state: T, action: Action, dispatch: Dispatcher) -> None:
                    first(state, action, dispatch)
                    second(state, action, dispatch)

                self._side_effects[key] = _side_effect
        return HandlerModifier(self, key)

    def alias_handlers(self, kind: Kind, *other_kinds: Kind) -> HandlerModifier[T]:
        """Route `other_kinds` to the handlers already registered for `kind`."""

        key = kind_key(kind)
        has_reducer = key in self._reducers
        has_side_effect = key in self._side_effects
        if not has_reducer and not has_side_effect:
            raise MissingHandlerError(key, "handler")
        # Both tables are checked before either is written.
        reducer_keys = (
            self._alias_targets(self._reducers, "reducer", key, other_kinds) if has_reducer else []
        )
        side_effect_keys = (
            self._alias_targets(self._side_effects, "side-effect producer", key, other_kinds)
            if has_side_effect
            else []
        )
        for target in reducer_keys:
            self._reducers[target] = self._reducers[key]
        for target in side_effect_keys:
            self._side_effects[target] = self._side_effects[key]
        return HandlerModifier(self, key)

    def reduce(self, state: T, action: Action) -> T:
        match = self._reducers.get(action.kind)
        if self._on_action_match is not None:
            self._on_action_match(state, action, match is not None)
        return match(state, action) if match is not None else state

    def run_side_effects(self, state: T, action: Action, dispatch: Dispatcher) -> None:
        handler = self._side_effects.get(action.kind)
        if handler is not None:
            handler(state, action, dispatch)
