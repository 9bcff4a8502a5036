#!/usr/bin/env python3
"""Two models coordinating through suspend/wake.

* `TodoModel` keeps a list of todo items
* `AdjectivesModel` "fetches" adjectives asynchronously (a timer thread
  stands in for a network call)
* when the user asks for adjectives, the todo model suspends until the
  adjectives arrive, then decorates its items with them

Neither model holds a reference to the other; they only exchange actions.
"""

from __future__ import annotations

import argparse
import random
import threading
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum

from actionflow import Action, ActionBus, EngineSettings, Model
from actionflow.actions import Dispatcher


class Kinds(str, Enum):
    ADD_TODO = "ADD_TODO"
    REQUEST_ADJECTIVES = "REQUEST_ADJECTIVES"
    FETCH_ADJECTIVES = "FETCH_ADJECTIVES"
    ADJECTIVES_LOADED = "ADJECTIVES_LOADED"
    APPLY_ADJECTIVES = "APPLY_ADJECTIVES"


@dataclass
class TodoState:
    items: list[str] = field(default_factory=list)
    busy: bool = False


@dataclass
class AdjectivesState:
    loading: bool = False
    words: list[str] = field(default_factory=list)


class AdjectivesModel(Model[AdjectivesState, dict]):
    WORDS = ["shiny", "urgent", "tiny", "boring", "secret"]

    def __init__(self, bus: ActionBus) -> None:
        super().__init__(bus, AdjectivesState(), action_kinds=Kinds)
        self._bus = bus
        self.add_handler(Kinds.FETCH_ADJECTIVES, self._start_loading, self._fetch)
        self.add_handler(Kinds.ADJECTIVES_LOADED, self._loaded)

    def _start_loading(self, state: AdjectivesState, action: Action) -> None:
        state.loading = True

    def _loaded(self, state: AdjectivesState, action: Action) -> None:
        state.loading = False
        state.words = list(action.get("words", []))

    def _fetch(self, state: AdjectivesState, action: Action, dispatch: Dispatcher) -> None:
        # FETCH_ADJECTIVES is itself a side effect, so the answer arrives later
        # as a fresh dispatch from the "network" thread.
        words = random.sample(self.WORDS, k=len(self.WORDS))
        timer = threading.Timer(
            0.1, lambda: self._bus.dispatch(Action(Kinds.ADJECTIVES_LOADED, {"words": words}))
        )
        timer.daemon = True
        timer.start()


class TodoModel(Model[TodoState, dict]):
    def __init__(self, bus: ActionBus, *, done: threading.Event) -> None:
        super().__init__(bus, TodoState(), action_kinds=Kinds)
        self._bus = bus
        self._done = done
        self.add_handler(Kinds.ADD_TODO, self._add)
        self.add_handler(Kinds.REQUEST_ADJECTIVES, self._set_busy, self._wait_for_adjectives)
        self.add_handler(Kinds.APPLY_ADJECTIVES, self._apply)

    def _add(self, state: TodoState, action: Action) -> None:
        state.items.append(str(action.get("text", "")))

    def _set_busy(self, state: TodoState, action: Action) -> None:
        state.busy = True

    def _apply(self, state: TodoState, action: Action) -> None:
        words = list(action.get("words", []))
        state.items = [f"{w} {item}" for w, item in zip(words, state.items)] + state.items[
            len(words) :
        ]
        state.busy = False

    def _wait_for_adjectives(self, state: TodoState, action: Action, dispatch: Dispatcher) -> None:
        stream = self.suspend(
            {},
            lambda a, sync: None if a.kind == Kinds.ADJECTIVES_LOADED else sync,
            timeout=2.0,
        )

        def _on_wake(wake_action: Action) -> None:
            self._bus.dispatch(Action(Kinds.APPLY_ADJECTIVES, {"words": wake_action.get("words")}))

        def _on_error(err: BaseException) -> None:
            print(f"Gave up waiting: {err}")
            self._done.set()

        stream.subscribe(on_next=_on_wake, on_error=_on_error, on_complete=self._done.set)
        dispatch(Action(Kinds.FETCH_ADJECTIVES))


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Suspend/wake coordination example.")
    parser.add_argument("todos", nargs="*", default=["write docs", "fix tests", "ship it"])
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    settings = EngineSettings()
    settings.setup_logging()

    bus = ActionBus(settings=settings)
    done = threading.Event()
    todos = TodoModel(bus, done=done)
    AdjectivesModel(bus)

    todos.add_listener(lambda s: print(f"busy={s.busy} items={s.items}"))

    for text in args.todos:
        bus.dispatch(Action(Kinds.ADD_TODO, {"text": text}))
    bus.dispatch(Action(Kinds.REQUEST_ADJECTIVES))

    done.wait(timeout=5.0)
    # The waking broadcast still holds the bus lock while APPLY_ADJECTIVES drains.
    with bus.lock:
        print(f"Final: {todos.get_state().items}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
