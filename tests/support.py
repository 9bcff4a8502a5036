"""Small models shared by the unit tests."""

from __future__ import annotations

from dataclasses import dataclass

from actionflow import Action, ActionBus, Model


@dataclass
class Counter:
    count: int = 0


class CounterModel(Model[Counter, object]):
    """Counts INC actions (optionally by `payload["by"]`)."""

    def __init__(self, bus: ActionBus, **kwargs) -> None:
        super().__init__(bus, Counter(), **kwargs)
        self.add_handler("INC", self._increment)

    def _increment(self, state: Counter, action: Action) -> None:
        state.count += int(action.get("by", 1))  # type: ignore[call-overload]
