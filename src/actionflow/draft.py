"""Clone + patch state updates.

Reducers never see the committed state itself: they get a deep copy (a
draft) which they may mutate freely and return `None`, or they may build and
return a fresh value. Either way the previous snapshot, which listeners and
other holders may still alias, is left untouched.
"""

from __future__ import annotations

import copy
import functools
from collections.abc import Callable
from typing import TypeVar

from pydantic import BaseModel

from actionflow.actions import Action

T = TypeVar("T")

DraftReducer = Callable[[T, Action], "T | None"]
Reducer = Callable[[T, Action], T]


def clone_state(state: T) -> T:
    if isinstance(state, BaseModel):
        return state.model_copy(deep=True)  # type: ignore[return-value]
    return copy.deepcopy(state)


def produce(recipe: DraftReducer[T]) -> Reducer[T]:
    """Wrap a draft reducer so it always yields a new state value."""

    @functools.wraps(recipe)
    def reducer(state: T, action: Action) -> T:
        draft = clone_state(state)
        result = recipe(draft, action)
        return draft if result is None else result

    return reducer
