from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, replace
from enum import Enum
from types import MappingProxyType
from typing import Protocol

from actionflow.errors import ActionFailedError

Payload = Mapping[str, object] | BaseException | None


def freeze(value: object) -> object:
    """Return a read-only copy of nested dicts, lists and sets.

    Dicts become `MappingProxyType` views over a private copy; lists become
    tuples and sets become frozensets. Other objects are kept as given.
    """

    if isinstance(value, Mapping):
        return MappingProxyType({key: freeze(item) for key, item in value.items()})
    if isinstance(value, list) or type(value) is tuple:
        return tuple(freeze(item) for item in value)
    if isinstance(value, (set, frozenset)):
        return frozenset(freeze(item) for item in value)
    return value


def kind_key(kind: str | Enum) -> str:
    """Normalise an action kind to the string used as a dispatch key."""

    if isinstance(kind, Enum):
        return str(kind.value)
    return kind


@dataclass(frozen=True, slots=True)
class Action:
    """An immutable event flowing through the bus.

    `kind` is the dispatch key. Mapping payloads are frozen all the way down
    (see `freeze`) so handlers cannot alter an action other models will also
    see.
    """

    kind: str
    payload: Payload = None
    is_side_effect: bool = False
    is_error: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", kind_key(self.kind))
        if isinstance(self.payload, Mapping):
            object.__setattr__(self, "payload", freeze(self.payload))

    def __copy__(self) -> Action:
        return self

    def __deepcopy__(self, memo: dict[int, object]) -> Action:
        # Immutable; states holding actions can be cloned into drafts as-is.
        return self

    @property
    def is_ui_action(self) -> bool:
        return not self.is_side_effect

    def as_side_effect(self) -> Action:
        return replace(self, is_side_effect=True)

    def get(self, key: str, default: object = None) -> object:
        """Read a payload field; error and empty payloads yield `default`."""

        if isinstance(self.payload, Mapping):
            return self.payload.get(key, default)
        return default

    def to_exception(self) -> BaseException:
        if isinstance(self.payload, BaseException):
            return self.payload
        return ActionFailedError(self)

    @staticmethod
    def fail(kind: str | Enum, error: BaseException) -> Action:
        return Action(kind=kind, payload=error, is_error=True)


class Dispatcher(Protocol):
    def __call__(self, action: Action) -> None: ...
