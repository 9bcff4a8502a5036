"""Unit tests for the action value type."""

from __future__ import annotations

from enum import Enum

import pytest

from actionflow import Action, ActionFailedError


class Kinds(str, Enum):
    SAVE = "SAVE"


def test_enum_kinds_are_normalised_to_strings() -> None:
    action = Action(Kinds.SAVE)
    assert action.kind == "SAVE"
    assert type(action.kind) is str


def test_payload_is_read_only() -> None:
    source = {"id": 1}
    action = Action("SAVE", source)

    with pytest.raises(TypeError):
        action.payload["id"] = 2  # type: ignore[index]

    source["id"] = 3
    assert action.get("id") == 1


def test_nested_payload_containers_are_frozen() -> None:
    words = ["big", "red"]
    action = Action("TAG", {"words": words, "meta": {"tags": {"a"}}, "pair": (1, [2])})

    words.append("shiny")
    assert action.get("words") == ("big", "red")
    meta = action.get("meta")
    with pytest.raises(TypeError):
        meta["tags"] = set()  # type: ignore[index]
    assert meta["tags"] == frozenset({"a"})  # type: ignore[index]
    assert action.get("pair") == (1, (2,))


def test_actions_are_frozen() -> None:
    action = Action("SAVE")
    with pytest.raises(AttributeError):
        action.kind = "OTHER"  # type: ignore[misc]


def test_as_side_effect_keeps_kind_and_payload() -> None:
    action = Action("SAVE", {"id": 1})
    se = action.as_side_effect()

    assert se.is_side_effect
    assert not se.is_ui_action
    assert se.kind == "SAVE"
    assert se.get("id") == 1
    assert action.is_ui_action


def test_error_actions_expose_their_exception() -> None:
    err = ValueError("boom")
    failed = Action.fail("LOAD_DONE", err)
    assert failed.is_error
    assert failed.to_exception() is err
    assert failed.get("anything", "fallback") == "fallback"

    bare = Action("LOAD_DONE", {"reason": "x"}, is_error=True)
    exc = bare.to_exception()
    assert isinstance(exc, ActionFailedError)
    assert exc.action is bare
