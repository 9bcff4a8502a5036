"""Unit tests for the suspend/wake protocol.

A suspended model must not reduce, must filter the action stream through its
wake function, and must always return to ACTIVE: on wake, on predicate
failure, and on timeout.
"""

from __future__ import annotations

import time

import pytest

from actionflow import (
    Action,
    ActionBus,
    ActionFailedError,
    EngineSettings,
    ModelAlreadySuspendedError,
    SuspendTimeoutError,
    SuspensionState,
    ThreadingScheduler,
    VirtualScheduler,
    WakeStream,
)
from tests.support import CounterModel


class Collector:
    def __init__(self, stream: WakeStream) -> None:
        self.kinds: list[str] = []
        self.errors: list[BaseException] = []
        self.completed = 0
        stream.subscribe(
            on_next=lambda a: self.kinds.append(a.kind),
            on_error=self.errors.append,
            on_complete=self._complete,
        )

    def _complete(self) -> None:
        self.completed += 1


def wait_for_ready(action: Action, sync: dict) -> dict | None:
    return None if action.kind == "READY" else sync


def test_ready_scenario(bus: ActionBus, counter: CounterModel) -> None:
    stream = counter.suspend({"ready": False}, wait_for_ready)
    out = Collector(stream)

    bus.dispatch(Action("OTHER"))
    assert out.kinds == []
    assert not counter.is_active()
    assert counter.suspension.state == SuspensionState.SUSPENDED

    bus.dispatch(Action("READY"))
    assert out.kinds == ["READY"]
    assert out.completed == 1
    assert out.errors == []
    assert counter.is_active()


def test_swallowed_actions_leave_state_untouched(bus: ActionBus, counter: CounterModel) -> None:
    bus.dispatch(Action("INC"))
    before = counter.get_state()
    commits: list[object] = []
    counter.add_listener(commits.append)
    stream = counter.suspend({}, wait_for_ready)

    bus.dispatch(Action("INC"))
    bus.dispatch(Action("INC"))

    assert counter.get_state() is before
    assert commits == []
    assert not stream.done


def test_new_sync_value_forwards_the_action(bus: ActionBus, counter: CounterModel) -> None:
    def collect_parts(action: Action, sync: frozenset) -> frozenset | None:
        if action.kind != "PART":
            return sync
        parts = sync | {action.get("name")}
        return None if len(parts) == 3 else parts

    seen_sync: list[frozenset] = []
    stream = counter.suspend(frozenset(), collect_parts)
    out = Collector(stream)

    bus.dispatch(Action("PART", {"name": "a"}))
    seen_sync.append(counter.suspension.sync_data)
    bus.dispatch(Action("NOISE"))
    bus.dispatch(Action("PART", {"name": "b"}))
    seen_sync.append(counter.suspension.sync_data)

    # Forwarded actions are released only once the model wakes up.
    assert out.kinds == []
    assert seen_sync == [frozenset({"a"}), frozenset({"a", "b"})]
    assert not counter.is_active()

    bus.dispatch(Action("PART", {"name": "c"}))
    assert out.kinds == ["PART", "PART", "PART"]
    assert out.completed == 1
    assert [a.get("name") for a in stream.actions] == ["a", "b", "c"]
    assert counter.suspension.sync_data is None


def test_waking_action_is_not_reduced_but_the_next_one_is(
    bus: ActionBus, counter: CounterModel
) -> None:
    counter.suspend({}, lambda a, s: None if a.kind == "INC" else s)

    bus.dispatch(Action("INC"))
    assert counter.is_active()
    assert counter.get_state().count == 0

    bus.dispatch(Action("INC"))
    assert counter.get_state().count == 1


def test_suspending_twice_fails(counter: CounterModel) -> None:
    counter.suspend({}, wait_for_ready)
    with pytest.raises(ModelAlreadySuspendedError):
        counter.suspend({}, wait_for_ready)


def test_model_can_suspend_again_after_waking(bus: ActionBus, counter: CounterModel) -> None:
    counter.suspend({}, wait_for_ready)
    bus.dispatch(Action("READY"))

    second = counter.suspend({}, wait_for_ready)
    assert not counter.is_active()
    bus.dispatch(Action("READY"))
    assert second.done
    assert counter.is_active()


def test_none_sync_data_is_rejected(counter: CounterModel) -> None:
    with pytest.raises(ValueError):
        counter.suspend(None, wait_for_ready)
    assert counter.is_active()


def test_error_action_fails_the_stream(bus: ActionBus, counter: CounterModel) -> None:
    stream = counter.suspend({}, lambda a, s: None if a.kind == "LOADED" else s)
    out = Collector(stream)
    err = ConnectionError("backend down")

    bus.dispatch(Action.fail("LOADED", err))

    assert out.errors == [err]
    assert out.kinds == []
    assert out.completed == 0
    assert counter.is_active()


def test_error_action_without_exception_payload(bus: ActionBus, counter: CounterModel) -> None:
    stream = counter.suspend({}, lambda a, s: None if a.kind == "LOADED" else s)
    bus.dispatch(Action("LOADED", {"status": 500}, is_error=True))

    assert isinstance(stream.error, ActionFailedError)
    assert stream.error.action.get("status") == 500


def test_held_actions_are_dropped_on_error(bus: ActionBus, counter: CounterModel) -> None:
    def wake(action: Action, sync: list) -> list | None:
        if action.kind == "DONE":
            return None
        return [*sync, action.kind]

    stream = counter.suspend([], wake)
    out = Collector(stream)
    bus.dispatch(Action("STEP"))
    bus.dispatch(Action.fail("DONE", RuntimeError("nope")))

    assert out.kinds == []
    assert len(out.errors) == 1
    assert stream.actions == ()


def test_broken_wake_function_forces_resumption(bus: ActionBus, counter: CounterModel) -> None:
    def broken(action: Action, sync: dict) -> dict | None:
        raise KeyError("missing")

    stream = counter.suspend({}, broken)
    out = Collector(stream)

    bus.dispatch(Action("ANY"))

    assert counter.is_active()
    assert isinstance(out.errors[0], KeyError)
    bus.dispatch(Action("INC"))
    assert counter.get_state().count == 1


def test_timeout_fails_the_stream(
    bus: ActionBus, counter: CounterModel, scheduler: VirtualScheduler
) -> None:
    stream = counter.suspend_with_timeout(50, {}, wait_for_ready)
    out = Collector(stream)

    scheduler.advance(49)
    assert out.errors == []
    assert not counter.is_active()

    scheduler.advance(1)
    assert len(out.errors) == 1
    assert isinstance(out.errors[0], SuspendTimeoutError)
    assert out.errors[0].timeout == 50
    assert counter.is_active()


def test_timeout_discards_the_wake_function(
    bus: ActionBus, counter: CounterModel, scheduler: VirtualScheduler
) -> None:
    calls: list[str] = []

    def wake(action: Action, sync: dict) -> dict | None:
        calls.append(action.kind)
        return sync

    counter.suspend(sync_data={}, wake_fn=wake, timeout=5)
    scheduler.advance(5)
    bus.dispatch(Action("INC"))

    assert calls == []
    assert counter.get_state().count == 1


def test_waking_cancels_the_timer(
    bus: ActionBus, counter: CounterModel, scheduler: VirtualScheduler
) -> None:
    stream = counter.suspend({}, wait_for_ready, timeout=10)
    assert scheduler.pending == 1

    bus.dispatch(Action("READY"))
    assert scheduler.pending == 0

    scheduler.advance(100)
    assert stream.error is None
    assert stream.done


def test_default_timeout_comes_from_settings(scheduler: VirtualScheduler) -> None:
    bus = ActionBus(
        settings=EngineSettings(_env_file=None, default_suspend_timeout=3.0), scheduler=scheduler
    )
    model = CounterModel(bus)

    stream = model.suspend({}, wait_for_ready)
    scheduler.advance(3)

    assert isinstance(stream.error, SuspendTimeoutError)


def test_zero_timeout_waits_forever(counter: CounterModel, scheduler: VirtualScheduler) -> None:
    stream = counter.suspend({}, wait_for_ready, timeout=0)
    assert scheduler.pending == 0
    scheduler.advance(10_000)
    assert not stream.done


def test_late_subscribers_get_the_outcome_replayed(bus: ActionBus, counter: CounterModel) -> None:
    stream = counter.suspend({}, wait_for_ready)
    future = stream.as_future()
    bus.dispatch(Action("READY"))

    out = Collector(stream)
    assert out.kinds == ["READY"]
    assert out.completed == 1
    assert [a.kind for a in future.result(timeout=0)] == ["READY"]


def test_future_carries_the_error(
    counter: CounterModel, scheduler: VirtualScheduler
) -> None:
    future = counter.suspend({}, wait_for_ready, timeout=1).as_future()
    scheduler.advance(1)

    with pytest.raises(SuspendTimeoutError):
        future.result(timeout=0)


def test_timer_thread_timeouts_reach_subscribers(settings: EngineSettings) -> None:
    bus = ActionBus(settings=settings, scheduler=ThreadingScheduler())
    model = CounterModel(bus)

    for _ in range(25):
        stream = model.suspend({}, wait_for_ready, timeout=0.001)
        with pytest.raises(SuspendTimeoutError):
            stream.as_future().result(timeout=2)
        assert model.is_active()


def test_timeout_waits_for_a_subscriber_holding_the_bus_lock(settings: EngineSettings) -> None:
    bus = ActionBus(settings=settings, scheduler=ThreadingScheduler())
    model = CounterModel(bus)

    with bus.lock:
        stream = model.suspend({}, wait_for_ready, timeout=0.01)
        time.sleep(0.05)
        assert not stream.done
        future = stream.as_future()

    with pytest.raises(SuspendTimeoutError):
        future.result(timeout=2)
    assert stream.done


def test_subscriber_may_dispatch_after_wake(bus: ActionBus, counter: CounterModel) -> None:
    stream = counter.suspend({}, wait_for_ready)
    stream.subscribe(on_complete=lambda: bus.dispatch(Action("INC", {"by": 5})))

    bus.dispatch(Action("READY"))

    assert counter.get_state().count == 5


def test_unobserved_errors_are_logged(
    counter: CounterModel, scheduler: VirtualScheduler, caplog: pytest.LogCaptureFixture
) -> None:
    counter.suspend({}, wait_for_ready, timeout=1)
    scheduler.advance(1)

    assert "Suspension ended with an unobserved error" in caplog.text


def test_two_models_coordinate_without_references(bus: ActionBus) -> None:
    """A waiting model resumes once another model's work is reported on the bus."""

    waiter = CounterModel(bus, name="waiter")
    worker = CounterModel(bus, name="worker")
    results: list[int] = []

    def on_start(state, action, dispatch) -> None:
        stream = waiter.suspend({}, lambda a, s: None if a.kind == "WORK_DONE" else s)
        stream.subscribe(on_next=lambda a: results.append(int(a.get("value"))))

    waiter.add_handler("START", None, on_start)

    bus.dispatch(Action("START"))
    bus.dispatch(Action("INC"))
    bus.dispatch(Action("WORK_DONE", {"value": 7}))

    assert results == [7]
    assert waiter.get_state().count == 0
    assert worker.get_state().count == 1
    assert waiter.is_active()
