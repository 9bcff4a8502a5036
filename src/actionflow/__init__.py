"""actionflow.

A single-writer action bus for in-memory state containers:
- every dispatched action reaches all models in registration order
- models reduce state through per-kind reducers and run side effects
- a model can suspend itself and wake on a predicate over the action stream
"""

__version__ = "0.1.0"

from actionflow.actions import Action
from actionflow.bus import ActionBus
from actionflow.config import EngineSettings
from actionflow.errors import (
    ActionFailedError,
    ActionFlowError,
    HandlerConflictError,
    MissingHandlerError,
    ModelAlreadySuspendedError,
    NestedSideEffectError,
    SuspendTimeoutError,
    UnknownActionKindError,
)
from actionflow.model import Model
from actionflow.scheduling import ThreadingScheduler, VirtualScheduler
from actionflow.streams import Subscription
from actionflow.suspension import SuspensionState, WakeStream

__all__ = [
    "__version__",
    "Action",
    "ActionBus",
    "ActionFailedError",
    "ActionFlowError",
    "EngineSettings",
    "HandlerConflictError",
    "MissingHandlerError",
    "Model",
    "ModelAlreadySuspendedError",
    "NestedSideEffectError",
    "Subscription",
    "SuspendTimeoutError",
    "SuspensionState",
    "ThreadingScheduler",
    "UnknownActionKindError",
    "VirtualScheduler",
    "WakeStream",
]
