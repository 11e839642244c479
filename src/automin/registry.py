"""Explicitly constructed registry of behaviors and recovery handlers.

Behaviors are tagged records dispatched through a strategy table instead of a
class hierarchy. Recovery actions stored on states are plain data
(``RecoveryAction``); the registry is what turns them into something that runs.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from automin.log import get_logger

logger = get_logger(__name__)


class BehaviorKind(Enum):
    VALIDATE = "validate"
    TRANSFORM = "transform"
    OPTIMIZE = "optimize"
    COMPOSITE = "composite"


class RecoveryKind(Enum):
    IGNORE = "ignore"
    LOG = "log"
    BEHAVIOR = "behavior"


@dataclass(frozen=True)
class Behavior:
    id: str
    kind: BehaviorKind
    fn: Optional[Callable[[Any], Any]] = None
    children: Tuple[str, ...] = ()


@dataclass(frozen=True)
class RecoveryAction:
    kind: RecoveryKind
    payload: Mapping[str, Any] = field(default_factory=dict)

    def to_object(self) -> dict:
        return {"kind": self.kind.value, "payload": dict(self.payload)}

    @classmethod
    def from_object(cls, obj: Mapping[str, Any]) -> "RecoveryAction":
        return cls(RecoveryKind(obj["kind"]), dict(obj.get("payload") or {}))


RecoveryHandler = Callable[[Any, str, str, RecoveryAction], None]


class BehaviorRegistry:
    def __init__(self):
        self._behaviors: Dict[str, Behavior] = {}
        self._strategies: Dict[BehaviorKind, Callable[[Behavior, Any], Any]] = {
            BehaviorKind.VALIDATE: self._run_validate,
            BehaviorKind.TRANSFORM: self._run_transform,
            BehaviorKind.OPTIMIZE: self._run_optimize,
            BehaviorKind.COMPOSITE: self._run_composite,
        }
        self._recovery_handlers: Dict[RecoveryKind, RecoveryHandler] = {
            RecoveryKind.IGNORE: _ignore,
            RecoveryKind.LOG: _log,
            RecoveryKind.BEHAVIOR: self._run_behavior_recovery,
        }

    def __enter__(self) -> "BehaviorRegistry":
        return self

    def __exit__(self, *exc) -> None:
        self.clear()

    def __contains__(self, behavior_id: str) -> bool:
        return behavior_id in self._behaviors

    def __len__(self) -> int:
        return len(self._behaviors)

    def register(self, behavior: Behavior) -> None:
        if behavior.id in self._behaviors:
            raise KeyError(f"Behavior already registered: {behavior.id}")
        self._behaviors[behavior.id] = behavior

    def unregister(self, behavior_id: str) -> Optional[Behavior]:
        return self._behaviors.pop(behavior_id, None)

    def get(self, behavior_id: str) -> Behavior:
        try:
            return self._behaviors[behavior_id]
        except KeyError:
            raise KeyError(f"Unknown behavior: {behavior_id}") from None

    def clear(self) -> None:
        self._behaviors.clear()

    def run(self, behavior_id: str, value: Any) -> Any:
        behavior = self.get(behavior_id)
        return self._strategies[behavior.kind](behavior, value)

    def set_recovery_handler(self, kind: RecoveryKind, handler: RecoveryHandler) -> None:
        self._recovery_handlers[kind] = handler

    def resolve(self, action: RecoveryAction) -> RecoveryHandler:
        return self._recovery_handlers[action.kind]

    def _run_validate(self, behavior: Behavior, value: Any) -> bool:
        if behavior.fn is None:
            return True
        return bool(behavior.fn(value))

    def _run_transform(self, behavior: Behavior, value: Any) -> Any:
        if behavior.fn is None:
            return value
        return behavior.fn(value)

    def _run_optimize(self, behavior: Behavior, value: Any) -> Any:
        if behavior.fn is not None:
            return behavior.fn(value)
        # without a function, optimizing an automaton means minimizing it
        minimize = getattr(value, "minimize", None)
        if callable(minimize):
            minimize()
        return value

    def _run_composite(self, behavior: Behavior, value: Any) -> Any:
        """Thread ``value`` through the children in order.

        A failing VALIDATE child stops the chain and the composite yields
        False; other children replace the value with their result.
        """
        for child_id in behavior.children:
            child = self.get(child_id)
            result = self._strategies[child.kind](child, value)
            if child.kind is BehaviorKind.VALIDATE:
                if not result:
                    return False
                continue
            value = result
        return value

    def _run_behavior_recovery(self, automaton, state_id, error_code, action):
        self.run(
            action.payload["behavior"],
            {"automaton": automaton, "state_id": state_id, "error_code": error_code},
        )


def _ignore(automaton, state_id, error_code, action):
    pass


def _log(automaton, state_id, error_code, action):
    message = action.payload.get("message", "recovery on undefined input")
    logger.warning("%s (state=%s, input=%s)", message, state_id, error_code)
