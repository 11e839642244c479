import copy
from collections import deque
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from automin.config import MinimizerConfig
from automin.errors import (
    MalformedAutomatonError,
    NoCurrentStateError,
    OperationOnUnknownStateError,
    StateLimitExceededError,
)
from automin.log import get_logger
from automin.merger import StateMerger
from automin.metrics import MetricsReporter
from automin.partition import EquivalencePartitioner, check_targets, classifier_from_name
from automin.registry import BehaviorRegistry, RecoveryAction

logger = get_logger(__name__)

Listener = Callable[[str, Dict[str, Any]], None]


class Lifecycle(Enum):
    EMPTY = "empty"
    READY = "ready"
    MINIMIZED = "minimized"


class State:
    def __init__(
        self,
        id: str,
        is_accepting: bool = False,
        metadata: Dict[str, Any] = None,
        rules: List[str] = None,
        recovery: Dict[str, RecoveryAction] = None,
    ):
        self.id = id
        self.is_accepting = is_accepting
        self.metadata = dict(metadata or {})
        self.rules = list(rules or [])
        self.recovery = dict(recovery or {})
        self.equivalence_class: Optional[int] = None

    def __repr__(self) -> str:
        flag = "*" if self.is_accepting else ""
        return f"State({self.id!r}{flag}, class={self.equivalence_class})"

    def copy(self) -> "State":
        # rule ids and recovery actions belong to the rule system: shared
        clone = State(
            self.id,
            self.is_accepting,
            copy.deepcopy(self.metadata),
            self.rules,
            self.recovery,
        )
        clone.equivalence_class = self.equivalence_class
        return clone

    def to_object(self) -> dict:
        return {
            "is_accepting": self.is_accepting,
            "metadata": copy.deepcopy(self.metadata),
            "rules": list(self.rules),
            "recovery": {code: a.to_object() for code, a in self.recovery.items()},
            "equivalence_class": self.equivalence_class,
        }


class Automaton:
    """Mutable state/transition graph with a permissive runtime.

    ``states`` keeps insertion order, which is observable: it decides the
    representative of every merged equivalence class. ``transitions`` maps
    source id -> symbol -> target id.
    """

    def __init__(
        self,
        name: str = "automaton",
        registry: Optional[BehaviorRegistry] = None,
        config: Optional[MinimizerConfig] = None,
    ):
        self.name = name
        self.registry = registry
        self.config = config or MinimizerConfig()
        self.states: Dict[str, State] = {}
        self.transitions: Dict[str, Dict[str, str]] = {}
        self.initial_state: Optional[str] = None
        self.current_state: Optional[str] = None
        self.lifecycle = Lifecycle.EMPTY
        self.last_metrics = None
        self._history: List[str] = []
        self._listeners: List[Listener] = []
        self._classes: Dict[int, List[str]] = {}

    def __len__(self) -> int:
        return len(self.states)

    def __contains__(self, state_id: str) -> bool:
        return state_id in self.states

    def __repr__(self) -> str:
        return (
            f"Automaton({self.name!r}, states={len(self.states)}, "
            f"transitions={self.transition_count()}, {self.lifecycle.value})"
        )

    # -- construction -----------------------------------------------------

    def add_state(
        self,
        state_id: str,
        is_accepting: bool = False,
        metadata: Dict[str, Any] = None,
        initial: bool = False,
    ) -> State:
        if state_id in self.states:
            raise MalformedAutomatonError(f"Duplicate state id: {state_id}", state_id)
        first = not self.states
        state = State(state_id, is_accepting, metadata)
        self.states[state_id] = state
        self.transitions[state_id] = {}
        # only the very first state is implicitly initial
        if initial or first:
            self.initial_state = state_id
            if self.current_state is None or not self._history:
                self.current_state = state_id
        self._touch()
        return state

    def remove_state(self, state_id: str) -> None:
        self._require(state_id)
        del self.states[state_id]
        self.transitions.pop(state_id, None)
        for row in self.transitions.values():
            for symbol in [sym for sym, tgt in row.items() if tgt == state_id]:
                del row[symbol]
        if self.current_state == state_id:
            self.current_state = None
        if self.initial_state == state_id:
            self.initial_state = None
        if not self.states:
            self.lifecycle = Lifecycle.EMPTY
            self._history = []
            self._classes = {}
        else:
            self._touch()

    def set_initial(self, state_id: str) -> None:
        self._require(state_id)
        self.initial_state = state_id

    def add_transition(self, source: str, symbol: str, target: str) -> None:
        self._require(source)
        if target not in self.states:
            raise MalformedAutomatonError(
                f"Transition {source} --{symbol}--> {target} targets an unknown state",
                target,
            )
        self.transitions[source][symbol] = target
        self._touch()

    def remove_transition(self, source: str, symbol: str) -> bool:
        self._require(source)
        removed = self.transitions[source].pop(symbol, None) is not None
        if removed:
            self._touch()
        return removed

    def attach_rule(self, state_id: str, rule_id: str) -> None:
        state = self.get_state(state_id)
        if rule_id not in state.rules:
            state.rules.append(rule_id)
            self._touch()

    def detach_rule(self, state_id: str, rule_id: str) -> bool:
        state = self.get_state(state_id)
        if rule_id not in state.rules:
            return False
        state.rules.remove(rule_id)
        self._touch()
        return True

    def rules_for(self, state_id: str) -> List[str]:
        return list(self.get_state(state_id).rules)

    def attach_recovery(self, state_id: str, error_code: str, action: RecoveryAction) -> None:
        self.get_state(state_id).recovery[error_code] = action
        self._touch()

    def detach_recovery(self, state_id: str, error_code: str) -> bool:
        state = self.get_state(state_id)
        if state.recovery.pop(error_code, None) is None:
            return False
        self._touch()
        return True

    def recovery_for(self, state_id: str) -> Dict[str, RecoveryAction]:
        return dict(self.get_state(state_id).recovery)

    def set_metadata(self, state_id: str, key: str, value: Any) -> None:
        self.get_state(state_id).metadata[key] = value

    def get_metadata(self, state_id: str, key: str, default: Any = None) -> Any:
        return self.get_state(state_id).metadata.get(key, default)

    # -- inspection -------------------------------------------------------

    def get_state(self, state_id: str) -> State:
        self._require(state_id)
        return self.states[state_id]

    def target(self, source: str, symbol: str) -> Optional[str]:
        return self.transitions.get(source, {}).get(symbol)

    def iter_transitions(self) -> Iterator[Tuple[str, str, str]]:
        for source, row in self.transitions.items():
            for symbol, target in row.items():
                yield source, symbol, target

    def transition_count(self) -> int:
        return sum(len(row) for row in self.transitions.values())

    def alphabet(self) -> List[str]:
        return sorted({symbol for row in self.transitions.values() for symbol in row})

    def reachable_states(self) -> List[str]:
        if self.initial_state is None:
            return []
        seen = {self.initial_state}
        queue = deque([self.initial_state])
        while queue:
            s = queue.popleft()
            for target in self.transitions.get(s, {}).values():
                if target not in seen:
                    seen.add(target)
                    queue.append(target)
        return [s for s in self.states if s in seen]

    def equivalence_classes(self) -> Dict[int, List[str]]:
        """Class id -> member ids (pre-merge) from the last minimize()."""
        return {cid: list(members) for cid, members in self._classes.items()}

    def states_in_class(self, class_id: int) -> List[str]:
        return list(self._classes.get(class_id, []))

    def history(self) -> List[str]:
        return list(self._history)

    # -- runtime ----------------------------------------------------------

    def reset(self) -> str:
        if self.initial_state is None:
            raise NoCurrentStateError("automaton has no initial state")
        self.current_state = self.initial_state
        self._history = [self.initial_state]
        self._notify("reset", {"initial_state": self.initial_state})
        return self.current_state

    def can_transition(self, symbol: str) -> bool:
        if self.current_state is None:
            return False
        return symbol in self.transitions.get(self.current_state, {})

    def transition(self, symbol: str) -> str:
        """Move on ``symbol`` and return the new current state.

        An undefined input leaves the automaton where it is and returns the
        unchanged current state; a recovery action attached to the current
        state under that symbol is run first, if a registry is available.
        """
        if self.current_state is None:
            raise NoCurrentStateError()
        source = self.current_state
        target = self.transitions.get(source, {}).get(symbol)
        if target is None:
            self._recover(source, symbol)
            return self.current_state
        self.current_state = target
        self._history.append(target)
        self._notify("transition", {"symbol": symbol, "from": source, "to": target})
        return target

    def run(self, symbols) -> str:
        state = self.current_state
        for symbol in symbols:
            state = self.transition(symbol)
        if state is None:
            raise NoCurrentStateError()
        return state

    def add_listener(self, listener: Listener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # -- lifecycle --------------------------------------------------------

    def invalidate(self) -> None:
        self.states = {}
        self.transitions = {}
        self.initial_state = None
        self.current_state = None
        self.lifecycle = Lifecycle.EMPTY
        self.last_metrics = None
        self._history = []
        self._classes = {}
        self._notify("invalidated", {})

    def clone(self) -> "Automaton":
        other = Automaton(self.name, self.registry, self.config)
        other.states = {sid: state.copy() for sid, state in self.states.items()}
        other.transitions = {src: dict(row) for src, row in self.transitions.items()}
        other.initial_state = self.initial_state
        other.current_state = self.current_state
        other.lifecycle = self.lifecycle
        other.last_metrics = self.last_metrics
        other._history = list(self._history)
        other._classes = {cid: list(m) for cid, m in self._classes.items()}
        return other

    def minimize(self, classifier: Callable[[State], Any] = None, config: MinimizerConfig = None):
        """Collapse equivalent states in place and return the metrics.

        Without an explicit ``classifier`` the configured one is used
        (accepting/non-accepting by default).
        """
        config = config or self.config
        if config.max_states and len(self.states) > config.max_states:
            raise StateLimitExceededError(len(self.states), config.max_states)
        if classifier is None:
            classifier = classifier_from_name(config.classifier)

        check_targets(self)
        reporter = MetricsReporter()
        reporter.start(self)
        if config.drop_unreachable and self.initial_state is not None:
            reachable = set(self.reachable_states())
            for state_id in [s for s in self.states if s not in reachable]:
                logger.debug("Dropping unreachable state %s", state_id)
                self.remove_state(state_id)

        partitioner = EquivalencePartitioner(config.strategy)
        order = list(self.states)
        mapping = partitioner.partition(self, classifier)
        StateMerger().merge(self, mapping)

        classes: Dict[int, List[str]] = {}
        for state_id in order:
            classes.setdefault(mapping[state_id], []).append(state_id)
        self._classes = classes
        if self.states:
            self.lifecycle = Lifecycle.MINIMIZED

        metrics = reporter.finish(self, mapping, partitioner.iterations, config.strategy)
        self.last_metrics = metrics
        logger.info(
            "Minimized %s: %d -> %d states in %.3fms",
            self.name,
            metrics.original_state_count,
            metrics.minimized_state_count,
            metrics.elapsed_seconds * 1000,
        )
        self._notify("minimized", metrics.to_dict())
        return metrics

    # -- serialization ----------------------------------------------------

    def to_object(self) -> dict:
        return {
            "name": self.name,
            "initial_state": self.initial_state,
            "current_state": self.current_state,
            "lifecycle": self.lifecycle.value,
            "states": {sid: state.to_object() for sid, state in self.states.items()},
            "transitions": {
                src: dict(row) for src, row in self.transitions.items() if row
            },
            "history": list(self._history),
        }

    @classmethod
    def from_object(
        cls,
        obj: Dict[str, Any],
        registry: Optional[BehaviorRegistry] = None,
        config: Optional[MinimizerConfig] = None,
    ) -> "Automaton":
        if not isinstance(obj, dict) or not isinstance(obj.get("states"), dict):
            raise MalformedAutomatonError("Object has no 'states' mapping")
        a = cls(obj.get("name", "automaton"), registry, config)
        try:
            for sid, data in obj["states"].items():
                data = data or {}
                state = a.add_state(sid, bool(data.get("is_accepting", False)), data.get("metadata"))
                state.rules = list(data.get("rules", []))
                state.recovery = {
                    code: RecoveryAction.from_object(action)
                    for code, action in (data.get("recovery") or {}).items()
                }
                state.equivalence_class = data.get("equivalence_class")
            for src, row in (obj.get("transitions") or {}).items():
                for symbol, target in row.items():
                    a.add_transition(src, symbol, target)
        except OperationOnUnknownStateError as e:
            raise MalformedAutomatonError(str(e), e.state_id) from e
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise MalformedAutomatonError(f"Malformed automaton object: {e}") from e

        for key in ("initial_state", "current_state"):
            value = obj.get(key)
            if value is not None and value not in a.states:
                raise MalformedAutomatonError(f"{key} names an unknown state: {value}", value)
        if a.states:
            a.initial_state = obj.get("initial_state")
            a.current_state = obj.get("current_state")
        a._history = [s for s in obj.get("history", []) if s in a.states]
        if obj.get("lifecycle") == Lifecycle.MINIMIZED.value and a.states:
            a.lifecycle = Lifecycle.MINIMIZED
        return a

    # -- internals --------------------------------------------------------

    def _require(self, state_id: str) -> None:
        if state_id not in self.states:
            raise OperationOnUnknownStateError(f"Unknown state: {state_id}", state_id)

    def _touch(self) -> None:
        if self.lifecycle is Lifecycle.MINIMIZED:
            self._classes = {}
            for state in self.states.values():
                state.equivalence_class = None
        self.lifecycle = Lifecycle.READY

    def _recover(self, state_id: str, symbol: str) -> None:
        action = self.states[state_id].recovery.get(symbol)
        if action is None or self.registry is None:
            logger.debug("Ignoring undefined input %r in state %s", symbol, state_id)
            return
        snapshot = self._snapshot()
        try:
            handler = self.registry.resolve(action)
            handler(self, state_id, symbol, action)
        except Exception:
            logger.exception(
                "Recovery action %s failed in state %s on input %r",
                action.kind.value,
                state_id,
                symbol,
            )
            self._restore(snapshot)

    def _snapshot(self) -> dict:
        return {
            "tables": (self.states, self.transitions),
            "states": [
                (
                    sid,
                    state,
                    state.is_accepting,
                    (state.metadata, copy.deepcopy(state.metadata)),
                    (state.rules, list(state.rules)),
                    (state.recovery, dict(state.recovery)),
                    state.equivalence_class,
                )
                for sid, state in self.states.items()
            ],
            "transitions": [(src, row, dict(row)) for src, row in self.transitions.items()],
            "initial_state": self.initial_state,
            "current_state": self.current_state,
            "lifecycle": self.lifecycle,
            "last_metrics": self.last_metrics,
            "history": list(self._history),
            "classes": {cid: list(m) for cid, m in self._classes.items()},
        }

    def _restore(self, snapshot: dict) -> None:
        # refill the original State objects so callers' references stay live
        states = {}
        for sid, state, accepting, metadata, rules, recovery, cls in snapshot["states"]:
            state.id = sid
            state.is_accepting = accepting
            state.metadata = _refill(*metadata)
            state.rules = _refill(*rules)
            state.recovery = _refill(*recovery)
            state.equivalence_class = cls
            states[sid] = state
        self.states, self.transitions = snapshot["tables"]
        _refill(self.states, states)
        _refill(self.transitions, {src: _refill(row, saved) for src, row, saved in snapshot["transitions"]})
        self.initial_state = snapshot["initial_state"]
        self.current_state = snapshot["current_state"]
        self.lifecycle = snapshot["lifecycle"]
        self.last_metrics = snapshot["last_metrics"]
        self._history = snapshot["history"]
        self._classes = snapshot["classes"]

    def _notify(self, event: str, payload: Dict[str, Any]) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, payload)
            except Exception:
                logger.exception("Listener failed on %s event", event)


def _refill(container, saved):
    if isinstance(container, list):
        container[:] = saved
    else:
        container.clear()
        container.update(saved)
    return container
