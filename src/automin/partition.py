from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, List, Optional, Tuple

from automin.config import STRATEGIES
from automin.errors import MalformedAutomatonError
from automin.log import get_logger

logger = get_logger(__name__)

Classifier = Callable[[Any], Hashable]
Signature = Tuple[Tuple[Tuple[str, int], ...], Tuple[str, ...], Tuple[str, ...]]


@dataclass(frozen=True)
class EquivalenceClass:
    id: int
    members: Tuple[str, ...]
    signature: Signature


def by_accepting(state) -> bool:
    return state.is_accepting


def by_metadata(key: str) -> Classifier:
    def classify(state):
        return bool(state.metadata.get(key))

    classify.__name__ = f"by_metadata[{key}]"
    return classify


def classifier_from_name(name: str) -> Optional[Classifier]:
    if name == "none":
        return None
    if name == "accepting":
        return by_accepting
    if name.startswith("metadata:"):
        return by_metadata(name[len("metadata:"):])
    raise ValueError(f"Unknown classifier: {name}")


def check_targets(automaton) -> None:
    for source, symbol, target in automaton.iter_transitions():
        if source not in automaton.states or target not in automaton.states:
            raise MalformedAutomatonError(
                f"Transition {source} --{symbol}--> {target} references an unknown state",
                target if source in automaton.states else source,
            )


class EquivalencePartitioner:
    """Split states into classes of behaviorally identical states.

    ``refine`` is the fixpoint of signature refinement and defines the class
    ids: initial blocks are numbered in order of first appearance, and when a
    block splits, the group holding its earliest member keeps the id while
    later groups get fresh ids in order of their first member. ``hopcroft``
    reaches the same blocks, numbered by first member in insertion order.

    The blocks never depend on the strategy, but the ids do: a state may land
    in class 2 under ``refine`` and class 1 under ``hopcroft``. Compare
    partitions from different strategies as sets of blocks.
    """

    def __init__(self, strategy: str = "refine"):
        if strategy not in STRATEGIES:
            raise ValueError(f"Unknown strategy: {strategy}")
        self.strategy = strategy
        self.iterations = 0

    def partition(self, automaton, classifier: Optional[Classifier] = None) -> Dict[str, int]:
        check_targets(automaton)
        if self.strategy == "hopcroft":
            class_of = self._hopcroft(automaton, classifier)
        else:
            class_of = self._refine(automaton, classifier)
        for state_id, class_id in class_of.items():
            automaton.states[state_id].equivalence_class = class_id
        return class_of

    @staticmethod
    def signature(automaton, state_id: str, class_of: Dict[str, int]) -> Signature:
        state = automaton.states[state_id]
        moves = tuple(
            sorted(
                (symbol, class_of[target])
                for symbol, target in automaton.transitions.get(state_id, {}).items()
            )
        )
        return moves, tuple(sorted(set(state.rules))), tuple(sorted(state.recovery))

    def classes(self, automaton, class_of: Dict[str, int]) -> List[EquivalenceClass]:
        members: Dict[int, List[str]] = {}
        for state_id in automaton.states:
            if state_id in class_of:
                members.setdefault(class_of[state_id], []).append(state_id)
        return [
            EquivalenceClass(cid, tuple(ids), self.signature(automaton, ids[0], class_of))
            for cid, ids in sorted(members.items())
        ]

    def _initial_blocks(self, automaton, key) -> List[List[str]]:
        blocks: Dict[Hashable, List[str]] = {}
        for state_id, state in automaton.states.items():
            blocks.setdefault(key(state), []).append(state_id)
        return list(blocks.values())

    def _refine(self, automaton, classifier) -> Dict[str, int]:
        key = classifier or (lambda state: None)
        blocks = self._initial_blocks(automaton, key)
        class_of = {sid: cid for cid, block in enumerate(blocks) for sid in block}

        self.iterations = 0
        while True:
            self.iterations += 1
            snapshot = dict(class_of)
            split = False
            for cid in range(len(blocks)):
                members = blocks[cid]
                if len(members) < 2:
                    continue
                groups: Dict[Signature, List[str]] = {}
                for sid in members:
                    groups.setdefault(self.signature(automaton, sid, snapshot), []).append(sid)
                if len(groups) == 1:
                    continue
                split = True
                ordered = list(groups.values())
                blocks[cid] = ordered[0]
                for group in ordered[1:]:
                    new_id = len(blocks)
                    blocks.append(group)
                    for sid in group:
                        class_of[sid] = new_id
                logger.debug("Block %d split into %d groups", cid, len(ordered))
            if not split:
                break
        logger.debug("Refinement reached a fixpoint after %d rounds", self.iterations)
        return {sid: class_of[sid] for sid in automaton.states}

    def _hopcroft(self, automaton, classifier) -> Dict[str, int]:
        ids = list(automaton.states)
        index = {sid: i for i, sid in enumerate(ids)}
        sink = len(ids)
        alphabet = automaton.alphabet()
        delta = [
            {sym: index[tgt] for sym, tgt in automaton.transitions.get(sid, {}).items()}
            for sid in ids
        ]

        def get_transition(i: int, symbol: str) -> int:
            if i == sink:
                return sink
            return delta[i].get(symbol, sink)

        def key(state):
            return (
                classifier(state) if classifier else None,
                tuple(sorted(set(state.rules))),
                tuple(sorted(state.recovery)),
            )

        # missing transitions go to a sink that is never equivalent to a real state
        P = [{index[sid] for sid in block} for block in self._initial_blocks(automaton, key)]
        P.append({sink})
        W = deque(set(block) for block in P)

        self.iterations = 0
        while W:
            self.iterations += 1
            A = W.popleft()
            for c in alphabet:
                X = {i for i in range(sink + 1) if get_transition(i, c) in A}
                new_P = []
                for Y in P:
                    inter = Y & X
                    diff = Y - X
                    if inter and diff:
                        new_P.extend([inter, diff])
                        if Y in W:
                            W.remove(Y)
                            W.append(inter)
                            W.append(diff)
                        elif len(inter) <= len(diff):
                            W.append(inter)
                        else:
                            W.append(diff)
                    else:
                        new_P.append(Y)
                P = new_P

        block_of = {i: n for n, block in enumerate(P) for i in block}
        class_of: Dict[str, int] = {}
        numbering: Dict[int, int] = {}
        for i, sid in enumerate(ids):
            class_of[sid] = numbering.setdefault(block_of[i], len(numbering))
        return class_of
