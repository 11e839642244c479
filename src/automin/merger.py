from typing import Dict, List

from automin.errors import MalformedAutomatonError, OperationOnUnknownStateError
from automin.log import get_logger

logger = get_logger(__name__)


class StateMerger:
    """Collapse every equivalence class onto its first-inserted member.

    States are addressed through an arena (position in insertion order) and a
    remap table sending each donor index to its representative index, so the
    transition table is rewritten in one pass after all classes are resolved.
    """

    def merge(self, automaton, partition: Dict[str, int]):
        ids = list(automaton.states)
        index = {sid: i for i, sid in enumerate(ids)}

        unknown = [sid for sid in partition if sid not in index]
        if unknown:
            raise OperationOnUnknownStateError(
                f"Partition references unknown states: {', '.join(map(str, unknown))}",
                unknown[0],
            )
        for source, row in automaton.transitions.items():
            for symbol, target in row.items():
                if target not in index:
                    raise MalformedAutomatonError(
                        f"Transition {source} --{symbol}--> {target} targets an unknown state",
                        target,
                    )

        members: Dict[int, List[int]] = {}
        for i, sid in enumerate(ids):
            if sid in partition:
                members.setdefault(partition[sid], []).append(i)

        remap = list(range(len(ids)))
        for block in members.values():
            for donor in block[1:]:
                remap[donor] = block[0]
        if all(remap[i] == i for i in range(len(ids))):
            return automaton

        for block in members.values():
            if len(block) < 2:
                continue
            rep = automaton.states[ids[block[0]]]
            for donor_index in block[1:]:
                donor = automaton.states[ids[donor_index]]
                for rule_id in donor.rules:
                    if rule_id not in rep.rules:
                        rep.rules.append(rule_id)
                for code, action in donor.recovery.items():
                    rep.recovery.setdefault(code, action)
                logger.debug("Merging %s into %s", donor.id, rep.id)

        def resolve(state_id):
            if state_id is None:
                return None
            return ids[remap[index[state_id]]]

        automaton.transitions = {
            source: {symbol: resolve(target) for symbol, target in row.items()}
            for source, row in automaton.transitions.items()
            if remap[index[source]] == index[source]
        }
        automaton.states = {
            sid: automaton.states[sid] for i, sid in enumerate(ids) if remap[i] == i
        }
        automaton.initial_state = resolve(automaton.initial_state)
        automaton.current_state = resolve(automaton.current_state)
        automaton._history = [resolve(s) for s in automaton._history if s in index]
        return automaton
