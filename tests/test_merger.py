import pytest

from automin import (
    Automaton,
    OperationOnUnknownStateError,
    RecoveryAction,
    RecoveryKind,
    StateMerger,
)


def test_twins_collapse_and_incoming_edges_are_rewired(twin_accepting):
    StateMerger().merge(twin_accepting, {"S": 0, "A": 1, "B": 1, "C": 2})
    assert list(twin_accepting.states) == ["S", "A", "C"]
    assert twin_accepting.target("S", "a") == "A"
    assert twin_accepting.target("S", "b") == "A"
    assert twin_accepting.target("C", "back") == "A"
    assert all(target != "B" for _, _, target in twin_accepting.iter_transitions())
    assert "B" not in twin_accepting.transitions


def test_rule_ids_are_unioned():
    a = Automaton()
    a.add_state("p")
    a.add_state("q")
    a.attach_rule("p", "r1")
    a.attach_rule("q", "r2")
    a.attach_rule("q", "r1")
    StateMerger().merge(a, {"p": 0, "q": 0})
    assert a.rules_for("p") == ["r1", "r2"]


def test_representative_wins_recovery_conflicts():
    mine = RecoveryAction(RecoveryKind.LOG, {"message": "from p"})
    theirs = RecoveryAction(RecoveryKind.LOG, {"message": "from q"})
    extra = RecoveryAction(RecoveryKind.IGNORE)
    a = Automaton()
    a.add_state("p")
    a.add_state("q")
    a.attach_recovery("p", "E1", mine)
    a.attach_recovery("q", "E1", theirs)
    a.attach_recovery("q", "E2", extra)
    StateMerger().merge(a, {"p": 0, "q": 0})
    assert a.recovery_for("p") == {"E1": mine, "E2": extra}


def test_merged_initial_and_current_move_to_representative():
    a = Automaton()
    a.add_state("y")
    a.add_state("x", initial=True)
    a.reset()
    assert a.current_state == "x"
    StateMerger().merge(a, {"y": 0, "x": 0})
    assert a.initial_state == "y"
    assert a.current_state == "y"
    assert a.history() == ["y"]


def test_one_class_per_state_is_a_noop(lifecycle):
    before = lifecycle.to_object()
    StateMerger().merge(lifecycle, {sid: i for i, sid in enumerate(lifecycle.states)})
    assert lifecycle.to_object() == before


def test_unknown_state_leaves_automaton_untouched(twin_accepting):
    before = twin_accepting.to_object()
    with pytest.raises(OperationOnUnknownStateError):
        StateMerger().merge(twin_accepting, {"A": 1, "B": 1, "ghost": 1})
    assert twin_accepting.to_object() == before
