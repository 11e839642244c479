import dataclasses
import random

import pytest

from automin import (
    Automaton,
    Lifecycle,
    MalformedAutomatonError,
    MinimizerConfig,
    StateLimitExceededError,
)
from automin.presets import css_lexer_states, html_lexer_states


def test_validation_lifecycle_keeps_four_states(lifecycle):
    metrics = lifecycle.minimize()
    assert len(lifecycle) == 4
    assert metrics.reduction_ratio == 1.0


def test_twins_are_merged(twin_accepting):
    metrics = twin_accepting.minimize()
    assert list(twin_accepting.states) == ["S", "A", "C"]
    assert twin_accepting.target("S", "b") == "A"
    assert twin_accepting.equivalence_classes() == {0: ["S"], 1: ["A", "B"], 2: ["C"]}
    assert twin_accepting.states_in_class(1) == ["A", "B"]
    assert metrics.original_state_count == 4
    assert metrics.minimized_state_count == 3
    assert metrics.reduction_ratio == 0.75
    assert dict(metrics.class_sizes) == {0: 1, 1: 2, 2: 1}
    assert metrics.equivalence_class_count == 3
    assert metrics.original_transition_count == 8
    assert metrics.minimized_transition_count == 6
    assert twin_accepting.last_metrics is metrics


def test_metrics_are_read_only(twin_accepting):
    metrics = twin_accepting.minimize()
    with pytest.raises(dataclasses.FrozenInstanceError):
        metrics.minimized_state_count = 0
    with pytest.raises(TypeError):
        metrics.class_sizes[0] = 99


def test_css_lexer_shell_reduces():
    css = css_lexer_states()
    css.minimize()
    assert len(css) == 10
    classes = [m for m in css.equivalence_classes().values() if len(m) > 1]
    assert sorted(classes) == [["BLOCK_START", "SEMICOLON"], ["INITIAL", "BLOCK_END"]]
    assert css.target("VALUE", "SEMICOLON") == "BLOCK_START"


@pytest.mark.parametrize("strategy", ["refine", "hopcroft"])
def test_minimize_is_idempotent(make_random, strategy):
    config = MinimizerConfig(strategy=strategy)
    for seed in range(10):
        a = make_random(seed, size=10)
        a.minimize(config=config)
        states, transitions = len(a), a.transition_count()
        again = a.minimize(config=config)
        assert (len(a), a.transition_count()) == (states, transitions)
        assert again.reduction_ratio == 1.0
        assert a.lifecycle is Lifecycle.MINIMIZED


@pytest.mark.parametrize("seed", range(15))
def test_minimized_automaton_tracks_original(make_random, seed):
    original = make_random(seed, size=9)
    minimized = original.clone()
    minimized.minimize()
    class_of = {
        sid: cid
        for cid, members in minimized.equivalence_classes().items()
        for sid in members
    }

    rng = random.Random(seed)
    for _ in range(20):
        o, m = original.reset(), minimized.reset()
        assert class_of[o] == minimized.states[m].equivalence_class
        for _ in range(12):
            symbol = rng.choice(["a", "b", "c", "d"])
            o, m = original.transition(symbol), minimized.transition(symbol)
            assert class_of[o] == minimized.states[m].equivalence_class


def test_reduction_is_monotonic(make_random):
    for seed in range(20):
        a = make_random(seed)
        metrics = a.minimize()
        assert metrics.minimized_state_count <= metrics.original_state_count
        all_distinct = metrics.equivalence_class_count == metrics.original_state_count
        assert (metrics.minimized_state_count == metrics.original_state_count) == all_distinct


def test_merged_rules_are_the_union(make_random):
    for seed in range(10):
        a = make_random(seed)
        before = {sid: set(s.rules) for sid, s in a.states.items()}
        a.minimize()
        for cid, members in a.equivalence_classes().items():
            rep = members[0]
            expected = set().union(*(before[m] for m in members))
            assert set(a.rules_for(rep)) == expected


def test_state_limit(twin_accepting):
    with pytest.raises(StateLimitExceededError):
        twin_accepting.minimize(config=MinimizerConfig(max_states=3))
    assert len(twin_accepting) == 4
    twin_accepting.minimize(config=MinimizerConfig(max_states=0))
    assert len(twin_accepting) == 3


def test_drop_unreachable(twin_accepting):
    twin_accepting.add_state("orphan")
    metrics = twin_accepting.minimize(config=MinimizerConfig(drop_unreachable=True))
    assert "orphan" not in twin_accepting
    assert metrics.original_state_count == 5
    assert metrics.minimized_state_count == 3


def test_minimize_empty_automaton():
    a = Automaton()
    metrics = a.minimize()
    assert metrics.original_state_count == 0
    assert metrics.reduction_ratio == 1.0
    assert a.lifecycle is Lifecycle.EMPTY


def test_html_lexer_shell_reduces():
    html = html_lexer_states()
    metrics = html.minimize()
    assert metrics.original_state_count == 11
    assert metrics.minimized_state_count == 9
    assert html.target("ATTRIBUTE_NAME", "EQUALS") == "TAG_NAME"
    assert html.reset() == "DATA"
    assert html.run(["LT", "NAME", "GT", "EOF"]) == "EOF"


def test_minimized_event_is_published(twin_accepting):
    events = []
    twin_accepting.add_listener(lambda event, payload: events.append((event, payload)))
    twin_accepting.minimize()
    assert events[-1][0] == "minimized"
    assert events[-1][1]["minimized_state_count"] == 3


def test_dangling_target_is_reported_before_pruning(twin_accepting):
    twin_accepting.add_state("orphan")
    twin_accepting.transitions["C"]["lost"] = "ghost"
    with pytest.raises(MalformedAutomatonError):
        twin_accepting.minimize(config=MinimizerConfig(drop_unreachable=True))
    assert "orphan" in twin_accepting
    assert len(twin_accepting) == 5
