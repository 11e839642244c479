import random

import pytest

from automin import Automaton
from automin.presets import validation_lifecycle


@pytest.fixture
def lifecycle():
    return validation_lifecycle()


@pytest.fixture
def twin_accepting():
    """S branches into accepting twins A and B which both fall into C."""
    a = Automaton("twins")
    a.add_state("S")
    a.add_state("A", is_accepting=True)
    a.add_state("B", is_accepting=True)
    a.add_state("C")
    a.add_transition("S", "a", "A")
    a.add_transition("S", "b", "B")
    for src in ("A", "B"):
        a.add_transition(src, "x", "C")
        a.add_transition(src, "y", "C")
        a.attach_rule(src, "required")
    a.add_transition("C", "z", "C")
    a.add_transition("C", "back", "A")
    return a


def random_automaton(seed, size=8, alphabet=("a", "b", "c"), density=0.7):
    rng = random.Random(seed)
    a = Automaton(f"random-{seed}")
    ids = [f"q{i}" for i in range(size)]
    for sid in ids:
        a.add_state(sid, is_accepting=rng.random() < 0.3)
        if rng.random() < 0.2:
            a.attach_rule(sid, rng.choice(["r1", "r2"]))
    for sid in ids:
        for symbol in alphabet:
            if rng.random() < density:
                a.add_transition(sid, symbol, rng.choice(ids))
    return a


@pytest.fixture
def make_random():
    return random_automaton
