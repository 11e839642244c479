"""Ready-made state shells for the validation engine and the CSS/HTML lexers.

Only the phases and their wiring live here; the grammars that decide which
token category to feed next belong to the lexers themselves.
"""
from typing import Iterable, Mapping, Optional

from automin.automaton import Automaton
from automin.registry import BehaviorRegistry

VALIDATION_TRANSITIONS = [
    ("initial", "begin_validation", "validating"),
    ("validating", "validation_complete", "validated"),
    ("validating", "validation_error", "error"),
    ("error", "retry_validation", "validating"),
    ("validated", "reset", "initial"),
    ("error", "reset", "initial"),
]

CSS_STATES = [
    "INITIAL", "SELECTOR", "BLOCK_START", "PROPERTY", "COLON", "VALUE",
    "SEMICOLON", "BLOCK_END", "AT_RULE", "AT_RULE_BLOCK", "COMMENT", "EOF",
]

CSS_TRANSITIONS = [
    ("INITIAL", "SELECTOR", "SELECTOR"),
    ("INITIAL", "AT_KEYWORD", "AT_RULE"),
    ("INITIAL", "EOF", "EOF"),
    ("SELECTOR", "BLOCK_START", "BLOCK_START"),
    ("BLOCK_START", "PROPERTY", "PROPERTY"),
    ("BLOCK_START", "BLOCK_END", "BLOCK_END"),
    ("PROPERTY", "COLON", "COLON"),
    ("COLON", "VALUE", "VALUE"),
    ("VALUE", "SEMICOLON", "SEMICOLON"),
    ("VALUE", "BLOCK_END", "BLOCK_END"),
    ("SEMICOLON", "PROPERTY", "PROPERTY"),
    ("SEMICOLON", "BLOCK_END", "BLOCK_END"),
    ("BLOCK_END", "SELECTOR", "SELECTOR"),
    ("BLOCK_END", "AT_KEYWORD", "AT_RULE"),
    ("BLOCK_END", "EOF", "EOF"),
    ("AT_RULE", "BLOCK_START", "AT_RULE_BLOCK"),
    ("AT_RULE", "SEMICOLON", "INITIAL"),
    ("AT_RULE_BLOCK", "BLOCK_END", "BLOCK_END"),
]

HTML_STATES = [
    "DATA", "TAG_OPEN", "END_TAG_OPEN", "TAG_NAME", "END_TAG_NAME",
    "ATTRIBUTE_NAME", "ATTRIBUTE_VALUE", "SELF_CLOSING", "COMMENT",
    "DOCTYPE", "EOF",
]

HTML_TRANSITIONS = [
    ("DATA", "LT", "TAG_OPEN"),
    ("DATA", "TEXT", "DATA"),
    ("DATA", "EOF", "EOF"),
    ("TAG_OPEN", "NAME", "TAG_NAME"),
    ("TAG_OPEN", "SLASH", "END_TAG_OPEN"),
    ("TAG_OPEN", "BANG_DASH", "COMMENT"),
    ("TAG_OPEN", "BANG", "DOCTYPE"),
    ("END_TAG_OPEN", "NAME", "END_TAG_NAME"),
    ("TAG_NAME", "WHITESPACE", "ATTRIBUTE_NAME"),
    ("TAG_NAME", "SLASH", "SELF_CLOSING"),
    ("TAG_NAME", "GT", "DATA"),
    ("END_TAG_NAME", "GT", "DATA"),
    ("ATTRIBUTE_NAME", "EQUALS", "ATTRIBUTE_VALUE"),
    ("ATTRIBUTE_NAME", "SLASH", "SELF_CLOSING"),
    ("ATTRIBUTE_NAME", "GT", "DATA"),
    ("ATTRIBUTE_VALUE", "WHITESPACE", "ATTRIBUTE_NAME"),
    ("ATTRIBUTE_VALUE", "SLASH", "SELF_CLOSING"),
    ("ATTRIBUTE_VALUE", "GT", "DATA"),
    ("SELF_CLOSING", "GT", "DATA"),
    ("COMMENT", "DASH_DASH_GT", "DATA"),
    ("COMMENT", "TEXT", "COMMENT"),
    ("DOCTYPE", "GT", "DATA"),
    ("DOCTYPE", "TEXT", "DOCTYPE"),
]


def _build(name, states, transitions, accepting, registry):
    a = Automaton(name, registry)
    for sid in states:
        a.add_state(sid, is_accepting=sid in accepting)
    for source, symbol, target in transitions:
        a.add_transition(source, symbol, target)
    return a


def validation_lifecycle(
    rules: Optional[Mapping[str, Iterable[str]]] = None,
    registry: Optional[BehaviorRegistry] = None,
) -> Automaton:
    """initial -> validating -> validated | error, with retry and reset."""
    a = Automaton("validation", registry)
    a.add_state("initial", initial=True)
    a.add_state("validating", metadata={"phase": "validating"})
    a.add_state("validated", is_accepting=True, metadata={"isValidated": True})
    a.add_state("error", metadata={"isErrorState": True})
    for source, symbol, target in VALIDATION_TRANSITIONS:
        a.add_transition(source, symbol, target)
    for state_id, rule_ids in (rules or {}).items():
        for rule_id in rule_ids:
            a.attach_rule(state_id, rule_id)
    return a


def css_lexer_states(registry: Optional[BehaviorRegistry] = None) -> Automaton:
    return _build("css", CSS_STATES, CSS_TRANSITIONS, {"EOF"}, registry)


def html_lexer_states(registry: Optional[BehaviorRegistry] = None) -> Automaton:
    return _build("html", HTML_STATES, HTML_TRANSITIONS, {"EOF"}, registry)


PRESETS = {
    "validation": validation_lifecycle,
    "css": css_lexer_states,
    "html": html_lexer_states,
}
