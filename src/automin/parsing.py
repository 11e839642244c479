import json
import os
import xml.etree.ElementTree as ET
from typing import Optional

from automin.automaton import Automaton
from automin.config import MinimizerConfig
from automin.errors import MalformedAutomatonError
from automin.registry import BehaviorRegistry, RecoveryKind


def _decode_text(text: Optional[str]):
    # values are written as JSON so booleans and numbers keep their type
    if text is None:
        return ""
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text


def detect_format_from_ext(path: str) -> str:
    ext = os.path.splitext(path)[1].lower()
    if ext in (".xml",):
        return "xml"
    return "json"


def parse_json_automaton(
    path: str,
    registry: Optional[BehaviorRegistry] = None,
    config: Optional[MinimizerConfig] = None,
) -> Automaton:
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise MalformedAutomatonError(f"{path}: invalid JSON ({e})") from e
        except UnicodeDecodeError as e:
            raise MalformedAutomatonError(f"{path}: not UTF-8 text ({e.reason})") from e
    if isinstance(data, dict):
        data.setdefault("name", os.path.splitext(os.path.basename(path))[0])
    return Automaton.from_object(data, registry, config)


def parse_xml_automaton(
    path: str,
    registry: Optional[BehaviorRegistry] = None,
    config: Optional[MinimizerConfig] = None,
) -> Automaton:
    try:
        root = ET.parse(path).getroot()
    except ET.ParseError as e:
        raise MalformedAutomatonError(f"{path}: invalid XML ({e})") from e

    def findall(elem, *names):
        for n in names:
            found = elem.findall(n)
            if found:
                return found
        return []

    def findtext(elem, *names):
        for n in names:
            text = elem.findtext(n)
            if text and text.strip():
                return text.strip()
        return None

    states = {}
    for node in findall(root, "states/state", "States/State"):
        sid = node.get("id") or (node.text or "").strip()
        if not sid:
            raise MalformedAutomatonError(f"{path}: <state> without id")
        recovery = {}
        for r in node.findall("recovery"):
            payload = {p.get("key"): _decode_text(p.text) for p in r.findall("param")}
            recovery[r.get("code")] = {"kind": r.get("kind", RecoveryKind.IGNORE.value), "payload": payload}
        cls = node.get("class")
        states[sid] = {
            "is_accepting": node.get("accepting", "false").lower() == "true",
            "metadata": {m.get("key"): _decode_text(m.text) for m in node.findall("meta")},
            "rules": [r.text.strip() for r in node.findall("rule") if r.text],
            "recovery": recovery,
            "equivalence_class": int(cls) if cls not in (None, "") else None,
        }

    transitions = {}
    for t in findall(root, "transitions/t", "Transitions/T", "transitions/transition"):
        frm = t.attrib.get("from") or t.findtext("from")
        sym = t.attrib.get("symbol") or t.findtext("symbol")
        to = t.attrib.get("to") or t.findtext("to")
        if frm is None or to is None or sym is None:
            raise MalformedAutomatonError(f"{path}: incomplete transition element")
        transitions.setdefault(frm.strip(), {})[sym.strip()] = to.strip()

    obj = {
        "name": root.attrib.get("name") or os.path.splitext(os.path.basename(path))[0],
        "states": states,
        "transitions": transitions,
        "initial_state": findtext(root, "start", "Start"),
        "current_state": findtext(root, "current", "Current"),
    }
    if obj["initial_state"] is None and states:
        raise MalformedAutomatonError(f"{path}: XML missing <start> node with start state text")
    return Automaton.from_object(obj, registry, config)


def read_automaton(path: str, fmt: str = None, registry=None, config=None) -> Automaton:
    fmt = fmt or detect_format_from_ext(path)
    if fmt == "json":
        return parse_json_automaton(path, registry, config)
    elif fmt == "xml":
        return parse_xml_automaton(path, registry, config)
    else:
        raise ValueError(f"Unsupported format: {fmt}")


def automaton_to_json_dict(a: Automaton) -> dict:
    result = a.to_object()
    if a.last_metrics is not None:
        result["metrics"] = a.last_metrics.to_dict()
    return result


def automaton_to_xml_element(a: Automaton) -> ET.Element:
    root = ET.Element("automaton", attrib={"name": a.name})
    states_el = ET.SubElement(root, "states")
    for sid, state in a.states.items():
        state_el = ET.SubElement(states_el, "state", attrib={"id": sid})
        if state.is_accepting:
            state_el.set("accepting", "true")
        if state.equivalence_class is not None:
            state_el.set("class", str(state.equivalence_class))
        for key, value in state.metadata.items():
            ET.SubElement(state_el, "meta", attrib={"key": str(key)}).text = json.dumps(value)
        for rule_id in state.rules:
            ET.SubElement(state_el, "rule").text = rule_id
        for code, action in state.recovery.items():
            r = ET.SubElement(state_el, "recovery", attrib={"code": code, "kind": action.kind.value})
            for key, value in action.payload.items():
                ET.SubElement(r, "param", attrib={"key": str(key)}).text = json.dumps(value)
    if a.initial_state is not None:
        ET.SubElement(root, "start").text = a.initial_state
    if a.current_state is not None:
        ET.SubElement(root, "current").text = a.current_state
    trans_el = ET.SubElement(root, "transitions")
    for source, symbol, target in a.iter_transitions():
        t = ET.SubElement(trans_el, "t")
        t.set("from", source)
        t.set("symbol", symbol)
        t.set("to", target)
    return root


def write_automaton(a: Automaton, path: str, fmt: str = None) -> None:
    fmt = fmt or detect_format_from_ext(path)
    dirname = os.path.dirname(path)
    if dirname:
        os.makedirs(dirname, exist_ok=True)
    if fmt == "json":
        with open(path, "w", encoding="utf-8") as f:
            json.dump(automaton_to_json_dict(a), f, ensure_ascii=False, indent=2)
    elif fmt == "xml":
        tree = ET.ElementTree(automaton_to_xml_element(a))
        ET.indent(tree)
        tree.write(path, encoding="utf-8", xml_declaration=True)
    else:
        raise ValueError(f"Unsupported format: {fmt}")
