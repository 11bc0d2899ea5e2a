import json
import re

import pandas as pd

from models import Group, GroupOp, Leaf
from normalizer import normalize_code
from grade_points import normalize_grade

# Case-insensitive OR splitter; preserves token casing before normalize_code()
OR_SPLIT = re.compile(r'\s+or\s+', re.IGNORECASE)

# Trailing minimum-grade annotation, e.g. "CS 1331 (C)" or "CS 1331 [min grade C]"
MIN_GRADE_RE = re.compile(
    r'^(?P<code>.+?)\s*[\(\[]\s*(?:min(?:imum)?\s+grade\s+)?(?P<grade>[A-Fa-f])\s*[\)\]]$'
)

NONE_VALUES = {"none", "none listed", "n/a", "nan", "", "[]"}

_OPS = {"and": GroupOp.AND, "or": GroupOp.OR}


def _is_none(raw) -> bool:
    if raw is None:
        return True
    if isinstance(raw, float) and pd.isna(raw):
        return True
    if isinstance(raw, (list, tuple)) and len(raw) == 0:
        return True
    return isinstance(raw, str) and raw.strip().lower() in NONE_VALUES


def _leaf_from_text(token: str) -> Leaf:
    token = token.strip()
    min_grade = None
    m = MIN_GRADE_RE.match(token)
    if m:
        min_grade = normalize_grade(m.group("grade"))
        code = normalize_code(m.group("code"))
    else:
        code = normalize_code(token)
    return Leaf(code=code, min_grade=min_grade, raw=token)


def _leaf_from_item(item: dict) -> Leaf:
    raw_code = item.get("id") or item.get("code") or item.get("course")
    raw = str(raw_code) if raw_code else json.dumps(item, sort_keys=True, default=str)
    return Leaf(
        code=normalize_code(raw_code),
        min_grade=normalize_grade(item.get("grade")),
        raw=raw,
    )


def _from_structure(node):
    """
    Catalog JSON form:
      ["and", {"id": "CS 1301", "grade": "C"}, ["or", {"id": "MATH 1551"}, ...]]
    A list without a leading operator is a list of independent requirements (AND).
    Also accepts {"type": "and"|"or", "courses": [...]} and bare code strings.
    """
    if isinstance(node, str):
        return _leaf_from_text(node)

    if isinstance(node, dict):
        node_type = str(node.get("type", "") or "").strip().lower()
        if node_type in _OPS:
            children = node.get("courses") or node.get("children") or []
            return Group(
                op=_OPS[node_type],
                children=tuple(_from_structure(c) for c in children),
                raw=json.dumps(node, sort_keys=True, default=str),
            )
        return _leaf_from_item(node)

    if isinstance(node, (list, tuple)):
        raw = json.dumps(node, default=str)
        if node and isinstance(node[0], str) and node[0].strip().lower() in _OPS:
            op = _OPS[node[0].strip().lower()]
            return Group(op=op, children=tuple(_from_structure(c) for c in node[1:]), raw=raw)
        children = tuple(_from_structure(c) for c in node)
        if len(children) == 1:
            return children[0]
        return Group(op=GroupOp.AND, children=children, raw=raw)

    return Leaf(code=None, raw=str(node))


def _from_text(s: str):
    """
    Text grammar:
      CODE                  -> Leaf
      CODE; CODE; ...       -> AND
      CODE or CODE          -> OR
      CODE; CODE or CODE    -> AND with a nested OR
    """
    clauses = []
    for tok in s.split(";"):
        tok = tok.strip()
        if not tok:
            continue
        parts = [p for p in OR_SPLIT.split(tok) if p.strip()]
        if len(parts) == 1:
            clauses.append(_leaf_from_text(parts[0]))
        else:
            clauses.append(Group(
                op=GroupOp.OR,
                children=tuple(_leaf_from_text(p) for p in parts),
                raw=tok,
            ))
    if not clauses:
        return Leaf(code=None, raw=s)
    if len(clauses) == 1:
        return clauses[0]
    return Group(op=GroupOp.AND, children=tuple(clauses), raw=s)


def parse_prereqs(raw):
    """
    Parses a catalog prerequisite value into a Leaf/Group tree, or None when
    the course has no prerequisites.

    JSON strings and already-decoded lists/dicts use the structured form;
    anything else goes through the text grammar. Never raises: a value that
    cannot be read becomes Leaf(code=None, raw=<text>), which always
    evaluates as unsatisfied.
    """
    if _is_none(raw):
        return None

    if isinstance(raw, (list, tuple, dict)):
        return _from_structure(raw)

    s = str(raw).strip()
    if s[:1] in ("[", "{"):
        try:
            decoded = json.loads(s)
        except ValueError:
            return Leaf(code=None, raw=s)
        if _is_none(decoded):
            return None
        return _from_structure(decoded)

    return _from_text(s)


def prereq_course_codes(expr) -> list[str]:
    """All resolvable course codes in the tree, in order, without duplicates."""
    codes: list[str] = []

    def walk(node):
        if isinstance(node, Leaf):
            if node.code and node.code not in codes:
                codes.append(node.code)
        elif isinstance(node, Group):
            for child in node.children:
                walk(child)

    if expr is not None:
        walk(expr)
    return codes


def build_prereq_check_string(expr, completed: set, in_flight: set) -> str:
    """
    Human-readable satisfaction summary.
    Examples:
      "CS 1301 ✓"
      "CS 1301 ✓; CS 1331 (in progress) ✓"
      "MATH 1551 ✓ (or MATH 1501)"
    """
    def label_code(code: str) -> str:
        if code in completed:
            return f"{code} ✓"
        if code in in_flight:
            return f"{code} (in progress) ✓"
        return f"{code} ✗"

    def describe(node) -> str:
        if isinstance(node, Leaf):
            if not node.code:
                return f"{node.raw or 'Unrecognized prerequisite'} ✗"
            return label_code(node.code)
        if not node.children:
            return "Manual review required"
        if node.op == GroupOp.AND:
            return "; ".join(describe(c) for c in node.children)
        leaf_codes = [c.code for c in node.children if isinstance(c, Leaf) and c.code]
        met = [c for c in leaf_codes if c in completed or c in in_flight]
        if met and len(leaf_codes) == len(node.children):
            others = [c for c in leaf_codes if c != met[0]]
            if not others:
                return label_code(met[0])
            return f"{label_code(met[0])} (or {' or '.join(others)})"
        return " or ".join(f"({describe(c)})" if isinstance(c, Group) else describe(c) for c in node.children)

    if expr is None:
        return "No prerequisites"
    return describe(expr)
