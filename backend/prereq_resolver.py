"""
Prerequisite resolution for a candidate plan addition.

Every prerequisite node evaluates to one of three states:
  SATISFIED    every needed course is completed
  PENDING      needed courses are at least planned/in progress
  UNSATISFIED  something needed is nowhere in the plan

Outcomes are immutable and combined bottom-up, so sibling evaluations never
share a list. Nothing here raises on bad catalog data: malformed nodes are
UNSATISFIED and report whatever text they were built from.
"""

from dataclasses import dataclass
from enum import Enum

from grade_points import meets_minimum_grade
from models import CourseStatus, Group, GroupOp, Leaf, Verdict

ALREADY_PLANNED_MSG = "Course is already planned"
PENDING_MSG = "Prerequisites planned but not completed: {codes}"
COREQ_MSG = "Corequisites not planned: {codes}"
ONE_OF_MSG = "One of: {codes}"
UNAVAILABLE_MSG = "Prerequisite data unavailable for {code}"
UNRECOGNIZED_MSG = "Unrecognized prerequisite"


class State(Enum):
    SATISFIED = "satisfied"
    PENDING = "pending"
    UNSATISFIED = "unsatisfied"


@dataclass(frozen=True)
class Outcome:
    state: State
    missing: tuple = ()
    pending: tuple = ()


_SATISFIED = Outcome(State.SATISFIED)


def _dedupe(items) -> tuple:
    return tuple(dict.fromkeys(items))


def partition_plan(plan) -> tuple[dict, set]:
    """
    Splits every entry of every term into:
      completed  {code: grade or None}
      in_flight  {code, ...} for in-progress/planned entries
    """
    completed: dict[str, str | None] = {}
    in_flight: set[str] = set()
    for term in plan.terms.values():
        for entry in term.courses:
            if entry.status == CourseStatus.COMPLETED:
                completed[entry.code] = entry.grade
            else:
                in_flight.add(entry.code)
    return completed, in_flight


def _node_label(node) -> str:
    """Text for a node that is not a readable Group: its raw text, else its repr."""
    if node is None:
        return UNRECOGNIZED_MSG
    return getattr(node, "raw", "") or str(node) or UNRECOGNIZED_MSG


def _leaf_labels(node) -> list[str]:
    if isinstance(node, Leaf):
        return [node.code or node.raw or UNRECOGNIZED_MSG]
    if not isinstance(node, Group):
        return [_node_label(node)]
    labels: list[str] = []
    for child in node.children:
        labels.extend(_leaf_labels(child))
    return list(_dedupe(labels))


def _evaluate_leaf(leaf: Leaf, completed: dict, in_flight: set) -> Outcome:
    if not leaf.code:
        return Outcome(State.UNSATISFIED, missing=(leaf.raw or UNRECOGNIZED_MSG,))
    if leaf.code in completed:
        grade = completed[leaf.code]
        # A completed course with no recorded grade is taken at face value.
        if leaf.min_grade and grade is not None and not meets_minimum_grade(grade, leaf.min_grade):
            return Outcome(
                State.UNSATISFIED,
                missing=(f"{leaf.code} (minimum grade {leaf.min_grade})",),
            )
        return _SATISFIED
    if leaf.code in in_flight:
        return Outcome(State.PENDING, pending=(leaf.code,))
    return Outcome(State.UNSATISFIED, missing=(leaf.code,))


def evaluate(node, completed: dict, in_flight: set) -> Outcome:
    """
    Evaluates one prerequisite subtree. `completed` maps code -> grade.

    "No prerequisites" is decided by the caller (top_level_requirements); in
    here None, bare strings and empty groups are malformed and UNSATISFIED.
    """
    if isinstance(node, Leaf):
        return _evaluate_leaf(node, completed, in_flight)
    if not isinstance(node, Group) or not node.children:
        return Outcome(State.UNSATISFIED, missing=(_node_label(node),))

    results = [evaluate(child, completed, in_flight) for child in node.children]

    if node.op == GroupOp.AND:
        unsatisfied = [r for r in results if r.state == State.UNSATISFIED]
        if unsatisfied:
            return Outcome(
                State.UNSATISFIED,
                missing=_dedupe(m for r in unsatisfied for m in r.missing),
            )
        pending = [r for r in results if r.state == State.PENDING]
        if pending:
            return Outcome(State.PENDING, pending=_dedupe(p for r in pending for p in r.pending))
        return _SATISFIED

    if node.op == GroupOp.OR:
        if any(r.state == State.SATISFIED for r in results):
            return _SATISFIED
        pending = [r for r in results if r.state == State.PENDING]
        if pending:
            return Outcome(State.PENDING, pending=_dedupe(p for r in pending for p in r.pending))
        # Report the group, not its members: only one of them is needed.
        return Outcome(
            State.UNSATISFIED,
            missing=(ONE_OF_MSG.format(codes=", ".join(_leaf_labels(node))),),
        )

    return Outcome(State.UNSATISFIED, missing=(node.raw or UNRECOGNIZED_MSG,))


def top_level_requirements(expr) -> list:
    """A top-level AND is a list of independent requirements; anything else is one."""
    if expr is None:
        return []
    if isinstance(expr, Group) and expr.op == GroupOp.AND and expr.children:
        return list(expr.children)
    return [expr]


def resolve_requirements(expr, completed: dict, in_flight: set) -> tuple[tuple, tuple]:
    """
    Evaluates each independent requirement and returns (missing, pending),
    both ordered and de-duplicated.
    """
    missing: list[str] = []
    pending: list[str] = []
    for requirement in top_level_requirements(expr):
        outcome = evaluate(requirement, completed, in_flight)
        if outcome.state == State.UNSATISFIED:
            missing.extend(outcome.missing)
        elif outcome.state == State.PENDING:
            pending.extend(outcome.pending)
    return _dedupe(missing), _dedupe(pending)


def unmet_corequisites(expr, completed: dict, in_flight: set) -> tuple:
    """Corequisites may be taken alongside, so anything in the plan satisfies them."""
    if expr is None:
        return ()
    anywhere = {**{code: None for code in in_flight}, **completed}
    missing, _ = resolve_requirements(expr, anywhere, set())
    return missing


def check_can_add(course, plan, code: str | None = None) -> Verdict:
    """
    Verdict for adding `course` (a CourseRecord) anywhere in `plan`.

    `course` may be None when the catalog has no record; pass `code` so the
    already-planned check and the message can still name it.
    """
    completed, in_flight = partition_plan(plan)
    candidate = course.code if course is not None else code

    if candidate and (candidate in completed or candidate in in_flight):
        return Verdict(can_add=False, missing_prerequisites=(), warnings=(ALREADY_PLANNED_MSG,))

    if course is None:
        return Verdict(
            can_add=False,
            missing_prerequisites=(UNAVAILABLE_MSG.format(code=candidate or "unknown course"),),
            warnings=(),
        )

    missing, pending = resolve_requirements(course.prerequisites, completed, in_flight)
    warnings: list[str] = []
    if pending:
        warnings.append(PENDING_MSG.format(codes=", ".join(pending)))
    coreqs = unmet_corequisites(course.corequisites, completed, in_flight)
    if coreqs:
        warnings.append(COREQ_MSG.format(codes=", ".join(coreqs)))

    return Verdict(
        can_add=not missing,
        missing_prerequisites=missing,
        warnings=tuple(warnings),
    )


def check_can_add_code(code: str, catalog: dict, plan) -> Verdict:
    """check_can_add() for a bare code; unknown codes are 'data unavailable'."""
    return check_can_add(catalog.get(code), plan, code=code)
