"""
Plan-level audits. Pure helpers; no Flask or data-loader imports.
"""

from typing import Dict, List

from models import CourseStatus, PlanState
from plan_state import sorted_terms, term_credits
from prereq_resolver import partition_plan, resolve_requirements

# Below this, a non-empty term gets an underload warning.
MIN_FULL_TIME_CREDITS = 12


def validate_term(plan: PlanState, term_id: int) -> dict:
    """
    Credit-load check for one term.

    Exceeding max_credits is a warning, never an error: the cap is advisory.
    Returns {"is_valid": bool, "warnings": [...], "errors": [...]}.
    """
    term = plan.terms.get(term_id)
    if term is None:
        return {"is_valid": False, "warnings": [], "errors": ["Term not found"]}

    warnings: List[str] = []
    total = term_credits(term)
    if total > term.max_credits:
        warnings.append(
            f"{term.label} exceeds maximum credits ({total}/{term.max_credits})"
        )
    if term.courses and total < MIN_FULL_TIME_CREDITS:
        warnings.append(f"{term.label} has fewer than {MIN_FULL_TIME_CREDITS} credits ({total})")

    return {"is_valid": True, "warnings": warnings, "errors": []}


def find_out_of_order_courses(plan: PlanState, catalog: Dict[str, object]) -> List[dict]:
    """
    Entries whose prerequisites are in the plan but not in an earlier term.

    Anything scheduled in an earlier term counts as done by then, whatever its
    status. Prerequisites missing from the plan entirely are not reported here;
    that is the resolver's job.

    Each item:
      {"course_code": str, "term_id": int, "prereqs_not_before": List[str]}
    """
    completed, in_flight = partition_plan(plan)
    everywhere = {**{c: None for c in in_flight}, **completed}

    issues: List[dict] = []
    earlier: Dict[str, object] = {}
    for term in sorted_terms(plan):
        for entry in term.courses:
            record = catalog.get(entry.code)
            if record is None or record.prerequisites is None:
                continue
            missing_anywhere, _ = resolve_requirements(record.prerequisites, everywhere, set())
            if missing_anywhere:
                continue
            missing_before, _ = resolve_requirements(record.prerequisites, earlier, set())
            if missing_before:
                issues.append({
                    "course_code": entry.code,
                    "term_id": term.id,
                    "prereqs_not_before": list(missing_before),
                })
        # Same-term courses do not satisfy each other.
        for entry in term.courses:
            earlier[entry.code] = entry.grade if entry.status == CourseStatus.COMPLETED else None
    return issues


def find_inconsistent_completed_courses(plan: PlanState, catalog: Dict[str, object]) -> List[dict]:
    """
    Completed courses that still have required prerequisites in progress or planned.

    Each item:
      {"course_code": str, "prereqs_in_progress": List[str]}
    """
    completed, in_flight = partition_plan(plan)
    issues: List[dict] = []
    for code in sorted(completed):
        record = catalog.get(code)
        if record is None:
            continue
        _, pending = resolve_requirements(record.prerequisites, completed, in_flight)
        if pending:
            issues.append({"course_code": code, "prereqs_in_progress": sorted(pending)})
    return issues
