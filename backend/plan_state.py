"""
Plan State: a student's terms and the courses assigned to them.

Edits never mutate their input; each returns a new PlanState. add_course and
move_course run the prerequisite resolver first and leave the plan untouched
when it refuses, which is what keeps a course code in at most one term.
"""

import json
import re
import sys
from dataclasses import replace
from datetime import datetime, timezone

from grade_points import normalize_grade
from models import CourseStatus, PlannedCourse, PlanState, Season, Term, Verdict
from normalizer import normalize_code
from prereq_resolver import check_can_add

DEFAULT_MAX_CREDITS = 18
MAX_GENERATED_TERMS = 25
EXPORT_VERSION = "1.0"

TERM_LABEL_RE = re.compile(r'^\s*(Fall|Spring|Summer)\s+(\d{4})\s*$', re.IGNORECASE)

TERM_NOT_FOUND_MSG = "Term not found: {term_id}"
NOT_IN_PLAN_MSG = "Course is not in the plan: {code}"

_SEASONS_IN_ORDER = sorted(Season, key=lambda s: s.rank)


def term_id(year: int, season: Season) -> int:
    """Stable key, e.g. Spring 2026 -> 202601."""
    return int(year) * 100 + season.rank


def parse_term_label(label: str) -> tuple[int, Season]:
    """'Fall 2026' -> (2026, Season.FALL). Raises ValueError on anything else."""
    m = TERM_LABEL_RE.match(str(label or ""))
    if not m:
        raise ValueError(f"Cannot parse term from: {label!r}")
    return int(m.group(2)), Season(m.group(1).capitalize())


def make_term(year: int, season: Season, max_credits: int = DEFAULT_MAX_CREDITS, courses=()) -> Term:
    return Term(
        id=term_id(year, season),
        year=int(year),
        season=season,
        courses=tuple(courses),
        max_credits=max_credits,
    )


def empty_plan() -> PlanState:
    return PlanState(terms={})


def with_term(plan: PlanState, term: Term) -> PlanState:
    terms = dict(plan.terms)
    terms[term.id] = term
    return PlanState(terms=terms)


def sorted_terms(plan: PlanState) -> list[Term]:
    """Chronological: (year, season rank) with Fall=0, Spring=1, Summer=2."""
    return sorted(plan.terms.values(), key=lambda t: (t.sort_key, t.id))


def generate_terms(
    start_label: str,
    graduation_label: str,
    max_credits: int = DEFAULT_MAX_CREDITS,
) -> PlanState:
    """
    Empty terms from the start term through the year after graduation, so
    late courses still have somewhere to go. Capped at 25 terms.
    """
    start_year, start_season = parse_term_label(start_label)
    grad_year, _ = parse_term_label(graduation_label)
    if grad_year < start_year:
        raise ValueError(
            f"Graduation term {graduation_label!r} is before start term {start_label!r}"
        )

    terms: dict[int, Term] = {}
    year = start_year
    index = _SEASONS_IN_ORDER.index(start_season)
    while year <= grad_year + 1 and len(terms) < MAX_GENERATED_TERMS:
        term = make_term(year, _SEASONS_IN_ORDER[index], max_credits)
        terms[term.id] = term
        index = (index + 1) % len(_SEASONS_IN_ORDER)
        if index == 0:
            year += 1
    return PlanState(terms=terms)


# ── Queries ──────────────────────────────────────────────────────────────────

def all_entries(plan: PlanState) -> list[PlannedCourse]:
    return [entry for term in sorted_terms(plan) for entry in term.courses]


def entries_by_status(plan: PlanState, status: CourseStatus) -> list[PlannedCourse]:
    return [entry for entry in all_entries(plan) if entry.status == status]


def find_course(plan: PlanState, code: str) -> tuple[Term, PlannedCourse] | tuple[None, None]:
    for term in sorted_terms(plan):
        entry = term.find(code)
        if entry is not None:
            return term, entry
    return None, None


def completed_codes(plan: PlanState) -> list[str]:
    return [e.code for e in entries_by_status(plan, CourseStatus.COMPLETED)]


def in_flight_codes(plan: PlanState) -> list[str]:
    return [e.code for e in all_entries(plan) if e.status != CourseStatus.COMPLETED]


def term_credits(term: Term) -> int:
    return sum(max(0, e.credits or 0) for e in term.courses)


def is_overloaded(term: Term) -> bool:
    """Advisory only; edits are never refused for exceeding max_credits."""
    return term_credits(term) > term.max_credits


def completion_stats(plan: PlanState) -> dict:
    entries = all_entries(plan)
    completed = sum(1 for e in entries if e.status == CourseStatus.COMPLETED)
    in_progress = sum(1 for e in entries if e.status == CourseStatus.IN_PROGRESS)
    planned = sum(1 for e in entries if e.status == CourseStatus.PLANNED)
    return {
        "total_courses": len(entries),
        "completed_courses": completed,
        "in_progress_courses": in_progress,
        "planned_courses": planned,
        "completion_rate": (completed / len(entries)) * 100 if entries else 0,
    }


# ── Edits ────────────────────────────────────────────────────────────────────

def _replace_entry(plan: PlanState, code: str, new_entry: PlannedCourse | None) -> PlanState:
    """Swap (or drop, when new_entry is None) the entry for `code` wherever it is."""
    term, _ = find_course(plan, code)
    if term is None:
        return plan
    courses = []
    for entry in term.courses:
        if entry.code != code:
            courses.append(entry)
        elif new_entry is not None:
            courses.append(new_entry)
    return with_term(plan, replace(term, courses=tuple(courses)))


def add_course(
    plan: PlanState,
    target_term_id: int,
    course,
    status: CourseStatus = CourseStatus.PLANNED,
    grade: str | None = None,
    credits_earned: int | None = None,
) -> tuple[PlanState, Verdict]:
    """
    Adds a CourseRecord to a term after consulting the resolver.
    Returns (plan, verdict); the plan is unchanged unless verdict.can_add.
    """
    term = plan.terms.get(target_term_id)
    if term is None:
        return plan, Verdict(
            can_add=False,
            warnings=(TERM_NOT_FOUND_MSG.format(term_id=target_term_id),),
        )

    verdict = check_can_add(course, plan)
    if not verdict.can_add:
        return plan, verdict

    status = CourseStatus(status)
    entry = PlannedCourse(
        code=course.code,
        credits=course.credits,
        status=status,
        grade=normalize_grade(grade) if status == CourseStatus.COMPLETED else None,
        credits_earned=credits_earned,
    )
    return with_term(plan, replace(term, courses=term.courses + (entry,))), verdict


def remove_course(plan: PlanState, from_term_id: int, code: str) -> PlanState:
    term = plan.terms.get(from_term_id)
    if term is None or term.find(code) is None:
        return plan
    courses = tuple(e for e in term.courses if e.code != code)
    return with_term(plan, replace(term, courses=courses))


def move_course(plan: PlanState, course, target_term_id: int) -> tuple[PlanState, Verdict]:
    """
    Remove + re-add elsewhere, keeping status and grade. The re-add is checked
    against the plan without the course; if refused, the original plan stands.
    """
    target = plan.terms.get(target_term_id)
    if target is None:
        return plan, Verdict(
            can_add=False,
            warnings=(TERM_NOT_FOUND_MSG.format(term_id=target_term_id),),
        )
    source, entry = find_course(plan, course.code)
    if entry is None:
        return plan, Verdict(can_add=False, warnings=(NOT_IN_PLAN_MSG.format(code=course.code),))
    if source.id == target_term_id:
        return plan, Verdict(can_add=True)

    without = remove_course(plan, source.id, course.code)
    verdict = check_can_add(course, without)
    if not verdict.can_add:
        return plan, verdict

    target = without.terms[target_term_id]
    return with_term(without, replace(target, courses=target.courses + (entry,))), verdict


def set_status(plan: PlanState, code: str, status: CourseStatus, grade: str | None = None) -> PlanState:
    """Only completed entries keep a grade."""
    _, entry = find_course(plan, code)
    if entry is None:
        return plan
    status = CourseStatus(status)
    if status == CourseStatus.COMPLETED:
        new_grade = normalize_grade(grade) if grade is not None else entry.grade
    else:
        new_grade = None
    return _replace_entry(plan, code, replace(entry, status=status, grade=new_grade))


def mark_grade(plan: PlanState, code: str, grade: str) -> PlanState:
    """Records a grade, which also marks the course completed."""
    return set_status(plan, code, CourseStatus.COMPLETED, grade)


def clear_planned(plan: PlanState) -> PlanState:
    """Drops every 'planned' entry; completed and in-progress history stays."""
    terms = {
        tid: replace(t, courses=tuple(e for e in t.courses if e.status != CourseStatus.PLANNED))
        for tid, t in plan.terms.items()
    }
    return PlanState(terms=terms)


# ── Persistence boundary ─────────────────────────────────────────────────────

def plan_to_records(plan: PlanState) -> list[dict]:
    return [
        {
            "id": term.id,
            "year": term.year,
            "season": term.season.value,
            "max_credits": term.max_credits,
            "courses": [
                {
                    "code": e.code,
                    "credits": e.credits,
                    "status": e.status.value,
                    "grade": e.grade,
                    "credits_earned": e.credits_earned,
                }
                for e in term.courses
            ],
        }
        for term in sorted_terms(plan)
    ]


def _safe_int(val, default=None):
    try:
        if val is None or val == "":
            return default
        return int(val)
    except (TypeError, ValueError):
        return default


def _entry_from_record(row: dict) -> PlannedCourse | None:
    code = normalize_code(row.get("code"))
    if code is None:
        return None
    try:
        status = CourseStatus(str(row.get("status") or CourseStatus.PLANNED.value).strip().lower())
    except ValueError:
        status = CourseStatus.PLANNED
    return PlannedCourse(
        code=code,
        credits=max(0, _safe_int(row.get("credits"), 3)),
        status=status,
        grade=normalize_grade(row.get("grade")) if status == CourseStatus.COMPLETED else None,
        credits_earned=_safe_int(row.get("credits_earned")),
    )


def plan_from_records(records) -> PlanState:
    """
    Rebuilds a PlanState from plain term rows (list, or dict keyed by id).
    Rows with an unreadable season/year or course code are skipped with a warning.
    A course code appears at most once in the plan: terms are read in
    chronological order and the earliest entry for a code wins. A repeated
    term keeps its first record.
    """
    if isinstance(records, dict):
        records = list(records.values())

    readable: list[tuple[int, Season, dict]] = []
    for row in records or []:
        if not isinstance(row, dict):
            print(f"[WARN] Skipping non-object term record: {row!r}", file=sys.stderr)
            continue
        year = _safe_int(row.get("year"))
        try:
            season = Season(str(row.get("season") or "").strip().capitalize())
        except ValueError:
            season = None
        if year is None or season is None:
            print(f"[WARN] Skipping term record with bad year/season: {row.get('id')!r}", file=sys.stderr)
            continue
        readable.append((year, season, row))

    terms: dict[int, Term] = {}
    seen: set[str] = set()
    for year, season, row in sorted(readable, key=lambda r: term_id(r[0], r[1])):
        if term_id(year, season) in terms:
            print(f"[WARN] Skipping repeated term record: {season.value} {year}", file=sys.stderr)
            continue
        courses: list[PlannedCourse] = []
        for course_row in row.get("courses") or []:
            entry = _entry_from_record(course_row) if isinstance(course_row, dict) else None
            if entry is None:
                print(f"[WARN] Skipping unreadable course record: {course_row!r}", file=sys.stderr)
                continue
            if entry.code in seen:
                print(
                    f"[WARN] Skipping duplicate course {entry.code} in {season.value} {year}",
                    file=sys.stderr,
                )
                continue
            seen.add(entry.code)
            courses.append(entry)

        term = make_term(
            year,
            season,
            _safe_int(row.get("max_credits"), DEFAULT_MAX_CREDITS),
            courses,
        )
        terms[term.id] = term
    return PlanState(terms=terms)


def export_plan(plan: PlanState) -> str:
    return json.dumps(
        {
            "terms": plan_to_records(plan),
            "exported_at": datetime.now(timezone.utc).isoformat(),
            "version": EXPORT_VERSION,
        },
        indent=2,
    )


def import_plan(data: str) -> PlanState | None:
    """Inverse of export_plan(). Returns None (and logs) on malformed input."""
    try:
        payload = json.loads(data)
    except (TypeError, ValueError) as exc:
        print(f"[WARN] Failed to import plan: {exc}", file=sys.stderr)
        return None
    if not isinstance(payload, dict) or "terms" not in payload:
        print("[WARN] Invalid plan import: missing 'terms'", file=sys.stderr)
        return None
    return plan_from_records(payload["terms"])
