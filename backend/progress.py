import sys

from gpa import round_half_up
from models import (
    CategoryStatus,
    CourseStatus,
    ChooseNCategory,
    CourseRecord,
    DegreeProgram,
    FixedListCategory,
    ThresholdUnit,
)
from plan_state import all_entries
from requirements import DEFAULT_COURSE_CREDITS, category_codes


def _credit_lookup(credits_of):
    """
    Normalizes the credits source into a function code -> int.
    Accepts a catalog {code: CourseRecord}, a {code: credits} dict, or a callable.
    Unknown codes fall back to DEFAULT_COURSE_CREDITS and are warned about once.
    """
    warned: set[str] = set()

    def lookup(code: str) -> int:
        if callable(credits_of):
            value = credits_of(code)
        elif credits_of is not None:
            value = credits_of.get(code)
        else:
            value = None
        if isinstance(value, CourseRecord):
            value = value.credits
        try:
            if value is not None and int(value) >= 0:
                return int(value)
        except (TypeError, ValueError):
            pass
        if code not in warned:
            warned.add(code)
            print(
                f"[WARN] No credit data for {code}; assuming {DEFAULT_COURSE_CREDITS}.",
                file=sys.stderr,
            )
        return DEFAULT_COURSE_CREDITS

    return lookup


def _required_credits(category, credits) -> int:
    """Weight of a category in the overall percentage."""
    if isinstance(category, FixedListCategory):
        return sum(credits(c) for c in category.courses)
    if category.unit == ThresholdUnit.CREDITS:
        return category.threshold
    options = [credits(c) for c in category.options]
    per_course = (sum(options) / len(options)) if options else DEFAULT_COURSE_CREDITS
    return int(round_half_up(category.threshold * per_course, 0))


def _status(done: float, needed: float) -> CategoryStatus:
    if done >= needed:
        return CategoryStatus.SATISFIED
    if done > 0:
        return CategoryStatus.PARTIAL
    return CategoryStatus.UNSATISFIED


def _evaluate_fixed_list(category: FixedListCategory, available, in_flight, credits, earned) -> dict:
    applied = [c for c in category.courses if c in available]
    in_progress = [c for c in category.courses if c not in available and c in in_flight]
    remaining = [c for c in category.courses if c not in available and c not in in_flight]

    required_credits = _required_credits(category, credits)
    completed_credits = sum(earned(c) for c in applied)
    status = _status(len(applied), len(category.courses))
    return {
        "status": status,
        "applied_courses": applied,
        "in_progress_courses": in_progress,
        "remaining_courses": remaining,
        "completed_count": len(applied),
        "required_count": len(category.courses),
        "completed_credits": completed_credits,
        "required_credits": required_credits,
        "contributed_credits": min(completed_credits, required_credits),
        "in_progress_credits": sum(earned(c) for c in in_progress),
        "notes": [],
    }


def _evaluate_choose_n(category: ChooseNCategory, available, in_flight, credits, earned) -> dict:
    by_credits = category.unit == ThresholdUnit.CREDITS
    threshold = category.threshold
    applied: list[str] = []
    notes: list[str] = []
    running = 0

    # Option order decides which completed courses fill the bucket.
    for code in category.options:
        if code not in available:
            continue
        if running >= threshold:
            notes.append(
                f"{code} could also count toward {category.name} "
                "but that requirement is already satisfied."
            )
            continue
        applied.append(code)
        running += earned(code) if by_credits else 1

    in_progress = [c for c in category.options if c not in available and c in in_flight]
    remaining = [c for c in category.options if c not in available and c not in in_flight]

    capped = min(running, threshold)
    required_credits = _required_credits(category, credits)
    applied_credits = sum(earned(c) for c in applied)
    if by_credits:
        contributed = capped
    else:
        contributed = (capped / threshold) * required_credits if threshold else 0

    return {
        "status": _status(capped, threshold),
        "applied_courses": applied,
        "in_progress_courses": in_progress,
        "remaining_courses": remaining,
        "completed_count": len(applied) if by_credits else capped,
        "required_count": None if by_credits else threshold,
        "completed_credits": capped if by_credits else applied_credits,
        "required_credits": required_credits,
        "contributed_credits": contributed,
        "in_progress_credits": sum(earned(c) for c in in_progress),
        "notes": notes,
    }


def evaluate_progress(
    program,
    completed,
    in_flight=(),
    credits_of=None,
    earned_credits_of=None,
) -> dict:
    """
    Per-category and overall progress of a degree program.

    `program` is a DegreeProgram or a sequence of categories. Completed courses
    count toward satisfaction; in-flight (planned/in-progress) courses only
    feed `in_progress_credits`. A course counts in every category listing it,
    except that categories sharing an `exclusive_group` consume it once, in
    category order.

    Category weights (required credits) always come from `credits_of`, the
    catalog credits. `earned_credits_of`, when given, supplies what a taken or
    planned course actually counts for (completed, in-progress and choose-N
    running totals); it defaults to `credits_of`.

    Overall percent = sum(capped contributed credits) / sum(required credits),
    as a 0-100 integer.
    """
    categories = program.categories if isinstance(program, DegreeProgram) else tuple(program or ())
    completed_set = set(completed or ())
    in_flight_set = set(in_flight or ()) - completed_set
    credits = _credit_lookup(credits_of)
    earned = _credit_lookup(earned_credits_of) if earned_credits_of is not None else credits

    used_by_group: dict[str, set[str]] = {}
    applied_to: dict[str, list[str]] = {}
    rows: list[dict] = []
    notes: list[str] = []

    for category in categories:
        group = getattr(category, "exclusive_group", None)
        available = completed_set - used_by_group.get(group, set()) if group else completed_set

        if isinstance(category, FixedListCategory):
            result = _evaluate_fixed_list(category, available, in_flight_set, credits, earned)
        elif isinstance(category, ChooseNCategory):
            result = _evaluate_choose_n(category, available, in_flight_set, credits, earned)
        else:
            print(f"[WARN] Skipping unknown requirement category: {category!r}", file=sys.stderr)
            continue

        if group:
            used_by_group.setdefault(group, set()).update(result["applied_courses"])
        for code in result["applied_courses"]:
            applied_to.setdefault(code, []).append(category.id)
        notes.extend(result.pop("notes"))

        required = result["required_credits"]
        contributed = result["contributed_credits"]
        remaining_count = None
        if result["required_count"] is not None:
            remaining_count = max(0, result["required_count"] - result["completed_count"])
        rows.append({
            "id": category.id,
            "name": category.name,
            "kind": category.kind.value,
            **result,
            "status": result["status"].value,
            "remaining_credits": max(0, required - contributed),
            "remaining_count": remaining_count,
            "percent": int(round_half_up(contributed / required * 100, 0)) if required else 100,
            "all_courses": list(category_codes(category)),
        })

    total_required = sum(r["required_credits"] for r in rows)
    total_contributed = sum(r["contributed_credits"] for r in rows)
    overall = int(round_half_up(total_contributed / total_required * 100, 0)) if total_required else 0

    return {
        "categories": rows,
        "overall_percent": overall,
        "total_required_credits": total_required,
        "total_contributed_credits": total_contributed,
        "double_counted_courses": [
            {"course_code": code, "categories": cats}
            for code, cats in applied_to.items()
            if len(cats) > 1
        ],
        "notes": notes,
    }


def evaluate_plan_progress(program, plan, catalog=None) -> dict:
    """
    evaluate_progress() fed from a PlanState. Category weights come from the
    catalog; what each taken or planned course counts for comes from its plan
    entry, falling back to the catalog.
    """
    entries = all_entries(plan)
    completed = [e.code for e in entries if e.status == CourseStatus.COMPLETED]
    in_flight = [e.code for e in entries if e.status != CourseStatus.COMPLETED]
    plan_credits = {e.code: e.earned if e.status == CourseStatus.COMPLETED else e.credits for e in entries}

    def earned_credits_of(code):
        if code in plan_credits:
            return plan_credits[code]
        if catalog is not None:
            return catalog.get(code)
        return None

    return evaluate_progress(program, completed, in_flight, catalog, earned_credits_of)
