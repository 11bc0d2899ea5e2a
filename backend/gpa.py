import math
from decimal import Decimal, ROUND_HALF_UP

from grade_points import grade_points
from models import CourseStatus, PlannedCourse
from plan_state import sorted_terms

# A term-over-term change larger than this counts as a trend.
TREND_THRESHOLD = 0.1
MAX_GPA = 4.0


def round_half_up(value: float, places: int = 2) -> float:
    """Standard rounding (0.125 -> 0.13), not banker's rounding or truncation."""
    quant = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quant, rounding=ROUND_HALF_UP))


def _credits_and_grade(course) -> tuple[float, str | None] | None:
    """
    Reads (credits, grade) from a PlannedCourse, a dict, or a (credits, grade) pair.
    Planned/in-progress entries are not graded yet and return None.
    """
    if isinstance(course, PlannedCourse):
        if course.status != CourseStatus.COMPLETED:
            return None
        return course.earned, course.grade
    if isinstance(course, dict):
        status = course.get("status")
        if status not in (None, CourseStatus.COMPLETED.value, CourseStatus.COMPLETED):
            return None
        credits = course.get("credits_earned")
        if credits is None:
            credits = course.get("credits")
        return credits, course.get("grade")
    try:
        credits, grade = course
    except (TypeError, ValueError):
        return None
    return credits, grade


def quality_totals(courses) -> tuple[float, float]:
    """
    Returns (quality_points, credits) over the gradeable courses.

    Skipped, not counted as F: unknown/missing grades and zero, negative,
    non-finite or non-numeric credits.
    """
    total_points = 0.0
    total_credits = 0.0
    for course in courses or []:
        pair = _credits_and_grade(course)
        if pair is None:
            continue
        credits, grade = pair
        try:
            credits = float(credits)
        except (TypeError, ValueError):
            continue
        if not math.isfinite(credits) or credits <= 0:
            continue
        points = grade_points(grade)
        if points is None:
            continue
        total_points += points * credits
        total_credits += credits
    return total_points, total_credits


def _gpa_from_totals(points: float, credits: float) -> float:
    if credits <= 0:
        return 0
    return round_half_up(points / credits)


def semester_gpa(courses) -> float:
    """GPA for one term's courses, rounded to 2 places. 0 when nothing is gradeable."""
    points, credits = quality_totals(courses)
    return _gpa_from_totals(points, credits)


def cumulative_gpa(terms) -> float:
    """
    GPA pooled across terms (total quality points / total credits), not an
    average of term GPAs. Accepts Term values or plain iterables of courses.
    """
    points = 0.0
    credits = 0.0
    for term in terms or []:
        courses = getattr(term, "courses", term)
        if isinstance(term, dict):
            courses = term.get("courses", [])
        p, c = quality_totals(courses)
        points += p
        credits += c
    return _gpa_from_totals(points, credits)


def analyze_trend(term_gpas: list[float]) -> dict:
    """
    Direction of the last term-over-term change plus a naive projection.
    Projection = last GPA + mean slope of the last three terms, clamped to [0, 4].
    """
    if not term_gpas:
        return {
            "direction": "stable",
            "change_from_last_term": 0,
            "average_gpa": 0,
            "projected_next_term": 0,
        }
    if len(term_gpas) == 1:
        return {
            "direction": "stable",
            "change_from_last_term": 0,
            "average_gpa": term_gpas[0],
            "projected_next_term": term_gpas[0],
        }

    average = sum(term_gpas) / len(term_gpas)
    change = term_gpas[-1] - term_gpas[-2]
    direction = "stable"
    if abs(change) > TREND_THRESHOLD:
        direction = "improving" if change > 0 else "declining"

    recent = term_gpas[-3:]
    slope = (recent[-1] - recent[0]) / (len(recent) - 1)
    projected = max(0.0, min(MAX_GPA, term_gpas[-1] + slope))

    return {
        "direction": direction,
        "change_from_last_term": round_half_up(change),
        "average_gpa": round_half_up(average),
        "projected_next_term": round_half_up(projected),
    }


def gpa_summary(plan) -> dict:
    """
    Per-term GPA rows (chronological), cumulative GPA, and trend for a plan.
    Terms with no graded courses are left out of the rows and the trend.
    """
    rows = []
    total_points = 0.0
    total_credits = 0.0
    for term in sorted_terms(plan):
        points, credits = quality_totals(term.courses)
        if credits <= 0:
            continue
        total_points += points
        total_credits += credits
        rows.append({
            "term_id": term.id,
            "term": term.label,
            "gpa": _gpa_from_totals(points, credits),
            "credits": credits,
            "quality_points": points,
        })

    return {
        "cumulative_gpa": _gpa_from_totals(total_points, total_credits),
        "total_credits": total_credits,
        "quality_points": total_points,
        "terms": rows,
        "trend": analyze_trend([r["gpa"] for r in rows]),
    }


def required_gpa(
    current_quality_points: float,
    current_credits: float,
    target_gpa: float,
    remaining_terms: int,
    credits_per_term: int = 15,
) -> dict:
    """
    GPA needed over the remaining terms to finish at `target_gpa`.

    Returns {"required_gpa", "is_achievable", "analysis"}; required_gpa is
    clamped to [0, 4] while is_achievable reflects the unclamped value.
    """
    future_credits = max(0, remaining_terms) * credits_per_term
    if current_credits <= 0:
        return {
            "required_gpa": target_gpa,
            "is_achievable": 0 <= target_gpa <= MAX_GPA,
            "analysis": f"You need to maintain a {target_gpa:.2f} GPA to reach your target.",
        }
    if future_credits <= 0:
        current = current_quality_points / current_credits
        return {
            "required_gpa": 0,
            "is_achievable": current >= target_gpa,
            "analysis": f"No remaining terms; your GPA is {current:.2f}.",
        }

    needed_points = target_gpa * (current_credits + future_credits) - current_quality_points
    needed = needed_points / future_credits
    achievable = needed <= MAX_GPA

    if needed < 0:
        analysis = (
            f"Your current GPA already exceeds the {target_gpa:.2f} target."
        )
    elif needed > MAX_GPA:
        analysis = (
            f"A {target_gpa:.2f} GPA is not reachable: it would take a "
            f"{needed:.2f} GPA over the remaining terms."
        )
    else:
        analysis = (
            f"To reach a {target_gpa:.2f} GPA, maintain a {needed:.2f} GPA "
            f"over the next {remaining_terms} terms."
        )

    return {
        "required_gpa": round_half_up(max(0.0, min(MAX_GPA, needed))),
        "is_achievable": achievable,
        "analysis": analysis,
    }
