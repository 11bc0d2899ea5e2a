GRADE_POINTS = {"A": 4, "B": 3, "C": 2, "D": 1, "F": 0}


def normalize_grade(grade) -> str | None:
    if grade is None:
        return None
    g = str(grade).strip().upper()
    return g if g in GRADE_POINTS else None


def grade_points(grade) -> int | None:
    """Point value for a letter grade, or None when the grade is unknown/empty."""
    g = normalize_grade(grade)
    if g is None:
        return None
    return GRADE_POINTS[g]


def meets_minimum_grade(grade, minimum) -> bool:
    """
    True if `grade` is at or above `minimum`.
    An unknown minimum imposes nothing; an unknown grade never meets a known one.
    """
    min_points = grade_points(minimum)
    if min_points is None:
        return True
    points = grade_points(grade)
    if points is None:
        return False
    return points >= min_points
