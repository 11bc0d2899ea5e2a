from prereq_parser import prereq_course_codes
from prereq_resolver import partition_plan, resolve_requirements
from requirements import program_course_codes


def build_reverse_prereq_map(catalog: dict) -> dict[str, list[str]]:
    """
    For each course, which catalog courses list it directly as a prerequisite.

    Returns: {"CS 1331": ["CS 1332", "CS 2340"], ...}

    Only direct prerequisites (one level deep). No transitive graph traversal.
    """
    reverse: dict[str, list[str]] = {}
    for code in sorted(catalog):
        record = catalog[code]
        for prereq_code in prereq_course_codes(record.prerequisites):
            reverse.setdefault(prereq_code, [])
            if code not in reverse[prereq_code]:
                reverse[prereq_code].append(code)
    return reverse


def get_direct_unlocks(
    course_code: str,
    reverse_map: dict[str, list[str]],
    limit: int = 3,
) -> list[str]:
    """
    Returns up to `limit` courses directly unlocked by completing `course_code`.
    A course is "unlocked" if it lists `course_code` as a direct prerequisite.
    """
    return reverse_map.get(course_code, [])[:limit]


def recommend_courses(program, catalog: dict, plan) -> list[str]:
    """
    Program courses not yet anywhere in the plan whose prerequisites are met
    by completed or planned courses. Sorted by code.
    """
    completed, in_flight = partition_plan(plan)
    recommended = []
    for code in program_course_codes(program):
        if code in completed or code in in_flight:
            continue
        record = catalog.get(code)
        if record is None:
            continue
        missing, _ = resolve_requirements(record.prerequisites, completed, in_flight)
        if not missing:
            recommended.append(code)
    return sorted(recommended)
