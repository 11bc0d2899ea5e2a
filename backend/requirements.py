import sys

import pandas as pd

from models import (
    CategoryKind,
    ChooseNCategory,
    DegreeProgram,
    FixedListCategory,
    ThresholdUnit,
)
from normalizer import normalize_code

# Credits assumed for a course the catalog does not know.
DEFAULT_COURSE_CREDITS = 3

_KIND_ALIASES = {
    "fixed-list": CategoryKind.FIXED_LIST,
    "fixed_list": CategoryKind.FIXED_LIST,
    "fixed": CategoryKind.FIXED_LIST,
    "required": CategoryKind.FIXED_LIST,
    "choose-n": CategoryKind.CHOOSE_N,
    "choose_n": CategoryKind.CHOOSE_N,
    "choose": CategoryKind.CHOOSE_N,
    "credits_pool": CategoryKind.CHOOSE_N,
    "elective": CategoryKind.CHOOSE_N,
}

_UNIT_ALIASES = {
    "credits": ThresholdUnit.CREDITS,
    "credit": ThresholdUnit.CREDITS,
    "hours": ThresholdUnit.CREDITS,
    "courses": ThresholdUnit.COURSES,
    "course": ThresholdUnit.COURSES,
    "count": ThresholdUnit.COURSES,
}


def _clean_str(val) -> str:
    if val is None or (isinstance(val, float) and pd.isna(val)):
        return ""
    return str(val).strip()


def _safe_int(val, default=None):
    try:
        if val is None or pd.isna(val):
            return default
        return int(val)
    except (TypeError, ValueError):
        return default


def parse_kind(raw) -> CategoryKind | None:
    return _KIND_ALIASES.get(_clean_str(raw).lower())


def parse_unit(raw) -> ThresholdUnit:
    return _UNIT_ALIASES.get(_clean_str(raw).lower(), ThresholdUnit.CREDITS)


def build_category(row: dict, course_codes) -> FixedListCategory | ChooseNCategory:
    """
    One Requirement Category from a category row plus its course codes.

    Unknown kinds and choose-N rows without a usable threshold fall back to a
    fixed list (every course required), the strictest reading of the data.
    """
    cid = _clean_str(row.get("category_id")) or _clean_str(row.get("id"))
    name = _clean_str(row.get("category_name")) or _clean_str(row.get("name")) or cid
    exclusive = _clean_str(row.get("exclusive_group")) or None
    codes = tuple(dict.fromkeys(c for c in (normalize_code(x) for x in course_codes) if c))

    kind = parse_kind(row.get("kind"))
    if kind is None:
        print(
            f"[WARN] Category '{cid}' has unknown kind {row.get('kind')!r}; treating as fixed-list.",
            file=sys.stderr,
        )
        kind = CategoryKind.FIXED_LIST

    if kind == CategoryKind.CHOOSE_N:
        threshold = _safe_int(row.get("threshold"))
        if threshold is None or threshold < 0:
            print(
                f"[WARN] Category '{cid}' is choose-N without a valid threshold; "
                "treating as fixed-list.",
                file=sys.stderr,
            )
        else:
            return ChooseNCategory(
                id=cid,
                name=name,
                options=codes,
                threshold=threshold,
                unit=parse_unit(row.get("unit")),
                exclusive_group=exclusive,
            )

    return FixedListCategory(id=cid, name=name, courses=codes, exclusive_group=exclusive)


def build_programs(
    programs_df: pd.DataFrame,
    categories_df: pd.DataFrame,
    category_courses_df: pd.DataFrame,
) -> dict[str, DegreeProgram]:
    """
    Assemble DegreeProgram values from the three program sheets.

    Categories keep sheet order unless a numeric `priority` column is present
    (smaller first, stable).
    """
    courses_by_category: dict[tuple[str, str], list[str]] = {}
    for _, row in category_courses_df.iterrows():
        pid = _clean_str(row.get("program_id")).upper()
        cid = _clean_str(row.get("category_id"))
        code = _clean_str(row.get("course_code"))
        if pid and cid and code:
            courses_by_category.setdefault((pid, cid), []).append(code)

    categories_df = categories_df.copy()
    if "priority" in categories_df.columns:
        sort_priority = pd.to_numeric(categories_df["priority"], errors="coerce").fillna(99)
        categories_df = categories_df.assign(_priority_sort=sort_priority).sort_values(
            "_priority_sort", kind="stable"
        )

    categories_by_program: dict[str, list] = {}
    for _, row in categories_df.iterrows():
        pid = _clean_str(row.get("program_id")).upper()
        cid = _clean_str(row.get("category_id"))
        if not pid or not cid:
            continue
        category = build_category(row.to_dict(), courses_by_category.get((pid, cid), []))
        categories_by_program.setdefault(pid, []).append(category)

    programs: dict[str, DegreeProgram] = {}
    for _, row in programs_df.iterrows():
        pid = _clean_str(row.get("program_id")).upper()
        if not pid:
            continue
        programs[pid] = DegreeProgram(
            id=pid,
            name=_clean_str(row.get("program_name")) or pid,
            categories=tuple(categories_by_program.get(pid, [])),
            total_credits=_safe_int(row.get("total_credits")),
        )

    orphans = sorted(set(categories_by_program) - set(programs))
    if orphans:
        print(f"[WARN] Categories reference unknown programs: {orphans}", file=sys.stderr)
    return programs


def category_codes(category) -> tuple:
    if isinstance(category, FixedListCategory):
        return category.courses
    return category.options


def program_course_codes(program: DegreeProgram) -> list[str]:
    """Every course code any category of the program mentions, in order."""
    codes: list[str] = []
    for category in program.categories:
        for code in category_codes(category):
            if code not in codes:
                codes.append(code)
    return codes
