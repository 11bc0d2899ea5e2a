import os

import pandas as pd

from models import CourseRecord
from normalizer import normalize_code
from prereq_parser import parse_prereqs, prereq_course_codes
from requirements import DEFAULT_COURSE_CREDITS, build_programs, program_course_codes

SHEETS = ("courses", "programs", "categories", "category_courses")
OPTIONAL_SHEETS = {"programs", "categories", "category_courses"}

_EMPTY_COLUMNS = {
    "programs": ["program_id", "program_name", "total_credits"],
    "categories": ["program_id", "category_id", "category_name", "kind", "threshold", "unit", "exclusive_group"],
    "category_courses": ["program_id", "category_id", "course_code"],
}


def _read_sheets(data_path: str) -> dict[str, pd.DataFrame]:
    """
    Reads the reference sheets from a directory of CSVs (courses.csv, ...)
    or from one .xlsx workbook. Raises FileNotFoundError / KeyError when
    the courses sheet is missing.
    """
    frames: dict[str, pd.DataFrame] = {}
    if os.path.isdir(data_path):
        for name in SHEETS:
            path = os.path.join(data_path, f"{name}.csv")
            if os.path.exists(path):
                frames[name] = pd.read_csv(path, dtype=str, keep_default_na=False)
            elif name not in OPTIONAL_SHEETS:
                raise FileNotFoundError(path)
    else:
        xl = pd.ExcelFile(data_path)
        for name in SHEETS:
            if name in xl.sheet_names:
                frames[name] = xl.parse(name, dtype=str).fillna("")
            elif name not in OPTIONAL_SHEETS:
                raise KeyError(f"Workbook {data_path} has no '{name}' sheet")

    for name, cols in _EMPTY_COLUMNS.items():
        if name not in frames:
            frames[name] = pd.DataFrame(columns=cols)
    return frames


def _credits(raw) -> int:
    try:
        value = int(float(raw))
    except (TypeError, ValueError):
        return DEFAULT_COURSE_CREDITS
    return value if value >= 0 else DEFAULT_COURSE_CREDITS


def build_catalog(courses_df: pd.DataFrame) -> dict[str, CourseRecord]:
    """code -> CourseRecord. Rows without a readable code are dropped with a warning."""
    catalog: dict[str, CourseRecord] = {}
    bad_rows = []
    for idx, row in courses_df.iterrows():
        code = normalize_code(row.get("course_code"))
        if code is None:
            bad_rows.append(idx)
            continue
        if code in catalog:
            print(f"[WARN] Duplicate catalog row for {code}; keeping the first.")
            continue
        catalog[code] = CourseRecord(
            code=code,
            credits=_credits(row.get("credits")),
            prerequisites=parse_prereqs(row.get("prerequisites")),
            corequisites=parse_prereqs(row.get("corequisites")),
            title=str(row.get("title", "") or "").strip(),
        )
    if bad_rows:
        print(f"[WARN] {len(bad_rows)} course row(s) without a readable course_code were skipped.")
    return catalog


def lookup_course(catalog: dict, code) -> CourseRecord | None:
    """Catalog lookup by any spelling of the code; None when unknown."""
    normalized = normalize_code(code)
    if normalized is None:
        return None
    return catalog.get(normalized)


def load_data(data_path: str) -> dict:
    """Load the catalog and degree programs. Raises on file/schema errors."""
    frames = _read_sheets(data_path)
    courses_df = frames["courses"]
    if "course_code" not in courses_df.columns:
        raise KeyError("courses sheet has no 'course_code' column")

    catalog = build_catalog(courses_df)
    programs = build_programs(frames["programs"], frames["categories"], frames["category_courses"])
    catalog_codes = set(catalog)

    # ── Startup data integrity checks ──────────────────────────────────────
    program_codes = {code for program in programs.values() for code in program_course_codes(program)}
    orphaned = program_codes - catalog_codes
    if orphaned:
        print(f"[WARN] {len(orphaned)} program course(s) not found in courses sheet: {sorted(orphaned)}")

    unresolved = sorted(
        code for code, record in catalog.items()
        for expr in (record.prerequisites, record.corequisites)
        if expr is not None and _has_unresolved_leaf(expr)
    )
    if unresolved:
        print(f"[WARN] {len(set(unresolved))} course(s) have unreadable prerequisite entries: {sorted(set(unresolved))}")

    dangling = sorted({
        p for record in catalog.values()
        for p in prereq_course_codes(record.prerequisites)
        if p not in catalog_codes
    })
    if dangling:
        print(f"[WARN] {len(dangling)} prerequisite code(s) not in the catalog: {dangling}")

    return {
        "courses_df": courses_df,
        "catalog": catalog,
        "catalog_codes": catalog_codes,
        "programs": programs,
    }


def _has_unresolved_leaf(expr) -> bool:
    children = getattr(expr, "children", None)
    if children is None:
        return not expr.code
    if not children:
        return True
    return any(_has_unresolved_leaf(c) for c in children)
