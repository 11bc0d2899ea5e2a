"""
Data gate for degree program reference data.

Checks that a program's categories are usable before the data is shipped:
every listed course exists in the catalog, choose-N thresholds can actually
be reached, and prerequisite cells resolve. Importable for tests and
runnable as a standalone CLI.

Usage:
    python scripts/validate_program.py --program BSCS
    python scripts/validate_program.py --program BSCS --path path/to/data
    python scripts/validate_program.py --all
"""

import argparse
import os
import sys

# Import backend modules (add backend/ to path)
sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), "..", "backend"))

from models import ChooseNCategory, DegreeProgram, ThresholdUnit  # noqa: E402
from prereq_parser import prereq_course_codes  # noqa: E402
from requirements import category_codes  # noqa: E402


# ── Validation result ─────────────────────────────────────────────────────────

class ValidationResult:
    """Collects errors and warnings for a single program validation run."""

    def __init__(self, program_id: str):
        self.program_id = program_id
        self.errors: list[str] = []
        self.warnings: list[str] = []

    def error(self, msg: str) -> None:
        self.errors.append(msg)

    def warn(self, msg: str) -> None:
        self.warnings.append(msg)

    @property
    def passed(self) -> bool:
        return len(self.errors) == 0

    def summary(self) -> str:
        status = "PASS" if self.passed else "FAIL"
        lines = [f"[{status}] Program '{self.program_id}'"]
        for e in self.errors:
            lines.append(f"  [ERROR] {e}")
        for w in self.warnings:
            lines.append(f"  [WARN]  {w}")
        if self.passed and not self.warnings:
            lines.append("  All checks passed.")
        return "\n".join(lines)


# ── Individual checks ─────────────────────────────────────────────────────────

def check_has_categories(program: DegreeProgram, result: ValidationResult) -> None:
    if not program.categories:
        result.error(f"No requirement categories defined for program '{program.id}'.")


def check_categories_have_courses(program: DegreeProgram, result: ValidationResult) -> None:
    for category in program.categories:
        if not category_codes(category):
            result.warn(f"Category '{category.id}' lists no courses; it is satisfied trivially.")


def check_no_orphan_courses(program: DegreeProgram, catalog: dict, result: ValidationResult) -> None:
    """Every listed course must exist in the catalog."""
    for category in program.categories:
        orphans = [c for c in category_codes(category) if c not in catalog]
        if orphans:
            result.error(f"Category '{category.id}' lists course(s) not in the catalog: {orphans}")


def check_threshold_reachable(program: DegreeProgram, catalog: dict, result: ValidationResult) -> None:
    """A choose-N threshold must be reachable from its own options."""
    for category in program.categories:
        if not isinstance(category, ChooseNCategory):
            continue
        if category.threshold == 0:
            result.warn(f"Category '{category.id}' has threshold 0; it is satisfied trivially.")
            continue
        if category.unit == ThresholdUnit.COURSES:
            available = len(category.options)
            unit = "course(s)"
        else:
            available = sum(catalog[c].credits for c in category.options if c in catalog)
            unit = "credit(s)"
        if available < category.threshold:
            result.error(
                f"Category '{category.id}' needs {category.threshold} {unit} "
                f"but its options only provide {available}."
            )


def check_exclusive_groups(program: DegreeProgram, result: ValidationResult) -> None:
    """An exclusive group with a single member has no effect; usually a typo."""
    members: dict[str, list[str]] = {}
    for category in program.categories:
        if category.exclusive_group:
            members.setdefault(category.exclusive_group, []).append(category.id)
    for group, ids in sorted(members.items()):
        if len(ids) == 1:
            result.warn(f"Exclusive group '{group}' has only one category ({ids[0]}).")


def check_prereqs_resolvable(program: DegreeProgram, catalog: dict, result: ValidationResult) -> None:
    """Prerequisites of program courses should point at catalog courses."""
    for code in sorted({c for cat in program.categories for c in category_codes(cat)}):
        record = catalog.get(code)
        if record is None:
            continue
        missing = [p for p in prereq_course_codes(record.prerequisites) if p not in catalog]
        if missing:
            result.warn(f"{code} has prerequisite(s) not in the catalog: {missing}")


# ── Main validate function ────────────────────────────────────────────────────

def validate_program(program: DegreeProgram, catalog: dict) -> ValidationResult:
    """Run all data gate checks for one program. Returns a ValidationResult."""
    result = ValidationResult(program.id)

    check_has_categories(program, result)
    check_categories_have_courses(program, result)
    check_no_orphan_courses(program, catalog, result)
    check_threshold_reachable(program, catalog, result)
    check_exclusive_groups(program, result)
    check_prereqs_resolvable(program, catalog, result)

    return result


# ── CLI entry point ───────────────────────────────────────────────────────────

def main(args=None):
    parser = argparse.ArgumentParser(
        description="Validate degree program data before shipping it.",
    )
    parser.add_argument("--program", type=str, help="Program ID to validate.")
    parser.add_argument("--all", action="store_true", help="Validate every program in the data.")
    parser.add_argument(
        "--path", type=str,
        default=os.path.join(os.path.dirname(__file__), "..", "data"),
        help="Path to the CSV data directory or .xlsx workbook.",
    )
    opts = parser.parse_args(args)

    if not opts.program and not opts.all:
        parser.error("Provide --program PROGRAM_ID or --all.")

    from data_loader import load_data

    data = load_data(opts.path)
    programs = data["programs"]

    if opts.all:
        program_ids = sorted(programs)
        if not program_ids:
            print("[INFO] No programs found in data.")
            return 0
    else:
        program_ids = [opts.program.strip().upper()]

    all_passed = True
    for pid in program_ids:
        program = programs.get(pid)
        if program is None:
            result = ValidationResult(pid)
            result.error(f"Program '{pid}' not found in programs sheet.")
        else:
            result = validate_program(program, data["catalog"])
        print(result.summary())
        if not result.passed:
            all_passed = False

    return 0 if all_passed else 1


if __name__ == "__main__":
    sys.exit(main())
