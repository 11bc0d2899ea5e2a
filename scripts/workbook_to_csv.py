"""
Split a planner workbook (.xlsx) into the data/ directory of CSV files the
server reads by default.

Usage:
    python scripts/workbook_to_csv.py --src planner.xlsx [--out DIR]

Only the known sheets are written; anything else in the workbook is listed
and skipped. Cells are kept as text so codes like "MATH 1551" and JSON
prerequisite cells round-trip unchanged.
"""

import argparse
import os
import sys

import pandas as pd

sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), "..", "backend"))

from data_loader import OPTIONAL_SHEETS, SHEETS  # noqa: E402


def workbook_to_csv(src: str, out_dir: str) -> list[str]:
    """Write one CSV per known sheet. Returns the paths written."""
    if not os.path.isfile(src):
        print(f"[FATAL] Source file not found: {src}", file=sys.stderr)
        sys.exit(1)

    xl = pd.ExcelFile(src)
    missing = [s for s in SHEETS if s not in xl.sheet_names and s not in OPTIONAL_SHEETS]
    if missing:
        print(f"[FATAL] Workbook has no {missing} sheet(s)", file=sys.stderr)
        sys.exit(1)

    os.makedirs(out_dir, exist_ok=True)
    written = []
    for sheet in xl.sheet_names:
        if sheet not in SHEETS:
            print(f"[WARN] Skipping unknown sheet '{sheet}'", file=sys.stderr)
            continue
        df = xl.parse(sheet, dtype=str).fillna("")
        dest = os.path.join(out_dir, f"{sheet}.csv")
        df.to_csv(dest, index=False)
        written.append(dest)
        print(f"[OK]   {sheet} → {dest}  ({len(df)} rows)")

    print(f"[INFO] {len(written)} CSVs written to '{out_dir}'")
    return written


if __name__ == "__main__":
    repo_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    parser = argparse.ArgumentParser(description="Split a planner workbook into CSV files.")
    parser.add_argument("--src", required=True, help="Source xlsx file")
    parser.add_argument(
        "--out",
        default=os.path.join(repo_root, "data"),
        help="Output directory for CSV files",
    )
    args = parser.parse_args()
    workbook_to_csv(args.src, args.out)
