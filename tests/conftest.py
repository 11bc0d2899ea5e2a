import sys
import os

import pytest

# Add backend/ to path so tests can import backend modules directly
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "backend"))

# Add scripts/ to path so tests can import script modules directly
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "scripts"))

FIXTURE_DATA = os.path.join(os.path.dirname(os.path.abspath(__file__)), "fixtures", "data")

# server.py loads its dataset at import time; point it at the fixture CSVs.
os.environ["DATA_PATH"] = FIXTURE_DATA

from data_loader import load_data  # noqa: E402
from plan_state import plan_from_records  # noqa: E402


@pytest.fixture(scope="session")
def fixture_data():
    return load_data(FIXTURE_DATA)


@pytest.fixture(scope="session")
def catalog(fixture_data):
    return fixture_data["catalog"]


@pytest.fixture(scope="session")
def programs(fixture_data):
    return fixture_data["programs"]


@pytest.fixture
def make_plan(catalog):
    """
    Build a PlanState from (season, year, courses) tuples without going
    through the resolver, so tests can set up any history they need.

    Each course is a code, or a (code, status[, grade]) tuple:
        make_plan(("Fall", 2024, [("CS 1301", "completed", "A"), "CS 1331"]))
    """
    def _make(*terms):
        records = []
        for season, year, courses in terms:
            rows = []
            for entry in courses:
                if isinstance(entry, str):
                    entry = (entry,)
                code, status, grade = (tuple(entry) + (None, None))[:3]
                record = catalog.get(code)
                rows.append({
                    "code": code,
                    "credits": record.credits if record else 3,
                    "status": status or "planned",
                    "grade": grade,
                })
            records.append({"season": season, "year": year, "courses": rows})
        return plan_from_records(records)

    return _make
