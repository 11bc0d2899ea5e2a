"""
Shared value types for the planner engine.

Everything here is immutable. Plan edits build new Term / PlanState values
(see plan_state.py) instead of mutating these in place.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Union


class Season(Enum):
    FALL = "Fall"
    SPRING = "Spring"
    SUMMER = "Summer"

    @property
    def rank(self) -> int:
        # Academic-year ordering: Fall starts the year.
        return _SEASON_RANK[self]


_SEASON_RANK = {Season.FALL: 0, Season.SPRING: 1, Season.SUMMER: 2}


class CourseStatus(Enum):
    COMPLETED = "completed"
    IN_PROGRESS = "in-progress"
    PLANNED = "planned"


class GroupOp(Enum):
    AND = "AND"
    OR = "OR"


class CategoryKind(Enum):
    FIXED_LIST = "fixed-list"
    CHOOSE_N = "choose-N"


class ThresholdUnit(Enum):
    CREDITS = "credits"
    COURSES = "courses"


class CategoryStatus(Enum):
    SATISFIED = "satisfied"
    PARTIAL = "partially-satisfied"
    UNSATISFIED = "unsatisfied"


# ── Prerequisite expressions ─────────────────────────────────────────────────

@dataclass(frozen=True)
class Leaf:
    # code is None when the catalog cell could not be resolved to a course.
    code: str | None
    min_grade: str | None = None
    raw: str = ""


@dataclass(frozen=True)
class Group:
    op: GroupOp
    children: tuple = ()
    raw: str = ""


PrereqExpr = Union[Leaf, Group]


# ── Catalog / plan records ───────────────────────────────────────────────────

@dataclass(frozen=True)
class CourseRecord:
    code: str
    credits: int = 3
    prerequisites: PrereqExpr | None = None
    corequisites: PrereqExpr | None = None
    title: str = ""


@dataclass(frozen=True)
class PlannedCourse:
    code: str
    credits: int = 3
    status: CourseStatus = CourseStatus.PLANNED
    grade: str | None = None
    credits_earned: int | None = None

    @property
    def earned(self) -> int:
        """Credits actually earned; falls back to nominal credits."""
        if self.credits_earned is None:
            return self.credits
        return self.credits_earned


@dataclass(frozen=True)
class Term:
    id: int
    year: int
    season: Season
    courses: tuple = ()
    max_credits: int = 18

    @property
    def sort_key(self) -> tuple[int, int]:
        return (self.year, self.season.rank)

    @property
    def label(self) -> str:
        return f"{self.season.value} {self.year}"

    def find(self, code: str) -> PlannedCourse | None:
        for entry in self.courses:
            if entry.code == code:
                return entry
        return None


@dataclass(frozen=True)
class PlanState:
    # term id -> Term
    terms: dict = field(default_factory=dict)


# ── Degree program reference data ────────────────────────────────────────────

@dataclass(frozen=True)
class FixedListCategory:
    id: str
    name: str
    courses: tuple = ()
    exclusive_group: str | None = None

    @property
    def kind(self) -> CategoryKind:
        return CategoryKind.FIXED_LIST


@dataclass(frozen=True)
class ChooseNCategory:
    id: str
    name: str
    options: tuple = ()
    threshold: int = 0
    unit: ThresholdUnit = ThresholdUnit.CREDITS
    exclusive_group: str | None = None

    @property
    def kind(self) -> CategoryKind:
        return CategoryKind.CHOOSE_N


RequirementCategory = Union[FixedListCategory, ChooseNCategory]


@dataclass(frozen=True)
class DegreeProgram:
    id: str
    name: str
    categories: tuple = ()
    total_credits: int | None = None


# ── Results ──────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Verdict:
    can_add: bool
    missing_prerequisites: tuple = ()
    warnings: tuple = ()

    @property
    def is_blocked(self) -> bool:
        return bool(self.missing_prerequisites) or bool(self.warnings)

    def to_dict(self) -> dict:
        return {
            "can_add": self.can_add,
            "missing_prerequisites": list(self.missing_prerequisites),
            "warnings": list(self.warnings),
            "is_blocked": self.is_blocked,
        }
