import pytest

from gpa import (
    analyze_trend,
    cumulative_gpa,
    gpa_summary,
    quality_totals,
    required_gpa,
    round_half_up,
    semester_gpa,
)
from grade_points import grade_points, meets_minimum_grade, normalize_grade
from models import CourseStatus, PlannedCourse


class TestGradePoints:
    @pytest.mark.parametrize("grade,points", [("A", 4), ("B", 3), ("C", 2), ("D", 1), ("F", 0)])
    def test_table(self, grade, points):
        assert grade_points(grade) == points

    def test_lowercase_and_whitespace(self):
        assert grade_points(" b ") == 3
        assert normalize_grade("a") == "A"

    def test_unknown_grade_has_no_points(self):
        assert grade_points("P") is None
        assert grade_points("") is None
        assert grade_points(None) is None

    def test_minimum_grade(self):
        assert meets_minimum_grade("B", "C") is True
        assert meets_minimum_grade("C", "C") is True
        assert meets_minimum_grade("D", "C") is False

    def test_unknown_grade_never_meets_known_minimum(self):
        assert meets_minimum_grade("W", "C") is False

    def test_unknown_minimum_imposes_nothing(self):
        assert meets_minimum_grade("F", None) is True


class TestRounding:
    def test_half_up_not_bankers(self):
        assert round_half_up(0.125) == 0.13
        assert round_half_up(2.675) == 2.68

    def test_zero_places(self):
        assert round_half_up(49.5, 0) == 50


class TestSemesterGpa:
    def test_a_and_b_three_credits_each(self):
        assert semester_gpa([(3, "A"), (3, "B")]) == 3.5

    def test_credit_weighted(self):
        # (4*3 + 3*4) / 7 = 3.428...
        assert semester_gpa([(3, "A"), (4, "B")]) == 3.43

    def test_no_courses_is_zero(self):
        assert semester_gpa([]) == 0

    def test_zero_total_credits_is_zero(self):
        assert semester_gpa([(0, "A"), (0, "B")]) == 0

    def test_unknown_grade_skipped_not_failed(self):
        assert semester_gpa([(3, "A"), (3, "P")]) == 4.0

    def test_negative_and_non_numeric_credits_skipped(self):
        assert semester_gpa([(3, "B"), (-3, "F"), ("three", "F")]) == 3.0

    def test_nan_and_infinite_credits_skipped(self):
        assert semester_gpa([(float("nan"), "A"), (3, "B")]) == 3.0
        assert semester_gpa([(float("inf"), "F"), ("nan", "A"), (3, "B")]) == 3.0
        assert quality_totals([(float("-inf"), "A"), (3, "B")]) == (9.0, 3.0)

    def test_planned_entries_not_graded(self):
        courses = [
            PlannedCourse("CS 1301", 3, CourseStatus.COMPLETED, "A"),
            PlannedCourse("CS 1331", 3, CourseStatus.PLANNED),
            PlannedCourse("CS 1332", 3, CourseStatus.IN_PROGRESS),
        ]
        assert quality_totals(courses) == (12.0, 3.0)

    def test_credits_earned_overrides_nominal(self):
        courses = [PlannedCourse("CS 1301", 3, CourseStatus.COMPLETED, "A", credits_earned=4)]
        assert quality_totals(courses) == (16.0, 4.0)

    def test_dict_courses(self):
        courses = [
            {"credits": 3, "grade": "A", "status": "completed"},
            {"credits": 3, "grade": "C"},
            {"credits": 3, "grade": "F", "status": "planned"},
        ]
        assert semester_gpa(courses) == 3.0


class TestCumulativeGpa:
    def test_pooled_not_averaged(self):
        # 16 + 2 points over 5 credits, not the mean of 4.0 and 2.0
        assert cumulative_gpa([[(4, "A")], [(1, "C")]]) == 3.6

    def test_accepts_term_dicts(self):
        terms = [{"courses": [(3, "A")]}, {"courses": [(3, "B")]}]
        assert cumulative_gpa(terms) == 3.5

    def test_empty(self):
        assert cumulative_gpa([]) == 0


class TestTrend:
    def test_empty(self):
        assert analyze_trend([])["direction"] == "stable"

    def test_single_term(self):
        trend = analyze_trend([3.2])
        assert trend["direction"] == "stable"
        assert trend["projected_next_term"] == 3.2

    def test_improving(self):
        trend = analyze_trend([3.0, 3.5])
        assert trend["direction"] == "improving"
        assert trend["change_from_last_term"] == 0.5

    def test_declining(self):
        assert analyze_trend([3.5, 3.0])["direction"] == "declining"

    def test_small_change_is_stable(self):
        assert analyze_trend([3.5, 3.45])["direction"] == "stable"

    def test_projection_uses_recent_slope(self):
        assert analyze_trend([3.0, 3.2, 3.4])["projected_next_term"] == 3.6

    def test_projection_clamped(self):
        assert analyze_trend([3.8, 4.0])["projected_next_term"] == 4.0


class TestGpaSummary:
    def test_plan_summary(self, make_plan):
        plan = make_plan(
            ("Fall", 2024, [("CS 1301", "completed", "A"), ("MATH 1551", "completed", "B")]),
            ("Spring", 2024, [("CS 1331", "completed", "C"), ("ENGL 1101", "completed", "A")]),
            ("Fall", 2025, ["CS 1332"]),
        )
        summary = gpa_summary(plan)
        assert summary["cumulative_gpa"] == 3.25
        assert summary["total_credits"] == 12
        assert [r["term"] for r in summary["terms"]] == ["Fall 2024", "Spring 2024"]
        assert [r["gpa"] for r in summary["terms"]] == [3.5, 3.0]
        assert summary["trend"]["direction"] == "declining"

    def test_empty_plan(self, make_plan):
        summary = gpa_summary(make_plan())
        assert summary["cumulative_gpa"] == 0
        assert summary["terms"] == []


class TestRequiredGpa:
    def test_reachable_target(self):
        result = required_gpa(30, 10, 3.5, 2, 15)
        assert result["required_gpa"] == 3.67
        assert result["is_achievable"] is True

    def test_unreachable_target_is_clamped(self):
        result = required_gpa(20, 10, 4.0, 1, 15)
        assert result["required_gpa"] == 4.0
        assert result["is_achievable"] is False
        assert "not reachable" in result["analysis"]

    def test_already_above_target(self):
        result = required_gpa(40, 10, 1.0, 1, 15)
        assert result["required_gpa"] == 0
        assert result["is_achievable"] is True

    def test_no_history(self):
        result = required_gpa(0, 0, 3.0, 4)
        assert result["required_gpa"] == 3.0
        assert result["is_achievable"] is True

    def test_no_remaining_terms(self):
        result = required_gpa(30, 10, 3.5, 0)
        assert result["is_achievable"] is False
