"""
HTTP contract tests. conftest.py points DATA_PATH at tests/fixtures/data
before server.py is imported, so these run against the fixture catalog.
"""

import json

import pytest

import server


@pytest.fixture(scope="module")
def client():
    server.app.config["TESTING"] = True
    with server.app.test_client() as c:
        yield c


def post(client, url, payload):
    resp = client.post(url, data=json.dumps(payload), content_type="application/json")
    return resp.status_code, resp.get_json()


def term(season, year, *courses):
    return {
        "season": season,
        "year": year,
        "courses": [
            {"code": c[0], "credits": 3, "status": c[1], "grade": c[2] if len(c) > 2 else None}
            for c in courses
        ],
    }


FIRST_YEAR = [
    term("Fall", 2024, ("CS 1301", "completed", "A"), ("MATH 1551", "completed", "B")),
    term("Spring", 2024, ("CS 1331", "planned")),
]


def assert_error(status, data, expected_status, error_code):
    assert status == expected_status
    assert data["mode"] == "error"
    assert data["error"]["error_code"] == error_code
    assert data["error"]["message"]


class TestHealth:
    @pytest.mark.parametrize("url", ["/health", "/api/health"])
    def test_health(self, client, url):
        resp = client.get(url)
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["status"] == "ok"
        assert data["courses_loaded"] == 18
        assert data["programs_loaded"] == 2

    def test_security_headers(self, client):
        resp = client.get("/api/health")
        assert resp.headers["X-Frame-Options"] == "DENY"
        assert resp.headers["X-Content-Type-Options"] == "nosniff"


class TestPrograms:
    def test_lists_programs(self, client):
        data = client.get("/api/programs").get_json()
        assert [p["program_id"] for p in data["programs"]] == ["BSCS", "CSMIN"]
        assert data["programs"][0]["category_count"] == 6


class TestCanAdd:
    def test_pending_prereq(self, client):
        status, data = post(client, "/api/can-add", {"course": "cs1332", "plan": FIRST_YEAR})
        assert status == 200
        assert data["course"] == "CS 1332"
        assert data["can_add"] is True
        assert data["missing_prerequisites"] == []
        assert data["warnings"] == ["Prerequisites planned but not completed: CS 1331"]
        assert data["is_blocked"] is True
        assert isinstance(data["unlocks"], list)

    def test_already_planned(self, client):
        _, data = post(client, "/api/can-add", {"course": "CS 1331", "plan": FIRST_YEAR})
        assert data["can_add"] is False
        assert data["warnings"] == ["Course is already planned"]

    def test_missing_or_group(self, client):
        _, data = post(client, "/api/can-add", {"course": "CS 2050", "plan": []})
        assert data["missing_prerequisites"] == ["One of: MATH 1551, MATH 1501"]

    def test_unknown_course(self, client):
        _, data = post(client, "/api/can-add", {"course": "CS 9999", "plan": []})
        assert data["can_add"] is False
        assert data["missing_prerequisites"] == ["Prerequisite data unavailable for CS 9999"]

    def test_plan_defaults_to_empty(self, client):
        status, data = post(client, "/api/can-add", {"course": "CS 1301"})
        assert status == 200
        assert data["is_blocked"] is False
        assert data["unlocks"] == ["CS 1331", "CS 1332"]

    def test_missing_course(self, client):
        assert_error(*post(client, "/api/can-add", {"plan": []}), 400, "INVALID_INPUT")

    def test_unreadable_course(self, client):
        assert_error(*post(client, "/api/can-add", {"course": "hello"}), 400, "INVALID_INPUT")

    def test_plan_must_be_list(self, client):
        assert_error(*post(client, "/api/can-add", {"course": "CS 1301", "plan": "x"}), 400, "INVALID_INPUT")

    def test_bad_json(self, client):
        resp = client.post("/api/can-add", data="not-json", content_type="application/json")
        assert_error(resp.status_code, resp.get_json(), 400, "INVALID_INPUT")


class TestPlanEdits:
    def test_add(self, client):
        status, data = post(client, "/api/plan/add", {
            "course": "CS 1332", "term_id": 202500, "plan": FIRST_YEAR + [term("Fall", 2025)],
        })
        assert status == 200
        assert data["verdict"]["can_add"] is True
        fall_2025 = next(t for t in data["plan"] if t["id"] == 202500)
        assert [c["code"] for c in fall_2025["courses"]] == ["CS 1332"]
        assert data["stats"]["total_courses"] == 4

    def test_add_refused(self, client):
        _, data = post(client, "/api/plan/add", {"course": "CS 4641", "term_id": 202401, "plan": FIRST_YEAR})
        assert data["verdict"]["can_add"] is False
        assert data["stats"]["total_courses"] == 3

    def test_add_bad_status(self, client):
        status, data = post(client, "/api/plan/add", {
            "course": "CS 1331", "term_id": 202401, "plan": [], "status": "dropped",
        })
        assert_error(status, data, 400, "INVALID_INPUT")

    def test_add_bad_term_id(self, client):
        status, data = post(client, "/api/plan/add", {"course": "CS 1301", "term_id": "fall", "plan": []})
        assert_error(status, data, 400, "INVALID_INPUT")

    def test_move(self, client):
        plan = FIRST_YEAR + [term("Summer", 2024)]
        _, data = post(client, "/api/plan/move", {"course": "CS 1331", "target_term_id": 202402, "plan": plan})
        assert data["verdict"]["can_add"] is True
        codes = [c["code"] for t in data["plan"] for c in t["courses"]]
        assert codes.count("CS 1331") == 1
        summer = next(t for t in data["plan"] if t["id"] == 202402)
        assert [c["code"] for c in summer["courses"]] == ["CS 1331"]

    def test_remove(self, client):
        _, data = post(client, "/api/plan/remove", {"course": "CS 1331", "term_id": 202401, "plan": FIRST_YEAR})
        assert data["stats"]["total_courses"] == 2

    def test_generate(self, client):
        status, data = post(client, "/api/plan/generate", {
            "start_term": "Spring 2024", "graduation_term": "Spring 2025", "max_credits": 15,
        })
        assert status == 200
        assert len(data["plan"]) == 8
        assert all(t["max_credits"] == 15 for t in data["plan"])

    def test_generate_bad_label(self, client):
        status, data = post(client, "/api/plan/generate", {"start_term": "Winter 2024", "graduation_term": "Fall 2025"})
        assert_error(status, data, 400, "INVALID_INPUT")


class TestValidate:
    def test_all_terms(self, client):
        plan = [term("Fall", 2024, ("CS 1331", "planned")), term("Spring", 2024, ("CS 1301", "planned"))]
        status, data = post(client, "/api/plan/validate", {"plan": plan})
        assert status == 200
        assert set(data["terms"]) == {"202400", "202401"}
        assert data["terms"]["202400"]["warnings"] == ["Fall 2024 has fewer than 12 credits (3)"]
        assert data["out_of_order"] == [
            {"course_code": "CS 1331", "term_id": 202400, "prereqs_not_before": ["CS 1301"]},
        ]
        assert data["inconsistent_completed"] == []

    def test_single_unknown_term(self, client):
        _, data = post(client, "/api/plan/validate", {"plan": FIRST_YEAR, "term_id": 209900})
        assert data["terms"]["209900"]["errors"] == ["Term not found"]


class TestGpa:
    def test_summary(self, client):
        status, data = post(client, "/api/gpa", {"plan": FIRST_YEAR})
        assert status == 200
        assert data["cumulative_gpa"] == 3.5
        assert data["terms"][0]["term"] == "Fall 2024"

    def test_target(self, client):
        _, data = post(client, "/api/gpa", {"plan": FIRST_YEAR, "target_gpa": 3.6, "remaining_terms": 1, "credits_per_term": 6})
        assert data["target"]["required_gpa"] == 3.7
        assert data["target"]["is_achievable"] is True

    def test_bad_target(self, client):
        assert_error(*post(client, "/api/gpa", {"plan": [], "target_gpa": "high"}), 400, "INVALID_INPUT")


class TestProgress:
    def test_progress_with_timeline(self, client):
        status, data = post(client, "/api/progress", {"program_id": "bscs", "plan": FIRST_YEAR})
        assert status == 200
        assert data["program_id"] == "BSCS"
        math = next(c for c in data["categories"] if c["id"] == "MATH")
        assert math["percent"] == 50
        assert math["status"] == "partially-satisfied"
        assert data["timeline"]["estimated_min_terms"] >= 1
        assert "CS 1331" not in data["recommended_courses"]
        assert "ENGL 1101" in data["recommended_courses"]

    def test_unknown_program(self, client):
        assert_error(*post(client, "/api/progress", {"program_id": "NOPE", "plan": []}), 404, "UNKNOWN_PROGRAM")

    def test_missing_program(self, client):
        assert_error(*post(client, "/api/progress", {"plan": []}), 400, "INVALID_INPUT")


class TestErrors:
    def test_unknown_api_route(self, client):
        resp = client.get("/api/nope")
        assert_error(resp.status_code, resp.get_json(), 404, "NOT_FOUND")

    def test_unexpected_error_uses_envelope(self, client, monkeypatch):
        def boom(_plan):
            raise RuntimeError("kaboom")

        monkeypatch.setattr(server, "gpa_summary", boom)
        status, data = post(client, "/api/gpa", {"plan": []})
        assert_error(status, data, 500, "SERVER_ERROR")


class TestDataReload:
    def test_reload_skips_when_mtime_unchanged(self, monkeypatch):
        monkeypatch.setattr(server, "_data_mtime", 100.0)
        monkeypatch.setattr(server, "_data_file_mtime", lambda _path: 100.0)

        called = {"count": 0}

        def fake_load_data(_path):
            called["count"] += 1
            return {}

        monkeypatch.setattr(server, "load_data", fake_load_data)

        assert server._reload_data_if_changed() is False
        assert called["count"] == 0

    def test_reload_swaps_runtime_data_when_mtime_advances(self, monkeypatch):
        new_data = {"catalog": {}, "catalog_codes": {"NEW 2000"}, "programs": {}}

        monkeypatch.setattr(server, "_data", {"catalog_codes": {"OLD 1000"}})
        monkeypatch.setattr(server, "_reverse_map", {"old": True})
        monkeypatch.setattr(server, "_data_mtime", 100.0)
        monkeypatch.setattr(server, "_data_file_mtime", lambda _path: 200.0)
        monkeypatch.setattr(server, "load_data", lambda _path: new_data)
        monkeypatch.setattr(server, "build_reverse_prereq_map", lambda _catalog: {"new": True})

        assert server._reload_data_if_changed() is True
        assert server._data is new_data
        assert server._reverse_map == {"new": True}
        assert server._data_mtime == 200.0

    def test_reload_failure_keeps_previous_data(self, monkeypatch):
        old_data = {"catalog_codes": {"OLD 1000"}}

        monkeypatch.setattr(server, "_data", old_data)
        monkeypatch.setattr(server, "_reverse_map", {"old": True})
        monkeypatch.setattr(server, "_data_mtime", 100.0)
        monkeypatch.setattr(server, "_data_file_mtime", lambda _path: 200.0)

        def boom(_path):
            raise RuntimeError("reload failed")

        monkeypatch.setattr(server, "load_data", boom)

        assert server._reload_data_if_changed() is False
        assert server._data is old_data
        assert server._reverse_map == {"old": True}
        assert server._data_mtime == 100.0
