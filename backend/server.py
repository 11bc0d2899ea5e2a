import os
import sys
import time
import threading

# Ensure backend/ is on sys.path so sibling imports work
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from flask import Flask, g, jsonify, request
from werkzeug.exceptions import HTTPException
from dotenv import load_dotenv

from data_loader import load_data, lookup_course
from gpa import gpa_summary, required_gpa
from models import CourseStatus
from normalizer import normalize_code
from plan_state import (
    add_course,
    completion_stats,
    generate_terms,
    move_course,
    plan_from_records,
    plan_to_records,
    remove_course,
)
from prereq_resolver import check_can_add
from progress import evaluate_plan_progress
from timeline import estimate_timeline
from unlocks import build_reverse_prereq_map, get_direct_unlocks, recommend_courses
from validators import (
    find_inconsistent_completed_courses,
    find_out_of_order_courses,
    validate_term,
)

load_dotenv()

app = Flask(__name__)

# ── Paths ─────────────────────────────────────────────────────────────────────
BACKEND_DIR = os.path.dirname(os.path.abspath(__file__))
PROJECT_ROOT = os.path.dirname(BACKEND_DIR)
_DEFAULT_DATA_PATH = os.path.join(PROJECT_ROOT, "data")
_env_data_path = os.environ.get("DATA_PATH")
if not _env_data_path:
    DATA_PATH = _DEFAULT_DATA_PATH
elif not os.path.isabs(_env_data_path):
    DATA_PATH = os.path.join(PROJECT_ROOT, _env_data_path)
else:
    DATA_PATH = _env_data_path
_data_lock = threading.Lock()
_data_mtime = None


def _env_float(name: str, default: float, minimum: float = 0.0) -> float:
    raw = os.environ.get(name, "")
    try:
        return max(minimum, float(raw))
    except (TypeError, ValueError):
        return default


def _env_int(name: str, default: int, minimum: int = 1) -> int:
    raw = os.environ.get(name, "")
    try:
        return max(minimum, int(raw))
    except (TypeError, ValueError):
        return default


_SLOW_REQUEST_LOG_MS = _env_float("SLOW_REQUEST_LOG_MS", 500.0)
DEFAULT_MAX_CREDITS = _env_int("DEFAULT_MAX_CREDITS", 18)


def _data_file_mtime(path: str):
    try:
        if os.path.isdir(path):
            mtimes = [
                os.path.getmtime(os.path.join(path, f))
                for f in os.listdir(path)
                if f.endswith(".csv")
            ]
            return max(mtimes) if mtimes else None
        return os.path.getmtime(path)
    except OSError:
        return None


# ── Startup data load ──────────────────────────────────────────────────────────
try:
    _data = load_data(DATA_PATH)
    _data_mtime = _data_file_mtime(DATA_PATH)
    print(f"[OK] Loaded {len(_data['catalog_codes'])} courses from {DATA_PATH}")
except FileNotFoundError:
    # Stale DATA_PATH env var: fall back to the repo data directory.
    if DATA_PATH != _DEFAULT_DATA_PATH and os.path.exists(_DEFAULT_DATA_PATH):
        print(
            f"[WARN] DATA_PATH not found ({DATA_PATH}); "
            f"falling back to default data ({_DEFAULT_DATA_PATH}).",
            file=sys.stderr,
        )
        DATA_PATH = _DEFAULT_DATA_PATH
        _data = load_data(DATA_PATH)
        _data_mtime = _data_file_mtime(DATA_PATH)
        print(f"[OK] Loaded {len(_data['catalog_codes'])} courses from {DATA_PATH}")
    else:
        print(f"[FATAL] Data file not found: {DATA_PATH}", file=sys.stderr)
        sys.exit(1)
except Exception as exc:
    print(f"[FATAL] Failed to load data: {exc}", file=sys.stderr)
    sys.exit(1)

_reverse_map = build_reverse_prereq_map(_data["catalog"])


def _reload_data_if_changed(force: bool = False) -> bool:
    """
    Hot-reload reference data when DATA_PATH changes on disk.

    Returns True when a reload occurred, else False.
    """
    global _data, _reverse_map, _data_mtime

    candidate_mtime = _data_file_mtime(DATA_PATH)
    if not force:
        if candidate_mtime is None:
            return False
        if _data_mtime is not None and candidate_mtime <= _data_mtime:
            return False

    with _data_lock:
        latest_mtime = _data_file_mtime(DATA_PATH)
        if not force:
            if latest_mtime is None:
                return False
            if _data_mtime is not None and latest_mtime <= _data_mtime:
                return False

        try:
            new_data = load_data(DATA_PATH)
            new_reverse_map = build_reverse_prereq_map(new_data["catalog"])
        except Exception as exc:
            print(f"[WARN] Data reload failed; keeping previous dataset: {exc}", file=sys.stderr)
            return False

        _data = new_data
        _reverse_map = new_reverse_map
        _data_mtime = latest_mtime if latest_mtime is not None else candidate_mtime
        print(f"[OK] Reloaded {len(new_data['catalog_codes'])} courses from {DATA_PATH}")
        return True


def _refresh_data_if_needed() -> None:
    try:
        _reload_data_if_changed()
    except Exception as exc:
        print(f"[WARN] Data reload check failed: {exc}", file=sys.stderr)


# -- Security headers ------------------------------------------------------
@app.before_request
def _start_request_timer():
    g._request_start_time = time.perf_counter()


@app.after_request
def _add_security_headers(response):
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["Referrer-Policy"] = "same-origin"

    started = getattr(g, "_request_start_time", None)
    if started is not None:
        duration_ms = (time.perf_counter() - started) * 1000.0
        if duration_ms >= _SLOW_REQUEST_LOG_MS:
            endpoint = request.endpoint or "unknown"
            print(
                f"[SLOW] {request.method} {request.path} "
                f"endpoint={endpoint} status={response.status_code} duration_ms={duration_ms:.1f}"
            )
    return response


# -- Error envelope ---------------------------------------------------------
def _error(error_code: str, message: str, status: int):
    return jsonify({
        "mode": "error",
        "error": {
            "error_code": error_code,
            "message": message,
        },
    }), status


@app.errorhandler(Exception)
def handle_unexpected_error(e):
    if isinstance(e, HTTPException):
        return e
    print(f"[WARN] Unhandled error on {request.path}: {e!r}", file=sys.stderr)
    return _error("SERVER_ERROR", "An unexpected server error occurred.", 500)


# -- Request helpers --------------------------------------------------------
def _json_body():
    body = request.get_json(force=True, silent=True)
    return body if isinstance(body, dict) else None


def _plan_from_body(body):
    """Returns (plan, error_response)."""
    raw = body.get("plan", [])
    if not isinstance(raw, (list, dict)):
        return None, _error("INVALID_INPUT", "'plan' must be a list of term records.", 400)
    return plan_from_records(raw), None


def _course_from_body(body, field: str = "course"):
    """Returns (code, record, error_response). record is None for unknown codes."""
    raw = str(body.get(field) or "").strip()
    if not raw:
        return None, None, _error("INVALID_INPUT", f"'{field}' is required.", 400)
    code = normalize_code(raw)
    if code is None:
        return None, None, _error("INVALID_INPUT", f"'{raw}' is not a course code.", 400)
    return code, lookup_course(_data["catalog"], code), None


def _term_id_from_body(body, field: str = "term_id"):
    try:
        return int(body.get(field)), None
    except (TypeError, ValueError):
        return None, _error("INVALID_INPUT", f"'{field}' must be an integer term id.", 400)


def _plan_payload(plan, verdict=None) -> dict:
    payload = {"plan": plan_to_records(plan), "stats": completion_stats(plan)}
    if verdict is not None:
        payload["verdict"] = verdict.to_dict()
    return payload


# -- Health endpoint --------------------------------------------------------
@app.route("/health", methods=["GET"])
def health_endpoint():
    return jsonify({
        "status": "ok",
        "courses_loaded": len(_data["catalog_codes"]),
        "programs_loaded": len(_data["programs"]),
    })


# ── Routes ─────────────────────────────────────────────────────────────────────
def get_programs():
    _refresh_data_if_needed()
    programs = [
        {
            "program_id": p.id,
            "program_name": p.name,
            "total_credits": p.total_credits,
            "category_count": len(p.categories),
        }
        for p in sorted(_data["programs"].values(), key=lambda p: p.id)
    ]
    return jsonify({"programs": programs})


def can_add_endpoint():
    """Verdict for adding one course to the posted plan. Does not edit the plan."""
    _refresh_data_if_needed()
    body = _json_body()
    if body is None:
        return _error("INVALID_INPUT", "Request body must be valid JSON.", 400)

    code, record, err = _course_from_body(body)
    if err:
        return err
    plan, err = _plan_from_body(body)
    if err:
        return err

    verdict = check_can_add(record, plan, code=code)
    return jsonify({
        "course": code,
        **verdict.to_dict(),
        "unlocks": get_direct_unlocks(code, _reverse_map),
    })


def plan_add_endpoint():
    _refresh_data_if_needed()
    body = _json_body()
    if body is None:
        return _error("INVALID_INPUT", "Request body must be valid JSON.", 400)

    code, record, err = _course_from_body(body)
    if err:
        return err
    plan, err = _plan_from_body(body)
    if err:
        return err
    term_id, err = _term_id_from_body(body)
    if err:
        return err
    if record is None:
        return jsonify(_plan_payload(plan, check_can_add(None, plan, code=code)))

    try:
        status = CourseStatus(str(body.get("status") or CourseStatus.PLANNED.value).strip().lower())
    except ValueError:
        return _error("INVALID_INPUT", "'status' must be completed, in-progress or planned.", 400)

    new_plan, verdict = add_course(plan, term_id, record, status=status, grade=body.get("grade"))
    return jsonify(_plan_payload(new_plan, verdict))


def plan_move_endpoint():
    _refresh_data_if_needed()
    body = _json_body()
    if body is None:
        return _error("INVALID_INPUT", "Request body must be valid JSON.", 400)

    code, record, err = _course_from_body(body)
    if err:
        return err
    plan, err = _plan_from_body(body)
    if err:
        return err
    term_id, err = _term_id_from_body(body, "target_term_id")
    if err:
        return err
    if record is None:
        return jsonify(_plan_payload(plan, check_can_add(None, plan, code=code)))

    new_plan, verdict = move_course(plan, record, term_id)
    return jsonify(_plan_payload(new_plan, verdict))


def plan_remove_endpoint():
    body = _json_body()
    if body is None:
        return _error("INVALID_INPUT", "Request body must be valid JSON.", 400)

    code = normalize_code(body.get("course"))
    if code is None:
        return _error("INVALID_INPUT", "'course' is required.", 400)
    plan, err = _plan_from_body(body)
    if err:
        return err
    term_id, err = _term_id_from_body(body)
    if err:
        return err
    return jsonify(_plan_payload(remove_course(plan, term_id, code)))


def plan_generate_endpoint():
    body = _json_body()
    if body is None:
        return _error("INVALID_INPUT", "Request body must be valid JSON.", 400)
    max_credits = body.get("max_credits", DEFAULT_MAX_CREDITS)
    try:
        max_credits = int(max_credits)
        plan = generate_terms(body.get("start_term"), body.get("graduation_term"), max_credits)
    except (TypeError, ValueError) as exc:
        return _error("INVALID_INPUT", str(exc), 400)
    return jsonify(_plan_payload(plan))


def plan_validate_endpoint():
    _refresh_data_if_needed()
    body = _json_body()
    if body is None:
        return _error("INVALID_INPUT", "Request body must be valid JSON.", 400)
    plan, err = _plan_from_body(body)
    if err:
        return err

    if body.get("term_id") not in (None, ""):
        term_id, err = _term_id_from_body(body)
        if err:
            return err
        term_ids = [term_id]
    else:
        term_ids = sorted(plan.terms)

    catalog = _data["catalog"]
    return jsonify({
        "terms": {str(tid): validate_term(plan, tid) for tid in term_ids},
        "out_of_order": find_out_of_order_courses(plan, catalog),
        "inconsistent_completed": find_inconsistent_completed_courses(plan, catalog),
    })


def gpa_endpoint():
    body = _json_body()
    if body is None:
        return _error("INVALID_INPUT", "Request body must be valid JSON.", 400)
    plan, err = _plan_from_body(body)
    if err:
        return err

    summary = gpa_summary(plan)
    target = body.get("target_gpa")
    if target not in (None, ""):
        try:
            target = float(target)
            remaining_terms = int(body.get("remaining_terms", 0))
            credits_per_term = int(body.get("credits_per_term", 15))
        except (TypeError, ValueError):
            return _error("INVALID_INPUT", "target_gpa, remaining_terms and credits_per_term must be numbers.", 400)
        summary["target"] = required_gpa(
            summary["quality_points"],
            summary["total_credits"],
            target,
            remaining_terms,
            credits_per_term,
        )
    return jsonify(summary)


def progress_endpoint():
    _refresh_data_if_needed()
    body = _json_body()
    if body is None:
        return _error("INVALID_INPUT", "Request body must be valid JSON.", 400)

    program_id = str(body.get("program_id") or "").strip().upper()
    if not program_id:
        return _error("INVALID_INPUT", "'program_id' is required.", 400)
    program = _data["programs"].get(program_id)
    if program is None:
        return _error("UNKNOWN_PROGRAM", f"Program '{program_id}' not found.", 404)
    plan, err = _plan_from_body(body)
    if err:
        return err

    catalog = _data["catalog"]
    progress = evaluate_plan_progress(program, plan, catalog)
    try:
        credits_per_term = int(body.get("credits_per_term", 15))
    except (TypeError, ValueError):
        credits_per_term = 15
    return jsonify({
        "program_id": program.id,
        "program_name": program.name,
        **progress,
        "timeline": estimate_timeline(progress, credits_per_term),
        "recommended_courses": recommend_courses(program, catalog, plan),
    })


# -- Canonical API routes ---------------------------------------------------
app.add_url_rule("/api/health", endpoint="api_health", view_func=health_endpoint, methods=["GET"])
app.add_url_rule("/api/programs", endpoint="api_programs", view_func=get_programs, methods=["GET"])
app.add_url_rule("/api/can-add", endpoint="api_can_add", view_func=can_add_endpoint, methods=["POST"])
app.add_url_rule("/api/plan/add", endpoint="api_plan_add", view_func=plan_add_endpoint, methods=["POST"])
app.add_url_rule("/api/plan/move", endpoint="api_plan_move", view_func=plan_move_endpoint, methods=["POST"])
app.add_url_rule("/api/plan/remove", endpoint="api_plan_remove", view_func=plan_remove_endpoint, methods=["POST"])
app.add_url_rule("/api/plan/generate", endpoint="api_plan_generate", view_func=plan_generate_endpoint, methods=["POST"])
app.add_url_rule("/api/plan/validate", endpoint="api_plan_validate", view_func=plan_validate_endpoint, methods=["POST"])
app.add_url_rule("/api/gpa", endpoint="api_gpa", view_func=gpa_endpoint, methods=["POST"])
app.add_url_rule("/api/progress", endpoint="api_progress", view_func=progress_endpoint, methods=["POST"])


# -- API catch-all (404 for unknown /api/* routes) -------------------
@app.route("/api/<path:rest>", methods=["GET", "POST", "PUT", "DELETE", "PATCH"])
def api_catch_all(rest):
    return _error("NOT_FOUND", f"/api/{rest} not found", 404)


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 5000))
    debug = os.environ.get("FLASK_DEBUG", "1") == "1"
    app.run(host="0.0.0.0", port=port, debug=debug)
