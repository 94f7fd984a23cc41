# app.py: puzzle form, solve endpoint, progress no-cache
from __future__ import annotations
import os
import time
from typing import Any, Dict, Optional, Tuple

from flask import Flask, request, render_template, send_from_directory, jsonify, url_for

from config import CFG
from edgesat.backends import SolveStatus
from edgesat.constraints import EncodingOptions
from edgesat.errors import PuzzleError
from edgesat.orchestrator import SolveOutcome, count_solutions, encode_puzzle, solve_with_budgets
from io_files import write_dimacs, write_layout_view_html, write_solution
from puzzles import parse_puzzle
from render import render_solution

from progress import (
    reset as progress_reset,
    as_json as progress_json,
    start_timer as progress_start,
    set_status, set_phase, set_attempt, set_elapsed, set_progress_pct,
    set_solutions, set_done, set_result_url,
)

BASE_DIR = os.path.dirname(os.path.abspath(__file__))


def _resolve_output_paths(configured: str, fallback: str) -> Tuple[str, str, str]:
    name = (configured or "").strip() or fallback
    if os.path.isabs(name):
        full_path = name
    else:
        full_path = os.path.abspath(os.path.join(BASE_DIR, name))
    directory = os.path.dirname(full_path) or BASE_DIR
    filename = os.path.basename(full_path) or fallback
    return full_path, directory, filename


_SOLUTION_FULL_PATH, SOLUTION_DIR, SOLUTION_FILENAME = _resolve_output_paths(
    CFG.SOLUTION_OUT, "solution.txt"
)
_LAYOUT_FULL_PATH, LAYOUT_DIR, LAYOUT_FILENAME = _resolve_output_paths(
    CFG.LAYOUT_HTML, "layout_view.html"
)
_DIMACS_FULL_PATH, DIMACS_DIR, DIMACS_FILENAME = _resolve_output_paths(
    CFG.DIMACS_OUT, "puzzle.cnf"
)

_EMPTY_RESULT: Dict[str, Any] = {
    "ok": False,
    "status": "ERROR",
    "summary": "No puzzle solved yet.",
    "width": 0,
    "height": 0,
    "piece_count": 0,
    "backend": "",
    "variables": 0,
    "clauses": 0,
    "symmetry": "",
    "solutions_label": "",
    "attempts": [],
    "elapsed_str": "0s",
    "svg": "",
    "legend": "",
    "grid_rows": [],
    "solution_filename": SOLUTION_FILENAME,
    "layout_filename": LAYOUT_FILENAME,
    "dimacs_filename": DIMACS_FILENAME,
}

LAST_RESULT: Dict[str, Any] = dict(_EMPTY_RESULT)

app = Flask(__name__, template_folder="templates")


@app.after_request
def _no_cache_progress(resp):
    if request.path == "/progress":
        resp.headers["Cache-Control"] = "no-store, max-age=0"
        resp.headers["Pragma"] = "no-cache"
        resp.headers["Expires"] = "0"
    return resp


@app.route("/")
def index():
    return render_template(
        "index.html",
        backend=str(getattr(CFG, "BACKEND", "cp-sat")),
        symmetry=str(getattr(CFG, "SYMMETRY", "auto")),
    )


@app.route("/result/latest")
def result_latest():
    return render_template("result.html", **LAST_RESULT)


def _fmt_elapsed(seconds: float) -> str:
    if seconds < 1:
        return "0s"
    m, s = divmod(int(seconds), 60)
    if m == 0:
        return f"{s}s"
    h, m = divmod(m, 60)
    if h == 0:
        return f"{m}m {s}s"
    return f"{h}h {m}m {s}s"


def _merge_like_mapping() -> Dict[str, Any]:
    merged: Dict[str, Any] = {}
    payload = request.get_json(silent=True)
    if isinstance(payload, dict):
        merged.update(payload)

    for k, v in request.form.to_dict(flat=False).items():
        merged.setdefault(k, v if isinstance(v, list) else [v])

    for k, v in request.args.to_dict(flat=False).items():
        merged.setdefault(k, v if isinstance(v, list) else [v])

    return merged


def _option(like: Dict[str, Any], key: str) -> Optional[str]:
    val = like.get(key)
    if isinstance(val, (list, tuple)):
        val = val[0] if val else None
    if val is None:
        return None
    text = str(val).strip()
    return text or None


def _status_label(outcome: SolveOutcome) -> str:
    if outcome.status == SolveStatus.SATISFIABLE:
        return "Solved"
    if outcome.status == SolveStatus.UNSATISFIABLE:
        return "Unsatisfiable"
    return "Error"


def _finalize_solver_progress(ok_flag: bool, summary: str, status: Optional[str] = None) -> None:
    """Write the terminal solver status without clobbering failure states."""

    final = status or ("Solved" if ok_flag else "Error")
    set_status(final)
    set_done(ok_flag, status=final, reason=summary)


def _error_result(reason: str, t0: float, **extra: Any) -> str:
    _finalize_solver_progress(False, reason, "Error")
    LAST_RESULT.clear()
    LAST_RESULT.update(_EMPTY_RESULT)
    LAST_RESULT.update({
        "summary": reason,
        "elapsed_str": _fmt_elapsed(time.time() - t0),
    })
    LAST_RESULT.update(extra)
    set_result_url(url_for("result_latest"))
    return render_template("result.html", **LAST_RESULT)


@app.route("/solve", methods=["POST"])
def solve():
    progress_reset()
    progress_start()
    set_status("Solving")
    set_phase("parse")
    set_attempt("")
    set_progress_pct(0)

    t0 = time.time()
    like = _merge_like_mapping()
    parsed, err = parse_puzzle(like)
    if err or parsed is None:
        seen_keys = ", ".join(list(like.keys())[:8]) or "—"
        return _error_result(f"Bad puzzle: {err or 'nothing parsed from request'} (saw keys: {seen_keys})", t0)

    backend = _option(like, "backend") or str(getattr(CFG, "BACKEND", "cp-sat"))
    extra = {"width": parsed.width, "height": parsed.height, "piece_count": len(parsed.pieces), "backend": backend}

    try:
        options = EncodingOptions.from_config(
            symmetry=_option(like, "symmetry"),
            exclusivity=_option(like, "exclusivity"),
            adjacency=_option(like, "adjacency"),
            fixed=tuple(parsed.fixed),
        )
        catalog = parsed.catalog()
        set_phase("encode")
        encoding = encode_puzzle(catalog, options)
    except (PuzzleError, ValueError) as e:
        return _error_result(f"{type(e).__name__}: {e}", t0, **extra)

    dimacs_name = DIMACS_FILENAME
    try:
        dimacs_name = os.path.basename(write_dimacs(encoding.formula, BASE_DIR)) or DIMACS_FILENAME
    except OSError:
        pass

    try:
        outcome = solve_with_budgets(catalog, options, backend=backend, encoding=encoding)
    except Exception as e:
        return _error_result(f"solver exception: {type(e).__name__}: {e}", t0, **extra)

    solutions_label = ""
    max_solutions = int(getattr(CFG, "MAX_SOLUTIONS", 1))
    if outcome.ok and max_solutions > 1:
        try:
            n = count_solutions(catalog, options, backend=backend, limit=max_solutions)
        except Exception as e:
            solutions_label = f"count failed: {e}"
        else:
            set_solutions(n)
            solutions_label = f"≥{n}" if n >= max_solutions else str(n)
    elif outcome.ok:
        solutions_label = "1"

    summary = outcome.reason or ("Solved" if outcome.ok else "No solution")
    if outcome.status == SolveStatus.UNSATISFIABLE:
        summary = f"No solution exists: {outcome.reason}"
    _finalize_solver_progress(outcome.ok, summary, _status_label(outcome))
    set_elapsed(time.time() - t0)

    svg_markup, legend_html, grid_rows = "", "", []
    solution_name = SOLUTION_FILENAME
    layout_name = LAYOUT_FILENAME
    grid_label_text = f"{parsed.width} × {parsed.height}"

    try:
        solution_name = os.path.basename(
            write_solution(outcome.solution, catalog, BASE_DIR, reason=outcome.reason)
        ) or SOLUTION_FILENAME
    except OSError:
        pass

    if outcome.solution is not None:
        svg_markup, legend_html = render_solution(outcome.solution, catalog)
        grid_rows = [
            " ".join(f"{pid}@{rot * 90}" for pid, rot in row)
            for row in outcome.solution.to_grid()
        ]
        try:
            layout_path = write_layout_view_html(svg_markup, legend_html, BASE_DIR, grid_label=grid_label_text)
            layout_name = os.path.basename(layout_path) or LAYOUT_FILENAME
        except OSError:
            pass

    formula_meta = outcome.meta.get("formula") or {}
    symmetry_meta = outcome.meta.get("symmetry") or {}
    LAST_RESULT.clear()
    LAST_RESULT.update(_EMPTY_RESULT)
    LAST_RESULT.update(extra)
    LAST_RESULT.update({
        "ok": outcome.ok,
        "status": outcome.status.value,
        "summary": summary,
        "variables": formula_meta.get("variables", 0),
        "clauses": formula_meta.get("clauses", 0),
        "symmetry": symmetry_meta.get("description", ""),
        "solutions_label": solutions_label,
        "attempts": outcome.meta.get("attempts", []),
        "elapsed_str": _fmt_elapsed(time.time() - t0),
        "svg": svg_markup,
        "legend": legend_html,
        "grid_rows": grid_rows,
        "solution_filename": solution_name,
        "layout_filename": layout_name,
        "dimacs_filename": dimacs_name,
    })
    set_result_url(url_for("result_latest"))
    return render_template("result.html", **LAST_RESULT)


@app.route("/download/solution")
def download_solution():
    return send_from_directory(SOLUTION_DIR, SOLUTION_FILENAME, as_attachment=True)


@app.route("/download/html")
def download_html():
    return send_from_directory(LAYOUT_DIR, LAYOUT_FILENAME, as_attachment=True)


@app.route("/download/cnf")
def download_cnf():
    return send_from_directory(DIMACS_DIR, DIMACS_FILENAME, as_attachment=True)


@app.route("/progress")
def progress():
    return jsonify(progress_json())


if __name__ == "__main__":
    progress_start()
    app.run(debug=False)
