import importlib
import json
import os
import time

from progress import (
    reset, set_status, set_done, set_result_url, set_formula_size,
    set_solutions, set_backend, snapshot, log_attempt_detail,
)


def test_set_done_no_args_defaults_to_solved():
    reset()
    set_done()
    snap = snapshot()
    assert snap["status"] == "Solved"
    assert snap["percent"] == 100.0
    assert snap["done"] is True
    assert snap["ok"] is True
    assert snap["result_url"] == ""


def test_set_done_false_marks_error_with_reason():
    reset()
    set_status("Solving")
    set_done(False, reason="boom")
    snap = snapshot()
    assert snap["status"] == "Error"
    assert snap["message"] == "boom"
    assert snap["done"] is True
    assert snap["ok"] is False


def test_unsatisfiable_is_a_status_not_an_error():
    reset()
    set_done(False, status="Unsatisfiable", message="no board exists")
    snap = snapshot()
    assert snap["status"] == "Unsatisfiable"
    assert snap["ok"] is False
    assert snap["message"] == "no board exists"


def test_formula_and_solution_counters():
    reset()
    set_backend("pysat")
    set_formula_size(36, "412")
    set_solutions(-3)
    snap = snapshot()
    assert snap["backend"] == "pysat"
    assert (snap["variables"], snap["clauses"]) == (36, 412)
    assert snap["solutions"] == 0
    assert "elapsed_start" not in snap
    assert snap["elapsed_str"] == "0s"


def test_set_result_url_tracks_navigation_target():
    reset()
    set_result_url("/result/latest")
    snap = snapshot()
    assert snap["result_url"] == "/result/latest"
    assert snap["done"] is False


def test_reset_increments_run_identifier():
    reset()
    first = snapshot()["run_id"]
    reset()
    second = snapshot()["run_id"]
    assert isinstance(first, int)
    assert second == first + 1


def test_log_attempt_detail_never_raises():
    log_attempt_detail("Solver heartbeat", backend="cp-sat", elapsed="5.0s", empty="", missing=None)


def test_snapshot_reads_state_written_by_other_process(tmp_path, monkeypatch):
    import progress as progress_module

    state_path = tmp_path / "state.json"
    monkeypatch.setenv("PROGRESS_STATE_FILE", str(state_path))
    progress = importlib.reload(progress_module)

    progress.reset()
    progress.set_phase("encode")
    first = progress.snapshot()
    assert first["phase"] == "encode"

    data = dict(first)
    data["phase"] = "solve"
    data["attempt"] = "budget 2/3 (300s)"
    state_path.write_text(json.dumps(data))
    os.utime(state_path, None)

    with progress.PROGRESS_LOCK:
        progress.PROGRESS["phase"] = ""
        progress.PROGRESS["attempt"] = ""
        progress._LAST_STATE_MTIME = 0.0

    time.sleep(0.01)
    updated = progress.snapshot()
    assert updated["phase"] == "solve"
    assert updated["attempt"] == "budget 2/3 (300s)"

    monkeypatch.delenv("PROGRESS_STATE_FILE", raising=False)
    importlib.reload(progress_module)
