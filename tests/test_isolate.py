import threading
import time

from edgesat import isolate
from edgesat.backends import CANCEL_REASON, SolveStatus
from edgesat.cnf import CnfFormula
from edgesat.isolate import run_isolated
from edgesat.orchestrator import _should_retry

TINY = CnfFormula(1, [[1]])


# Child-side stand-ins; top level so the spawn context can import them.

def _sleeping_worker(conn, formula, backend_name, seconds):
    time.sleep(60)


def _silent_worker(conn, formula, backend_name, seconds):
    conn.close()


def _assert_child_gone(res):
    iso = res.stats["isolation"]
    assert iso["payload_received"] is False
    assert iso["exitcode"] is not None


def test_isolated_tiny_formula():
    res = run_isolated(TINY, "pysat", seconds=30)
    assert res.status == SolveStatus.SATISFIABLE
    assert res.true_ids == frozenset({1})
    assert res.stats["isolation"]["payload_received"] is True


def test_deadline_kills_the_child(monkeypatch):
    monkeypatch.setattr(isolate, "GRACE_SECONDS", 0.0)
    monkeypatch.setattr(isolate, "_solve_worker", _sleeping_worker)
    res = run_isolated(TINY, "pysat", seconds=0.3)
    assert res.status == SolveStatus.ABORTED
    assert res.reason == "Stopped before solution (timebox, child killed)"
    assert _should_retry(res.reason)
    _assert_child_gone(res)


def test_cancel_while_waiting(monkeypatch):
    monkeypatch.setattr(isolate, "_solve_worker", _sleeping_worker)
    cancel = threading.Event()
    timer = threading.Timer(0.3, cancel.set)
    timer.start()
    try:
        started = time.monotonic()
        res = run_isolated(TINY, "pysat", seconds=30, cancel=cancel)
    finally:
        timer.cancel()
    assert res.status == SolveStatus.ABORTED
    assert res.reason == CANCEL_REASON
    assert not _should_retry(res.reason)
    assert time.monotonic() - started < 20
    _assert_child_gone(res)


def test_child_that_exits_without_answer(monkeypatch):
    monkeypatch.setattr(isolate, "_solve_worker", _silent_worker)
    res = run_isolated(TINY, "pysat", seconds=30)
    assert res.status == SolveStatus.ABORTED
    assert "pipe closed" in res.reason or "child exit" in res.reason
    assert _should_retry(res.reason)
    _assert_child_gone(res)


def test_preset_cancel_never_spawns():
    cancel = threading.Event()
    cancel.set()
    res = run_isolated(TINY, "pysat", seconds=30, cancel=cancel)
    assert res.reason == CANCEL_REASON
    assert "isolation" not in res.stats
