# edgesat/isolate.py
from __future__ import annotations

import multiprocessing as mp
import threading
import time
import traceback
from typing import Optional

from config import CFG
from progress import log_attempt_detail
from edgesat.backends import CANCEL_REASON, SolveResult, SolveStatus
from edgesat.cnf import CnfFormula

# Extra wall time granted beyond the engine budget for spawn / teardown.
GRACE_SECONDS = 5.0


# Worker must be top-level (picklable under spawn)
def _solve_worker(conn, formula: CnfFormula, backend_name: str, seconds: float):
    try:
        from edgesat.backends import get_backend  # import inside child
        res = get_backend(backend_name).solve(formula, seconds=seconds)
        conn.send(("ok", res.status.value, sorted(res.true_ids), res.reason, res.stats))
    except MemoryError:
        conn.send(("err", SolveStatus.ABORTED.value, [], "Child ran out of memory", {}))
    except Exception as e:
        conn.send(("exc", SolveStatus.ABORTED.value, [], f"{type(e).__name__}: {e}\n{traceback.format_exc()}", {}))
    finally:
        conn.close()


def _safe_parent_poll(parent, timeout):
    try:
        return parent.poll(timeout)
    except (BrokenPipeError, EOFError):
        return True


def _terminate_process(proc, grace: float = 0.2) -> None:
    """Tear down ``proc`` within a few ``grace`` windows: join, terminate, then kill."""
    proc.join(timeout=grace)
    if not proc.is_alive():
        return
    proc.terminate()
    proc.join(timeout=grace)
    if not proc.is_alive():
        return
    proc.kill()
    proc.join(timeout=grace)


def run_isolated(
    formula: CnfFormula,
    backend_name: Optional[str] = None,
    seconds: Optional[float] = None,
    cancel: Optional[threading.Event] = None,
) -> SolveResult:
    """Solve in a spawned child so a stuck or crashing engine can be killed.

    Every failure mode of the child (deadline, cancel, crash, lost pipe)
    comes back as an ABORTED result with its own reason.
    """
    backend_name = backend_name or str(getattr(CFG, "BACKEND", "cp-sat"))
    budget = float(getattr(CFG, "TIME_LIMIT", 300) if seconds is None else seconds)
    if cancel is not None and cancel.is_set():
        return SolveResult(SolveStatus.ABORTED, frozenset(), CANCEL_REASON, {"engine": backend_name})

    ctx = mp.get_context("spawn")
    parent, child = ctx.Pipe(duplex=False)
    proc = ctx.Process(target=_solve_worker, args=(child, formula, backend_name, budget))
    proc.daemon = True
    started = time.monotonic()
    proc.start()
    child.close()

    interval = max(0.5, float(getattr(CFG, "STATS_INTERVAL", 5)))
    deadline = started + budget + GRACE_SECONDS
    next_beat = started + interval
    reason: Optional[str] = None
    payload = None

    while True:
        now = time.monotonic()
        if cancel is not None and cancel.is_set():
            reason = CANCEL_REASON
            break
        if now >= deadline:
            reason = "Stopped before solution (timebox, child killed)"
            break
        if now >= next_beat:
            log_attempt_detail(
                "Solver heartbeat",
                backend=backend_name,
                elapsed=f"{now - started:.1f}s",
                budget=f"{budget:g}s",
                pid=proc.pid,
            )
            next_beat = now + interval
        if _safe_parent_poll(parent, min(0.1, deadline - now)):
            try:
                payload = parent.recv()
            except (EOFError, BrokenPipeError, OSError):
                reason = "Subprocess ended early (pipe closed)"
            break
        if not proc.is_alive() and not parent.poll(0):
            reason = f"Stopped before solution (child exit {proc.exitcode})"
            break

    try:
        _terminate_process(proc)
    finally:
        parent.close()

    isolation = {"exitcode": proc.exitcode, "payload_received": payload is not None, "pid": proc.pid}
    if payload is None:
        log_attempt_detail("Solver child aborted", backend=backend_name, reason=reason, exitcode=proc.exitcode)
        return SolveResult(SolveStatus.ABORTED, frozenset(), reason, {"engine": backend_name, "isolation": isolation})

    tag, status, true_ids, reason, stats = payload
    stats = dict(stats or {})
    stats["isolation"] = isolation
    if tag != "ok":
        log_attempt_detail("Solver child failed", backend=backend_name, tag=tag)
    return SolveResult(SolveStatus(status), frozenset(true_ids), reason, stats)


__all__ = ["run_isolated", "GRACE_SECONDS"]
