from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, FrozenSet, Iterator, List, Optional

from ortools.sat.python import cp_model as _cp
from pysat.solvers import Solver as _PySatSolver

from config import CFG
from edgesat.cnf import CnfFormula

TIMEBOX_REASON = "Stopped before solution (timebox)"
CANCEL_REASON = "Cancelled"


class SolveStatus(str, Enum):
    SATISFIABLE = "SATISFIABLE"
    UNSATISFIABLE = "UNSATISFIABLE"
    ABORTED = "ABORTED"


@dataclass
class SolveResult:
    status: SolveStatus
    true_ids: FrozenSet[int] = frozenset()
    reason: Optional[str] = None
    stats: Dict[str, object] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == SolveStatus.SATISFIABLE


# ---------------- helpers ----------------

class _Watchdog:
    """Calls ``stop`` when ``cancel`` is set or the deadline passes, and keeps
    re-sending it until the guarded call returns (a stop sent before the
    engine starts searching is otherwise lost)."""

    POLL = 0.05

    def __init__(self, stop: Callable[[], None], seconds: Optional[float], cancel: Optional[threading.Event]):
        self._stop = stop
        self._deadline = None if seconds is None else time.monotonic() + max(0.0, float(seconds))
        self._cancel = cancel
        self._done = threading.Event()
        self.fired: Optional[str] = None
        self._thread = threading.Thread(target=self._run, name="sat-watchdog", daemon=True)

    def _run(self) -> None:
        while not self._done.is_set():
            if self._cancel is not None and self._cancel.is_set():
                self.fired = "cancel"
            elif self._deadline is not None and time.monotonic() >= self._deadline:
                self.fired = "timebox"
            if self.fired:
                self._stop()
            self._done.wait(self.POLL)

    def __enter__(self) -> "_Watchdog":
        self._thread.start()
        return self

    def __exit__(self, *exc) -> None:
        self._done.set()
        self._thread.join(1.0)


def _remaining(deadline: Optional[float]) -> Optional[float]:
    if deadline is None:
        return None
    return max(0.0, deadline - time.monotonic())


def _blocking_clause(true_ids, block_upto: int) -> List[int]:
    return sorted(-v for v in true_ids if v <= block_upto)


def _aborted(reason: str, **stats) -> SolveResult:
    return SolveResult(SolveStatus.ABORTED, frozenset(), reason, dict(stats))


class SolverBackend:
    """Runs a :class:`CnfFormula` on one engine.

    ``solve`` never raises for engine trouble: crashes, memory errors,
    timeboxes and cancellation all come back as ABORTED results.
    """

    name = "base"

    def __init__(self):
        # Result that ended the last ``enumerate`` run (UNSAT when exhausted).
        self.last_result: Optional[SolveResult] = None

    def solve(self, formula: CnfFormula, *, seconds: Optional[float] = None,
              cancel: Optional[threading.Event] = None) -> SolveResult:
        seconds = float(getattr(CFG, "TIME_LIMIT", 300)) if seconds is None else float(seconds)
        if cancel is not None and cancel.is_set():
            return _aborted(CANCEL_REASON, engine=self.name)
        try:
            return self._solve(formula, seconds, cancel)
        except MemoryError:
            return _aborted("Engine ran out of memory", engine=self.name)
        except Exception as e:
            return _aborted(f"Engine error: {e}", engine=self.name)

    def enumerate(self, formula: CnfFormula, *, block_upto: Optional[int] = None,
                  limit: Optional[int] = None, seconds: Optional[float] = None,
                  cancel: Optional[threading.Event] = None) -> Iterator[SolveResult]:
        """Yield SATISFIABLE results, blocking each model on the placement variables."""
        block_upto = formula.placement_vars if block_upto is None else int(block_upto)
        seconds = float(getattr(CFG, "TIME_LIMIT", 300)) if seconds is None else float(seconds)
        self.last_result = None
        if limit is not None and limit <= 0:
            return
        if cancel is not None and cancel.is_set():
            self.last_result = _aborted(CANCEL_REASON, engine=self.name)
            return
        try:
            yield from self._enumerate(formula, block_upto, limit, time.monotonic() + seconds, cancel)
        except MemoryError:
            self.last_result = _aborted("Engine ran out of memory", engine=self.name)
        except Exception as e:
            self.last_result = _aborted(f"Engine error: {e}", engine=self.name)

    def _solve(self, formula, seconds, cancel) -> SolveResult:
        raise NotImplementedError

    def _enumerate(self, formula, block_upto, limit, deadline, cancel) -> Iterator[SolveResult]:
        raise NotImplementedError


# ---------------- CP-SAT ----------------

class CpSatBackend(SolverBackend):
    name = "cp-sat"

    def _model(self, formula: CnfFormula):
        m = _cp.CpModel()
        xs = [None] + [m.NewBoolVar(f"x{i}") for i in range(1, formula.num_vars + 1)]
        for clause in formula.clauses:
            m.AddBoolOr([xs[l] if l > 0 else xs[-l].Not() for l in clause])
        return m, xs

    def _solver(self, seconds: float):
        solver = _cp.CpSolver()
        solver.parameters.max_time_in_seconds = max(0.001, float(seconds))
        solver.parameters.max_memory_in_mb = int(getattr(CFG, "MAX_MEMORY_MB", 2048))
        solver.parameters.num_search_workers = int(getattr(CFG, "WORKERS", 1))
        solver.parameters.random_seed = int(getattr(CFG, "RANDOM_SEED", 0))
        solver.parameters.log_search_progress = False
        return solver

    @staticmethod
    def _stopper(solver) -> Callable[[], None]:
        stop = getattr(solver, "stop_search", None) or getattr(solver, "StopSearch", None)
        return stop if stop is not None else (lambda: None)

    @staticmethod
    def _stats(solver, started: float) -> Dict[str, object]:
        stats: Dict[str, object] = {"engine": "cp-sat", "seconds": round(time.monotonic() - started, 3)}
        for key, names in (("conflicts", ("NumConflicts", "num_conflicts")),
                           ("branches", ("NumBranches", "num_branches"))):
            for name in names:
                attr = getattr(solver, name, None)
                if attr is None:
                    continue
                stats[key] = int(attr() if callable(attr) else attr)
                break
        return stats

    def _run_once(self, m, xs, num_vars: int, seconds: float, cancel) -> SolveResult:
        solver = self._solver(seconds)
        started = time.monotonic()
        # The engine enforces the time limit itself; the watchdog only reacts to cancel.
        with _Watchdog(self._stopper(solver), None, cancel) as dog:
            res = solver.Solve(m)
        stats = self._stats(solver, started)

        if res in (_cp.OPTIMAL, _cp.FEASIBLE):
            true_ids = frozenset(i for i in range(1, num_vars + 1) if solver.BooleanValue(xs[i]))
            return SolveResult(SolveStatus.SATISFIABLE, true_ids, None, stats)
        if res == _cp.INFEASIBLE:
            return SolveResult(SolveStatus.UNSATISFIABLE, frozenset(), "Proven infeasible under current constraints", stats)
        if res == _cp.MODEL_INVALID:
            return SolveResult(SolveStatus.ABORTED, frozenset(), "Model invalid (configuration error)", stats)
        reason = CANCEL_REASON if dog.fired == "cancel" else TIMEBOX_REASON
        return SolveResult(SolveStatus.ABORTED, frozenset(), reason, stats)

    def _solve(self, formula, seconds, cancel) -> SolveResult:
        m, xs = self._model(formula)
        return self._run_once(m, xs, formula.num_vars, seconds, cancel)

    def _enumerate(self, formula, block_upto, limit, deadline, cancel):
        m, xs = self._model(formula)
        found = 0
        while limit is None or found < limit:
            if cancel is not None and cancel.is_set():
                self.last_result = _aborted(CANCEL_REASON, engine=self.name, solutions=found)
                return
            left = _remaining(deadline)
            if not left:
                self.last_result = _aborted(TIMEBOX_REASON, engine=self.name, solutions=found)
                return
            res = self._run_once(m, xs, formula.num_vars, left, cancel)
            if not res.ok:
                self.last_result = res
                return
            found += 1
            yield res
            block = _blocking_clause(res.true_ids, block_upto)
            m.AddBoolOr([xs[-l].Not() for l in block])


# ---------------- PySAT ----------------

class PySatBackend(SolverBackend):
    name = "pysat"

    def __init__(self, solver_name: Optional[str] = None):
        super().__init__()
        self.solver_name = solver_name or str(getattr(CFG, "PYSAT_SOLVER", "g4"))

    @staticmethod
    def _stats(engine, name: str, started: float) -> Dict[str, object]:
        stats: Dict[str, object] = {"engine": f"pysat:{name}", "seconds": round(time.monotonic() - started, 3)}
        try:
            stats.update(engine.accum_stats() or {})
        except NotImplementedError:
            pass
        return stats

    def _run_once(self, engine, num_vars: int, seconds: float, cancel) -> SolveResult:
        started = time.monotonic()
        with _Watchdog(engine.interrupt, seconds, cancel) as dog:
            res = engine.solve_limited(expect_interrupt=True)
        engine.clear_interrupt()
        stats = self._stats(engine, self.solver_name, started)

        if res is True:
            model = engine.get_model() or []
            true_ids = frozenset(l for l in model if 0 < l <= num_vars)
            return SolveResult(SolveStatus.SATISFIABLE, true_ids, None, stats)
        if res is False:
            return SolveResult(SolveStatus.UNSATISFIABLE, frozenset(), "Proven infeasible under current constraints", stats)
        reason = CANCEL_REASON if dog.fired == "cancel" else TIMEBOX_REASON
        return SolveResult(SolveStatus.ABORTED, frozenset(), reason, stats)

    def _solve(self, formula, seconds, cancel) -> SolveResult:
        with _PySatSolver(name=self.solver_name, bootstrap_with=formula.clauses) as engine:
            return self._run_once(engine, formula.num_vars, seconds, cancel)

    def _enumerate(self, formula, block_upto, limit, deadline, cancel):
        with _PySatSolver(name=self.solver_name, bootstrap_with=formula.clauses) as engine:
            found = 0
            while limit is None or found < limit:
                if cancel is not None and cancel.is_set():
                    self.last_result = _aborted(CANCEL_REASON, engine=self.name, solutions=found)
                    return
                left = _remaining(deadline)
                if not left:
                    self.last_result = _aborted(TIMEBOX_REASON, engine=self.name, solutions=found)
                    return
                res = self._run_once(engine, formula.num_vars, left, cancel)
                if not res.ok:
                    self.last_result = res
                    return
                found += 1
                yield res
                engine.add_clause(_blocking_clause(res.true_ids, block_upto))


BACKENDS = {
    "cp-sat": CpSatBackend,
    "cpsat": CpSatBackend,
    "ortools": CpSatBackend,
    "pysat": PySatBackend,
}


def get_backend(name: Optional[str] = None) -> SolverBackend:
    key = str(name or getattr(CFG, "BACKEND", "cp-sat")).strip().lower()
    try:
        return BACKENDS[key]()
    except KeyError:
        raise ValueError(f"Unknown solver backend {name!r} (expected one of {', '.join(sorted(BACKENDS))})") from None


__all__ = [
    "SolveStatus",
    "SolveResult",
    "SolverBackend",
    "CpSatBackend",
    "PySatBackend",
    "BACKENDS",
    "get_backend",
    "TIMEBOX_REASON",
    "CANCEL_REASON",
]
