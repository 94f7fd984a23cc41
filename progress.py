from __future__ import annotations

import json
import logging
import os
import time
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

# ------------------------------
# Run state shared by the web process and solver children
# ------------------------------

PROGRESS_LOCK = threading.Lock()

_HERE = Path(__file__).resolve().parent


def _state_file_path() -> Path:
    configured = os.environ.get("PROGRESS_STATE_FILE")
    return Path(configured) if configured else _HERE / "logs" / "progress_state.json"


STATE_FILE = _state_file_path()
_LAST_STATE_MTIME: float = 0.0

_DEFAULTS: Dict[str, Any] = {
    "status": "Idle",          # Idle | Solving | Solved | Unsatisfiable | Error
    "phase": "",               # parse | encode | solve | decode | enumerate
    "attempt": "",             # e.g. "budget 2/3 (300s)"
    "backend": "",             # cp-sat | pysat
    "puzzle": "",              # e.g. "4×4, 16 pieces"
    "variables": 0,            # placement + auxiliary variables
    "clauses": 0,
    "percent": 0.0,
    "elapsed_start": None,     # wall clock at start_timer()
    "elapsed": 0.0,
    "message": "",
    "done": False,
    "ok": None,
    "solutions": 0,            # boards found so far
    "result_url": "",
    "run_id": 0,
}

PROGRESS: Dict[str, Any] = dict(_DEFAULTS)


# ------------------------------
# Attempt log (logs/solver_attempts.log)
# ------------------------------

def _attempt_logger() -> logging.Logger:
    logger = logging.getLogger("edgesat.attempt_log")
    if logger.handlers:
        return logger
    path = _HERE / "logs" / "solver_attempts.log"
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path, encoding="utf-8")
    except OSError:
        # read-only checkout: keep solving, drop the events
        return logger
    handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s", "%Y-%m-%d %H:%M:%S"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    logger.propagate = False
    return logger


ATTEMPT_LOGGER = _attempt_logger()


def log_attempt_detail(event: str, **fields: Any) -> None:
    """Append one line to the attempt log: ``event | key=value ...`` (empty values skipped)."""
    if not ATTEMPT_LOGGER.handlers:
        return
    extras = " ".join(f"{k}={v}" for k, v in fields.items() if v is not None and v != "")
    try:
        if extras:
            ATTEMPT_LOGGER.info("%s | %s", event, extras)
        else:
            ATTEMPT_LOGGER.info("%s", event)
    except Exception:
        # the log is advisory; never fail a solve over it
        pass


def _secs(value: Optional[float]) -> Optional[str]:
    return None if value is None else f"{max(0.0, value):.2f}s"


@dataclass
class _Span:
    """A named stretch of the run (a phase or an attempt) and when it began."""

    kind: str
    name: str = ""
    started: Optional[float] = None

    def elapsed(self, now: float) -> Optional[float]:
        return None if self.started is None else now - self.started

    def switch(self, name: str, now: float, **fields: Any) -> None:
        if name == self.name:
            return
        self.close(now, reason="switch")
        self.name, self.started = name, (now if name else None)
        if name:
            log_attempt_detail(f"{self.kind.title()} started", **{self.kind: name}, **fields)

    def close(self, now: float, **fields: Any) -> None:
        if self.name:
            log_attempt_detail(
                f"{self.kind.title()} finished",
                **{self.kind: self.name},
                duration=_secs(self.elapsed(now)),
                **fields,
            )
        self.name, self.started = "", None


_PHASE = _Span("phase")
_ATTEMPT = _Span("attempt")
_RUN = _Span("run")


# ------------------------------
# Cross-process persistence
# ------------------------------

def _persist_locked() -> None:
    global _LAST_STATE_MTIME
    tmp = STATE_FILE.with_name(STATE_FILE.name + ".tmp")
    try:
        STATE_FILE.parent.mkdir(parents=True, exist_ok=True)
        tmp.write_text(json.dumps(PROGRESS, ensure_ascii=False, separators=(",", ":")), encoding="utf-8")
        tmp.replace(STATE_FILE)
        _LAST_STATE_MTIME = STATE_FILE.stat().st_mtime
    except OSError:
        # the in-memory state stays authoritative for this process
        pass


def _refresh_locked(force: bool = False) -> None:
    """Pull in a newer state file written by another process."""
    global _LAST_STATE_MTIME
    try:
        mtime = STATE_FILE.stat().st_mtime
    except OSError:
        return
    if not force and mtime <= _LAST_STATE_MTIME:
        return
    try:
        data = json.loads(STATE_FILE.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return
    if isinstance(data, dict):
        PROGRESS.update({k: data[k] for k in PROGRESS if k in data})
        _LAST_STATE_MTIME = mtime


@contextmanager
def _updating() -> Iterator[Dict[str, Any]]:
    with PROGRESS_LOCK:
        yield PROGRESS
        _persist_locked()


def _tick_locked() -> None:
    t0 = PROGRESS.get("elapsed_start")
    if t0 is not None:
        PROGRESS["elapsed"] = time.time() - float(t0)


def _text(v: Any) -> str:
    return "" if v is None else str(v)


def _to_count(n: Any) -> int:
    try:
        return max(0, int(n))
    except (TypeError, ValueError):
        return 0


def _to_float(v: Any) -> float:
    try:
        return float(v)
    except (TypeError, ValueError):
        return 0.0


def _fmt_elapsed(seconds: float) -> str:
    total = int(max(0.0, float(seconds)))
    h, rem = divmod(total, 3600)
    m, s = divmod(rem, 60)
    if h:
        return f"{h}h {m}m"
    if m:
        return f"{m}m {s}s"
    return f"{s}s"


# ------------------------------
# Run lifecycle
# ------------------------------

def reset() -> None:
    now = time.time()
    with _updating() as state:
        _ATTEMPT.close(now, reason="reset")
        _PHASE.name, _PHASE.started = "", None
        _RUN.started = None
        run_id = _to_count(state.get("run_id")) + 1
        state.clear()
        state.update(_DEFAULTS, run_id=run_id)
        log_attempt_detail("Progress reset", run=run_id)


def start_timer() -> None:
    now = time.time()
    with _updating() as state:
        state["elapsed_start"] = now
        state["elapsed"] = 0.0
        _RUN.started = now
        log_attempt_detail("Run timer started", run=state.get("run_id"))


def set_done(ok: Any = None, *, status: Any = None, reason: Any = None, message: Any = None) -> None:
    """Mark the run complete.

    ``ok`` picks "Solved" or "Error" unless ``status`` names the outcome
    (proven-unsatisfiable puzzles end as "Unsatisfiable", which is a result
    rather than a failure).  ``reason`` doubles as the message.
    """
    final = None if status is None else str(status)
    flag = None if ok is None else bool(ok)
    if final is None and flag is not None:
        final = "Solved" if flag else "Error"
    note = message if message is not None else reason

    now = time.time()
    with _updating() as state:
        _tick_locked()
        if final is None and state.get("status") in ("", "Idle", None):
            final, flag = "Solved", True
        if final is not None:
            state["status"] = final
        if flag is not None:
            state["ok"] = flag
        if note is not None:
            state["message"] = str(note)
        state["percent"] = 100.0
        state["done"] = True
        _ATTEMPT.close(now, reason="run_complete")
        log_attempt_detail(
            "Run finished",
            status=state["status"],
            ok=state.get("ok"),
            duration=_secs(_RUN.elapsed(now)),
            solutions=state.get("solutions"),
            message=state.get("message"),
        )
        _RUN.started = None


# ------------------------------
# Setters (tolerant of odd input)
# ------------------------------

def set_status(v: Any) -> None:
    with _updating() as state:
        state["status"] = str(v)


def set_phase(v: Any) -> None:
    name = _text(v)
    now = time.time()
    with _updating() as state:
        state["phase"] = name
        if name != _PHASE.name:
            _ATTEMPT.close(now, reason="phase_change")
        _PHASE.switch(name, now)


def set_attempt(v: Any) -> None:
    name = _text(v)
    with _updating() as state:
        state["attempt"] = name
        _ATTEMPT.switch(name, time.time(), phase=_PHASE.name, backend=state.get("backend"))


def set_backend(v: Any) -> None:
    with _updating() as state:
        state["backend"] = _text(v)


def set_puzzle(v: Any) -> None:
    with _updating() as state:
        state["puzzle"] = _text(v)


def set_formula_size(variables: Any, clauses: Any) -> None:
    with _updating() as state:
        state["variables"] = _to_count(variables)
        state["clauses"] = _to_count(clauses)
        log_attempt_detail("Formula size", phase=_PHASE.name, variables=state["variables"], clauses=state["clauses"])


def set_solutions(n: Any) -> None:
    with _updating() as state:
        state["solutions"] = _to_count(n)


def set_progress_pct(pct: Any) -> None:
    with _updating() as state:
        state["percent"] = max(0.0, min(100.0, _to_float(pct)))
        _tick_locked()


def set_elapsed(seconds: Any) -> None:
    with _updating() as state:
        state["elapsed"] = max(0.0, _to_float(seconds))


def set_message(msg: Any) -> None:
    with _updating() as state:
        state["message"] = _text(msg)


def set_result_url(url: Any) -> None:
    with _updating() as state:
        state["result_url"] = _text(url)


# ------------------------------
# Snapshots for the UI
# ------------------------------

def snapshot() -> Dict[str, Any]:
    with PROGRESS_LOCK:
        _refresh_locked()
        _tick_locked()
        out = {k: v for k, v in PROGRESS.items() if k != "elapsed_start"}
        out["elapsed_str"] = _fmt_elapsed(PROGRESS["elapsed"])
        return out


def as_json() -> Dict[str, Any]:
    # Alias used by /progress
    return snapshot()


with PROGRESS_LOCK:
    _refresh_locked(force=True)
