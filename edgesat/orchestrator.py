# Orchestrator: encode -> solve -> decode pipeline plus the budget retry policy
from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Sequence

from config import CFG, parse_budgets
from models import BoardSolution
from progress import (
    set_phase, set_attempt, set_backend, set_puzzle, set_formula_size,
    set_solutions, set_status, set_message, set_progress_pct, log_attempt_detail,
)
from edgesat.backends import SolveResult, SolveStatus, get_backend
from edgesat.catalog import PieceCatalog
from edgesat.cnf import CnfFormula
from edgesat.constraints import ConstraintGenerator, EncodingOptions
from edgesat.decoder import SolutionDecoder, verify_solution
from edgesat.errors import DecodeError
from edgesat.isolate import run_isolated
from edgesat.symmetry import SymmetryPlan
from edgesat.variables import VariableAllocator


# ---------- data ----------

@dataclass
class Encoding:
    catalog: PieceCatalog
    allocator: VariableAllocator
    generator: ConstraintGenerator
    formula: CnfFormula
    seconds: float = 0.0

    @property
    def symmetry_plan(self) -> SymmetryPlan:
        return self.generator.symmetry_plan

    def describe(self) -> Dict[str, object]:
        return {
            "puzzle": self.catalog.describe(),
            "formula": self.formula.stats(),
            "symmetry": self.symmetry_plan.as_meta(),
            "encode_seconds": round(self.seconds, 3),
        }


@dataclass
class SolveOutcome:
    status: SolveStatus
    solution: Optional[BoardSolution] = None
    reason: Optional[str] = None
    meta: Dict[str, object] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == SolveStatus.SATISFIABLE


# ---------- helpers ----------

def _should_retry(reason: Optional[str]) -> bool:
    """Return True when an aborted solve is worth another go with a larger budget."""

    if not reason:
        return False

    text = str(reason).strip().lower()
    if not text:
        return False

    if "proven infeasible" in text or "cancel" in text:
        return False

    retry_tokens = (
        "timebox",
        "timeout",
        "stopped before solution",
        "subprocess",
        "crash",
        "child exit",
        "memory",
        "killed",
    )

    return any(token in text for token in retry_tokens)


def _budgets(budgets: Optional[Sequence[float]]) -> List[float]:
    if budgets is not None:
        out = [float(b) for b in budgets if float(b) > 0]
    else:
        out = parse_budgets(getattr(CFG, "TIME_BUDGETS", ""))
    return out or [float(getattr(CFG, "TIME_LIMIT", 300))]


def encode_puzzle(catalog: PieceCatalog, options: Optional[EncodingOptions] = None) -> Encoding:
    """Allocate variables and generate clauses; raises before any solving on bad input."""
    options = options or EncodingOptions.from_config()
    t0 = time.monotonic()
    allocator = VariableAllocator(catalog)
    generator = ConstraintGenerator(allocator, options)
    formula = generator.generate()
    enc = Encoding(catalog, allocator, generator, formula, time.monotonic() - t0)
    log_attempt_detail(
        "Encoded puzzle",
        board=f"{catalog.geometry.width}x{catalog.geometry.height}",
        pieces=len(catalog),
        placement_vars=allocator.count,
        variables=formula.num_vars,
        clauses=len(formula),
        symmetry=enc.symmetry_plan.description,
        seconds=f"{enc.seconds:.3f}",
    )
    return enc


def _decode_verified(encoding: Encoding, true_ids) -> BoardSolution:
    solution = SolutionDecoder(encoding.allocator).decode(true_ids)
    problems = verify_solution(solution, encoding.catalog)
    if problems:
        raise DecodeError("Decoded board is not a valid solution: " + "; ".join(problems[:5]))
    return solution


def _run_engine(encoding: Encoding, backend_name: str, seconds: float, cancel, isolate: bool) -> SolveResult:
    if isolate:
        return run_isolated(encoding.formula, backend_name, seconds, cancel)
    return get_backend(backend_name).solve(encoding.formula, seconds=seconds, cancel=cancel)


def solve_encoded(
    encoding: Encoding,
    *,
    backend: Optional[str] = None,
    seconds: Optional[float] = None,
    cancel: Optional[threading.Event] = None,
    isolate: Optional[bool] = None,
) -> SolveOutcome:
    backend_name = str(backend or getattr(CFG, "BACKEND", "cp-sat")).lower()
    seconds = float(getattr(CFG, "TIME_LIMIT", 300) if seconds is None else seconds)
    isolate = bool(getattr(CFG, "ISOLATE", True) if isolate is None else isolate)

    set_backend(backend_name)
    set_phase("solve")
    t0 = time.monotonic()
    result = _run_engine(encoding, backend_name, seconds, cancel, isolate)
    solve_seconds = time.monotonic() - t0

    meta = encoding.describe()
    meta.update({
        "backend": backend_name,
        "isolated": isolate,
        "budget": seconds,
        "solve_seconds": round(solve_seconds, 3),
        "engine": dict(result.stats),
    })
    log_attempt_detail(
        "Solver finished",
        backend=backend_name,
        status=result.status.value,
        reason=result.reason,
        seconds=f"{solve_seconds:.2f}",
    )

    if not result.ok:
        return SolveOutcome(result.status, None, result.reason, meta)

    set_phase("decode")
    solution = _decode_verified(encoding, result.true_ids)
    set_solutions(1)
    return SolveOutcome(SolveStatus.SATISFIABLE, solution, None, meta)


def solve_puzzle(
    catalog: PieceCatalog,
    options: Optional[EncodingOptions] = None,
    *,
    backend: Optional[str] = None,
    seconds: Optional[float] = None,
    cancel: Optional[threading.Event] = None,
    isolate: Optional[bool] = None,
) -> SolveOutcome:
    """Encode, solve once and decode.

    UNSATISFIABLE and ABORTED are returned as outcomes; malformed or
    unencodable puzzles raise from the encode step before the engine runs.
    """
    set_phase("encode")
    set_puzzle(f"{catalog.geometry.width}×{catalog.geometry.height}, {len(catalog)} pieces")
    encoding = encode_puzzle(catalog, options)
    set_formula_size(encoding.formula.num_vars, len(encoding.formula))
    return solve_encoded(encoding, backend=backend, seconds=seconds, cancel=cancel, isolate=isolate)


def iter_solutions(
    catalog: PieceCatalog,
    options: Optional[EncodingOptions] = None,
    *,
    backend: Optional[str] = None,
    limit: Optional[int] = None,
    seconds: Optional[float] = None,
    cancel: Optional[threading.Event] = None,
) -> Iterator[BoardSolution]:
    """Lazily yield distinct verified boards; each one is blocked before the next search."""
    encoding = encode_puzzle(catalog, options)
    engine = get_backend(backend)
    found = 0
    set_phase("enumerate")
    for res in engine.enumerate(encoding.formula, limit=limit, seconds=seconds, cancel=cancel):
        solution = _decode_verified(encoding, res.true_ids)
        found += 1
        set_solutions(found)
        yield solution
    last = engine.last_result
    log_attempt_detail(
        "Enumeration finished",
        solutions=found,
        status=last.status.value if last is not None else "limit",
        reason=last.reason if last is not None else None,
    )


def count_solutions(catalog: PieceCatalog, options: Optional[EncodingOptions] = None, **kwargs) -> int:
    return sum(1 for _ in iter_solutions(catalog, options, **kwargs))


def solve_with_budgets(
    catalog: PieceCatalog,
    options: Optional[EncodingOptions] = None,
    *,
    budgets: Optional[Sequence[float]] = None,
    backend: Optional[str] = None,
    cancel: Optional[threading.Event] = None,
    isolate: Optional[bool] = None,
    encoding: Optional[Encoding] = None,
) -> SolveOutcome:
    """Solve with escalating time budgets.

    Only ABORTED outcomes with a timebox / crash / resource reason are
    retried; UNSATISFIABLE is final and exceptions propagate.  A prebuilt
    ``encoding`` of the same catalog skips the encode step.
    """
    plan = _budgets(budgets)
    set_status("Solving")
    if encoding is None:
        set_phase("encode")
        set_puzzle(f"{catalog.geometry.width}×{catalog.geometry.height}, {len(catalog)} pieces")
        encoding = encode_puzzle(catalog, options)
    set_formula_size(encoding.formula.num_vars, len(encoding.formula))

    attempts: List[Dict[str, object]] = []
    outcome: Optional[SolveOutcome] = None
    for i, seconds in enumerate(plan, start=1):
        set_attempt(f"budget {i}/{len(plan)} ({seconds:g}s)")
        set_progress_pct(100.0 * (i - 1) / len(plan))
        outcome = solve_encoded(encoding, backend=backend, seconds=seconds, cancel=cancel, isolate=isolate)
        attempts.append({
            "budget": seconds,
            "status": outcome.status.value,
            "reason": outcome.reason,
            "seconds": outcome.meta.get("solve_seconds"),
        })
        if outcome.status != SolveStatus.ABORTED:
            break
        if cancel is not None and cancel.is_set():
            break
        if not _should_retry(outcome.reason):
            break
        if i < len(plan):
            set_message(f"Retrying with {plan[i]:g}s after: {outcome.reason}")
            log_attempt_detail("Retrying solve", reason=outcome.reason, next_budget=f"{plan[i]:g}s")

    outcome.meta["attempts"] = attempts
    return outcome


__all__ = [
    "Encoding",
    "SolveOutcome",
    "encode_puzzle",
    "solve_encoded",
    "solve_puzzle",
    "iter_solutions",
    "count_solutions",
    "solve_with_budgets",
]
