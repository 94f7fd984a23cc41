import threading
import time

import pytest

from edgesat.backends import (
    CANCEL_REASON,
    CpSatBackend,
    PySatBackend,
    SolveStatus,
    _Watchdog,
    get_backend,
)
from edgesat.cnf import CnfFormula
from edgesat.constraints import ConstraintGenerator, EncodingOptions
from edgesat.variables import VariableAllocator
from tests.data import catalog_2x2, catalog_2x2_incompatible

BACKEND_NAMES = ["cp-sat", "pysat"]


def _formula(catalog, symmetry="off"):
    alloc = VariableAllocator(catalog)
    return ConstraintGenerator(alloc, EncodingOptions(symmetry=symmetry)).generate()


@pytest.mark.parametrize("name", BACKEND_NAMES)
def test_tiny_formulas(name):
    backend = get_backend(name)
    sat = backend.solve(CnfFormula(2, [[1, 2], [-1]]), seconds=10)
    assert sat.status == SolveStatus.SATISFIABLE
    assert sat.ok
    assert sat.true_ids == frozenset({2})

    unsat = backend.solve(CnfFormula(1, [[1], [-1]]), seconds=10)
    assert unsat.status == SolveStatus.UNSATISFIABLE
    assert "infeasible" in unsat.reason


@pytest.mark.parametrize("name", BACKEND_NAMES)
def test_puzzle_formulas(name):
    backend = get_backend(name)
    res = backend.solve(_formula(catalog_2x2()), seconds=30)
    assert res.ok and len(res.true_ids) == 4
    assert res.stats["seconds"] >= 0

    res = backend.solve(_formula(catalog_2x2_incompatible()), seconds=30)
    assert res.status == SolveStatus.UNSATISFIABLE


@pytest.mark.parametrize("name", BACKEND_NAMES)
def test_enumerate_blocks_each_model(name):
    backend = get_backend(name)
    models = list(backend.enumerate(_formula(catalog_2x2()), seconds=60))
    assert len(models) == 4
    assert len({m.true_ids for m in models}) == 4
    assert backend.last_result.status == SolveStatus.UNSATISFIABLE

    limited = list(backend.enumerate(_formula(catalog_2x2()), limit=2, seconds=60))
    assert len(limited) == 2


@pytest.mark.parametrize("name", BACKEND_NAMES)
def test_cancelled_before_start(name):
    cancel = threading.Event()
    cancel.set()
    backend = get_backend(name)
    res = backend.solve(_formula(catalog_2x2()), seconds=30, cancel=cancel)
    assert res.status == SolveStatus.ABORTED
    assert res.reason == CANCEL_REASON
    assert list(backend.enumerate(_formula(catalog_2x2()), cancel=cancel)) == []
    assert backend.last_result.reason == CANCEL_REASON


def test_zero_budget_enumeration_is_a_timebox():
    backend = PySatBackend()
    assert list(backend.enumerate(_formula(catalog_2x2()), seconds=0)) == []
    assert backend.last_result.status == SolveStatus.ABORTED
    assert "timebox" in backend.last_result.reason


def test_engine_errors_become_aborted():
    res = PySatBackend("no-such-engine").solve(CnfFormula(1, [[1]]), seconds=5)
    assert res.status == SolveStatus.ABORTED
    assert res.reason.startswith("Engine error")


def test_get_backend_names(monkeypatch):
    from config import CFG

    assert isinstance(get_backend("CP-SAT"), CpSatBackend)
    assert isinstance(get_backend("pysat"), PySatBackend)
    monkeypatch.setattr(CFG, "BACKEND", "pysat")
    assert isinstance(get_backend(None), PySatBackend)
    with pytest.raises(ValueError):
        get_backend("minisat-online")


@pytest.mark.parametrize("name", BACKEND_NAMES)
def test_cancel_between_models_stops_enumeration(name):
    cancel = threading.Event()
    backend = get_backend(name)
    models = []
    for res in backend.enumerate(_formula(catalog_2x2()), seconds=60, cancel=cancel):
        models.append(res)
        cancel.set()
    assert len(models) == 1
    assert backend.last_result.status == SolveStatus.ABORTED
    assert backend.last_result.reason == CANCEL_REASON
    assert backend.last_result.stats["solutions"] == 1


def test_watchdog_repeats_stop_until_released():
    calls = []
    cancel = threading.Event()
    cancel.set()
    with _Watchdog(lambda: calls.append(1), None, cancel) as dog:
        time.sleep(_Watchdog.POLL * 6)
    assert dog.fired == "cancel"
    assert len(calls) >= 2
    settled = len(calls)
    time.sleep(_Watchdog.POLL * 3)
    assert len(calls) == settled
