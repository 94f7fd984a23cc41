from __future__ import annotations

from collections import Counter
from typing import Iterable, List, Mapping, Set, Union

from models import BoardSolution, Placement, Side
from edgesat.catalog import PieceCatalog
from edgesat.errors import DecodeError, UnencodablePuzzleError
from edgesat.variables import VariableAllocator

Assignment = Union[Iterable[int], Mapping[int, bool]]


def true_identifiers(assignment: Assignment) -> Set[int]:
    """Normalize a solver model (signed literals), a set of true ids or an id -> bool mapping."""
    if isinstance(assignment, Mapping):
        return {int(k) for k, v in assignment.items() if v}
    return {int(lit) for lit in assignment if int(lit) > 0}


class SolutionDecoder:
    def __init__(self, allocator: VariableAllocator):
        self.allocator = allocator

    def decode(self, assignment: Assignment) -> BoardSolution:
        alloc = self.allocator
        true_ids = true_identifiers(assignment)
        placements: List[Placement] = []
        used_by = {}
        for cell in alloc.geometry.cells():
            hits = [v for v in alloc.cell_variables(cell) if v in true_ids]
            if not hits:
                raise DecodeError(f"No true placement variable for cell {tuple(cell)}", cell=cell)
            if len(hits) > 1:
                detail = [(v, alloc.triple_of(v)) for v in hits]
                raise DecodeError(
                    f"{len(hits)} placements claim cell {tuple(cell)}: "
                    + ", ".join(f"#{v} piece {p.piece_id} rot {p.rotation.degrees}" for v, p in detail),
                    cell=cell,
                    variables=detail,
                )
            placement = alloc.triple_of(hits[0])
            prev = used_by.get(placement.piece_id)
            if prev is not None:
                raise DecodeError(
                    f"Piece {placement.piece_id} placed twice: {tuple(prev[1].cell)} and {tuple(cell)}",
                    cell=cell,
                    piece_id=placement.piece_id,
                    variables=[prev, (hits[0], placement)],
                )
            used_by[placement.piece_id] = (hits[0], placement)
            placements.append(placement)
        return BoardSolution(alloc.geometry, tuple(placements))


def assignment_for(solution: BoardSolution, allocator: VariableAllocator) -> Set[int]:
    """True identifiers of a hand-built board (inverse of :meth:`SolutionDecoder.decode`)."""
    out: Set[int] = set()
    for p in solution:
        var = allocator.identifier_of(p.cell, p.piece_id, p.rotation)
        if var is None:
            raise UnencodablePuzzleError(
                f"Piece {p.piece_id} cannot sit at {tuple(p.cell)} with rotation {p.rotation.degrees}°",
                cell=p.cell,
                piece_id=p.piece_id,
            )
        out.add(var)
    return out


def verify_solution(solution: BoardSolution, catalog: PieceCatalog) -> List[str]:
    """Human-readable list of everything wrong with ``solution``; empty when the board is valid."""
    geometry = catalog.geometry
    border = catalog.border_code
    problems: List[str] = []

    by_cell = solution.as_dict()
    missing = [c for c in geometry.cells() if c not in by_cell]
    if missing:
        problems.append(f"{len(missing)} empty cell(s), first {tuple(missing[0])}")

    counts = Counter(p.piece_id for p in solution)
    for pid in catalog.ids():
        if counts.get(pid, 0) != 1:
            problems.append(f"piece {pid} used {counts.get(pid, 0)} times")
    for pid in counts:
        if pid not in catalog:
            problems.append(f"unknown piece {pid}")
    if problems:
        return problems

    def _edge(cell, side: Side) -> int:
        p = by_cell[cell]
        return catalog.piece(p.piece_id).edge(side, p.rotation)

    for cell in geometry.cells():
        for side in geometry.exterior_sides(cell):
            if _edge(cell, side) != border:
                problems.append(f"{tuple(cell)} {side.name.lower()} edge faces the exterior but is not a border edge")
    for cell, side, nb in geometry.adjacent_pairs():
        a = _edge(cell, side)
        b = _edge(nb, side.opposite)
        if a != b:
            problems.append(f"{tuple(cell)}|{tuple(nb)} mismatch: {a} != {b}")
    return problems


__all__ = ["SolutionDecoder", "assignment_for", "verify_solution", "true_identifiers", "Assignment"]
