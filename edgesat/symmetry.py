"""Symmetry-breaking clauses derived from the board's rotation group.

Turning a solved board by a symmetry of its outline (90° steps on a square
board, 180° otherwise) yields another solution, with every piece turned by
the same amount.  Pieces cannot be flipped, so reflections are not
symmetries.  We pick one distinguished piece and require it to sit on a
representative of each orbit of the cells it may occupy: any solution can be
turned so that this holds, so satisfiability never changes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from models import Cell, Placement
from edgesat.errors import UnencodablePuzzleError
from edgesat.variables import VariableAllocator

MODES = ("auto", "off", "pin")


@dataclass(frozen=True)
class SymmetryPlan:
    mode: str
    clauses: Tuple[Tuple[int, ...], ...] = ()
    group_order: int = 1
    piece_id: Optional[int] = None
    cells: Tuple[Cell, ...] = ()
    description: str = ""

    @property
    def active(self) -> bool:
        return bool(self.clauses)

    def as_meta(self) -> Dict[str, object]:
        return {
            "mode": self.mode,
            "group_order": self.group_order,
            "piece_id": self.piece_id,
            "cells": [tuple(c) for c in self.cells],
            "clauses": len(self.clauses),
            "description": self.description,
        }


class SymmetryBreaker:
    def __init__(self, allocator: VariableAllocator):
        self.allocator = allocator

    def orbits(self, cells: List[Cell]) -> List[List[Cell]]:
        """Partition ``cells`` into orbits of the board rotation group (row-major order inside)."""
        geometry = self.allocator.geometry
        order = geometry.rotation_order
        step = 4 // order
        pending = set(cells)
        out: List[List[Cell]] = []
        for cell in sorted(cells, key=geometry.index):
            if cell not in pending:
                continue
            orbit = {geometry.rotate_cell(cell, k * step) for k in range(order)}
            orbit &= pending
            pending -= orbit
            out.append(sorted(orbit, key=geometry.index))
        return out

    def plan(
        self,
        mode: str = "auto",
        pin: Optional[Placement] = None,
        *,
        has_fixed: bool = False,
    ) -> SymmetryPlan:
        mode = (mode or "off").strip().lower()
        if mode not in MODES:
            raise ValueError(f"Unknown symmetry mode {mode!r} (expected one of {', '.join(MODES)})")

        if mode == "off":
            return SymmetryPlan("off", description="disabled")

        if mode == "pin":
            if pin is None:
                raise ValueError("Symmetry mode 'pin' needs a placement to pin")
            var = self.allocator.identifier_of(pin.cell, pin.piece_id, pin.rotation)
            if var is None:
                raise UnencodablePuzzleError(
                    f"Pinned piece {pin.piece_id} at {tuple(pin.cell)} rot {pin.rotation.degrees}° is not admissible",
                    cell=pin.cell,
                    piece_id=pin.piece_id,
                )
            return SymmetryPlan(
                "pin",
                clauses=((var,),),
                piece_id=pin.piece_id,
                cells=(pin.cell,),
                description=f"piece {pin.piece_id} pinned at {tuple(pin.cell)}",
            )

        if has_fixed:
            return SymmetryPlan("auto", description="skipped: fixed placements already break symmetry")

        geometry = self.allocator.geometry
        catalog = self.allocator.catalog
        anchor_kind = geometry.kind(Cell(0, 0))
        piece_id = next(
            (p.id for p in catalog if p.kind(catalog.border_code) == anchor_kind),
            None,
        )
        if piece_id is None:
            return SymmetryPlan("auto", description="skipped: no piece fits the anchor cell")

        kind_cells = [c for c in geometry.cells() if geometry.kind(c) == anchor_kind]
        reps = [orbit[0] for orbit in self.orbits(kind_cells)]
        order = geometry.rotation_order
        if len(reps) == len(kind_cells):
            return SymmetryPlan(
                "auto",
                group_order=order,
                piece_id=piece_id,
                description="skipped: rotations fix every candidate cell",
            )

        literals: List[int] = []
        for cell in reps:
            for var in self.allocator.cell_variables(cell):
                if self.allocator.triple_of(var).piece_id == piece_id:
                    literals.append(var)
        if not literals:
            # Every cell of the anchor kind admits that piece, so this only
            # happens when the catalog was bypassed.
            raise UnencodablePuzzleError(
                f"Piece {piece_id} has no admissible placement on the symmetry representatives",
                piece_id=piece_id,
            )
        return SymmetryPlan(
            "auto",
            clauses=(tuple(literals),),
            group_order=order,
            piece_id=piece_id,
            cells=tuple(reps),
            description=(
                f"{anchor_kind.value} piece {piece_id} restricted to "
                + ", ".join(str(tuple(c)) for c in reps)
                + f" ({order}-fold rotation)"
            ),
        )


__all__ = ["SymmetryBreaker", "SymmetryPlan", "MODES"]
