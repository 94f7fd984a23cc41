"""Mapping between (cell, piece, rotation) triples and SAT variable identifiers.

Only admissible triples get an identifier: a piece rotation may sit in a cell
when its border edges face exactly the cell's exterior sides.  Identifiers
are dense and start at 1, allocated row-major by cell, then by ascending
piece id, then by rotation.  For a 2x2 board of corner pieces that gives::

    1 -> (0,0) piece #0 rot 0
    2 -> (0,0) piece #1 rot 270
    ...
    16 -> (1,1) piece #3 rot ...
"""

from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from models import BoardGeometry, Cell, Piece, Placement, Rotation, Side
from edgesat.catalog import PieceCatalog


def is_admissible(
    geometry: BoardGeometry,
    piece: Piece,
    rotation: Rotation,
    cell: Tuple[int, int],
    border_code: int,
) -> bool:
    exterior = geometry.exterior_sides(cell)
    rotated = piece.rotated(rotation)
    for side in Side:
        if (side in exterior) != (rotated[side] == border_code):
            return False
    return True


class VariableAllocator:
    def __init__(self, catalog: PieceCatalog):
        self.catalog = catalog
        geometry = catalog.geometry
        border = catalog.border_code

        self._ids: Dict[Tuple[int, int, int], int] = {}
        self._triples: List[Placement] = []
        self._edges: List[Tuple[int, int, int, int]] = []
        self._by_cell: List[List[int]] = [[] for _ in range(geometry.cell_count)]
        self._by_piece: Dict[int, List[int]] = {p.id: [] for p in catalog}

        for cell in geometry.cells():
            idx = geometry.index(cell)
            for piece in catalog:
                for rot in Rotation:
                    if not is_admissible(geometry, piece, rot, cell, border):
                        continue
                    self._triples.append(Placement(cell, piece.id, rot))
                    self._edges.append(piece.rotated(rot))
                    var = len(self._triples)
                    self._ids[(idx, piece.id, int(rot))] = var
                    self._by_cell[idx].append(var)
                    self._by_piece[piece.id].append(var)

    # ---------------- lookups ----------------

    @property
    def geometry(self) -> BoardGeometry:
        return self.catalog.geometry

    @property
    def count(self) -> int:
        return len(self._triples)

    def __len__(self) -> int:
        return len(self._triples)

    def _check(self, cell, piece_id) -> int:
        if not self.geometry.contains(cell):
            raise ValueError(f"Cell {tuple(cell)} is outside the {self.geometry.width}x{self.geometry.height} board")
        if piece_id not in self._by_piece:
            raise ValueError(f"Unknown piece id {piece_id}")
        return self.geometry.index(cell)

    def identifier_of(self, cell: Tuple[int, int], piece_id: int, rotation: Rotation) -> Optional[int]:
        """Variable for the triple, or ``None`` when the triple is not admissible."""
        idx = self._check(cell, piece_id)
        return self._ids.get((idx, piece_id, int(rotation)))

    def is_admissible(self, cell: Tuple[int, int], piece_id: int, rotation: Rotation) -> bool:
        return self.identifier_of(cell, piece_id, rotation) is not None

    def triple_of(self, identifier: int) -> Placement:
        if not 1 <= identifier <= len(self._triples):
            raise ValueError(f"Unknown variable {identifier} (allocated 1..{len(self._triples)})")
        return self._triples[identifier - 1]

    def cell_variables(self, cell: Tuple[int, int]) -> List[int]:
        if not self.geometry.contains(cell):
            raise ValueError(f"Cell {tuple(cell)} is outside the board")
        return list(self._by_cell[self.geometry.index(cell)])

    def piece_variables(self, piece_id: int) -> List[int]:
        try:
            return list(self._by_piece[piece_id])
        except KeyError:
            raise ValueError(f"Unknown piece id {piece_id}") from None

    def facing_edge(self, identifier: int, side: Side) -> int:
        """Edge code the placed (rotated) piece shows on ``side``."""
        return self._edges[identifier - 1][side]

    def cells_without_placements(self) -> List[Cell]:
        return [self.geometry.cell_at(i) for i, vs in enumerate(self._by_cell) if not vs]

    def pieces_without_placements(self) -> List[int]:
        return [pid for pid, vs in self._by_piece.items() if not vs]

    def stats(self) -> Dict[str, int]:
        per_cell = [len(v) for v in self._by_cell]
        return {
            "variables": self.count,
            "max_per_cell": max(per_cell) if per_cell else 0,
            "min_per_cell": min(per_cell) if per_cell else 0,
        }


__all__ = ["VariableAllocator", "is_admissible"]
