from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import AbstractSet, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from pysat.card import CardEnc, EncType

from config import CFG
from models import Cell, Placement, Side
from edgesat.cnf import CnfBuilder, CnfFormula
from edgesat.errors import MalformedPuzzleError, UnencodablePuzzleError
from edgesat.symmetry import SymmetryBreaker, SymmetryPlan
from edgesat.variables import VariableAllocator

EXCLUSIVITY_MODES = ("pairwise", "seqcounter")
ADJACENCY_MODES = ("pairwise", "seam")


@dataclass(frozen=True)
class EncodingOptions:
    symmetry: str = "auto"
    pin: Optional[Placement] = None
    fixed: Tuple[Placement, ...] = ()
    exclusivity: str = "pairwise"
    adjacency: str = "pairwise"

    def __post_init__(self):
        if self.exclusivity not in EXCLUSIVITY_MODES:
            raise ValueError(f"Unknown exclusivity encoding {self.exclusivity!r}")
        if self.adjacency not in ADJACENCY_MODES:
            raise ValueError(f"Unknown adjacency encoding {self.adjacency!r}")
        object.__setattr__(self, "fixed", tuple(self.fixed))

    @classmethod
    def from_config(cls, cfg=CFG, **overrides) -> "EncodingOptions":
        values = {
            "symmetry": str(getattr(cfg, "SYMMETRY", "auto")).lower(),
            "exclusivity": str(getattr(cfg, "EXCLUSIVITY", "pairwise")).lower(),
            "adjacency": str(getattr(cfg, "ADJACENCY", "pairwise")).lower(),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


def _pairwise_amo(lits: Sequence[int]) -> Iterable[List[int]]:
    for i in range(len(lits)):
        for j in range(i + 1, len(lits)):
            yield [-lits[i], -lits[j]]


@dataclass
class _Seam:
    var_by_code: Dict[int, int] = field(default_factory=dict)


class ConstraintGenerator:
    """Builds the clause set whose models are exactly the valid boards.

    Families are emitted in a fixed order (coverage, exclusivity, piece
    usage, adjacency, fixed placements, symmetry) and, inside each family, by
    row-major cell and ascending identifier so that engines see the same
    formula on every run.
    """

    def __init__(self, allocator: VariableAllocator, options: Optional[EncodingOptions] = None):
        self.allocator = allocator
        self.options = options or EncodingOptions()
        self.symmetry_plan: Optional[SymmetryPlan] = None
        # (cell_a, side) -> seam bookkeeping, only for the "seam" encoding
        self._seams: Dict[Tuple[Cell, Side], _Seam] = {}

    # ---------------- checks ----------------

    def _check_encodable(self) -> None:
        alloc = self.allocator
        empty_cells = alloc.cells_without_placements()
        if empty_cells:
            cell = empty_cells[0]
            raise UnencodablePuzzleError(
                f"No piece can be placed at cell {tuple(cell)} "
                f"({len(empty_cells)} cell(s) without admissible placements)",
                cell=cell,
            )
        idle = alloc.pieces_without_placements()
        if idle:
            raise UnencodablePuzzleError(
                f"Piece {idle[0]} fits no cell of the board "
                f"({len(idle)} piece(s) without admissible placements)",
                piece_id=idle[0],
            )

    def _fixed_literals(self) -> List[int]:
        seen_cells: Set[Cell] = set()
        seen_pieces: Set[int] = set()
        out: List[int] = []
        for fp in self.options.fixed:
            if fp.cell in seen_cells:
                raise MalformedPuzzleError(f"Two fixed placements on cell {tuple(fp.cell)}")
            if fp.piece_id in seen_pieces:
                raise MalformedPuzzleError(f"Piece {fp.piece_id} is fixed twice")
            seen_cells.add(fp.cell)
            seen_pieces.add(fp.piece_id)
            var = self.allocator.identifier_of(fp.cell, fp.piece_id, fp.rotation)
            if var is None:
                raise UnencodablePuzzleError(
                    f"Fixed piece {fp.piece_id} cannot sit at {tuple(fp.cell)} "
                    f"with rotation {fp.rotation.degrees}°",
                    cell=fp.cell,
                    piece_id=fp.piece_id,
                )
            out.append(var)
        return out

    # ---------------- families ----------------

    def _at_most_one(self, cnf: CnfBuilder, lits: List[int]) -> None:
        if len(lits) < 2:
            return
        if self.options.exclusivity == "pairwise" or len(lits) < 4:
            cnf.extend(_pairwise_amo(lits))
            return
        enc = CardEnc.atmost(lits=lits, bound=1, top_id=cnf.top, encoding=EncType.seqcounter)
        cnf.extend(enc.clauses)
        cnf.top = max(cnf.top, enc.nv)

    def _coverage(self, cnf: CnfBuilder) -> None:
        cnf.family("coverage")
        for cell in self.allocator.geometry.cells():
            cnf.add(self.allocator.cell_variables(cell))

    def _exclusivity(self, cnf: CnfBuilder) -> None:
        cnf.family("exclusivity")
        for cell in self.allocator.geometry.cells():
            self._at_most_one(cnf, self.allocator.cell_variables(cell))

    def _piece_usage(self, cnf: CnfBuilder) -> None:
        cnf.family("piece_usage")
        for piece_id in self.allocator.catalog.ids():
            lits = self.allocator.piece_variables(piece_id)
            cnf.add(lits)
            self._at_most_one(cnf, lits)

    def _adjacency(self, cnf: CnfBuilder) -> None:
        cnf.family("adjacency")
        alloc = self.allocator
        for cell, side, nb in alloc.geometry.adjacent_pairs():
            here = [(v, alloc.facing_edge(v, side)) for v in alloc.cell_variables(cell)]
            there = [(w, alloc.facing_edge(w, side.opposite)) for w in alloc.cell_variables(nb)]
            if self.options.adjacency == "seam":
                self._seam_clauses(cnf, cell, side, here, there)
                continue
            for v, code in here:
                for w, other in there:
                    if code != other:
                        cnf.add([-v, -w])

    def _seam_clauses(self, cnf, cell, side, here, there) -> None:
        shared = sorted({c for _, c in here} & {c for _, c in there})
        seam = _Seam({code: cnf.new_var() for code in shared})
        self._seams[(cell, side)] = seam
        for v, code in here + there:
            sv = seam.var_by_code.get(code)
            if sv is None:
                cnf.add([-v])
            else:
                cnf.add([-v, sv])
        cnf.extend(_pairwise_amo([seam.var_by_code[c] for c in shared]))

    # ---------------- public ----------------

    def generate(self) -> CnfFormula:
        self._check_encodable()
        fixed = self._fixed_literals()
        self.symmetry_plan = SymmetryBreaker(self.allocator).plan(
            self.options.symmetry,
            self.options.pin,
            has_fixed=bool(fixed),
        )

        self._seams = {}
        cnf = CnfBuilder(self.allocator.count)
        self._coverage(cnf)
        self._exclusivity(cnf)
        self._piece_usage(cnf)
        self._adjacency(cnf)
        cnf.family("fixed")
        for var in fixed:
            cnf.add([var])
        cnf.family("symmetry")
        cnf.extend(self.symmetry_plan.clauses)
        return cnf.build()

    def extend_assignment(self, true_ids: AbstractSet[int]) -> Set[int]:
        """Add the seam variables implied by a placement-only assignment.

        Only meaningful after :meth:`generate`; the sequential-counter
        auxiliaries are not derivable this way.
        """
        if self.options.exclusivity != "pairwise":
            raise ValueError("Auxiliary values are only derivable for the pairwise exclusivity encoding")
        out = set(true_ids)
        alloc = self.allocator
        for (cell, side), seam in self._seams.items():
            for v in alloc.cell_variables(cell):
                if v in out:
                    sv = seam.var_by_code.get(alloc.facing_edge(v, side))
                    if sv is not None:
                        out.add(sv)
                    break
        return out


__all__ = ["ConstraintGenerator", "EncodingOptions", "EXCLUSIVITY_MODES", "ADJACENCY_MODES"]
