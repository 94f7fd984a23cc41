from __future__ import annotations

from typing import AbstractSet, Dict, Iterable, List, Optional, Sequence

Clause = List[int]

# Emission order of the clause families.
FAMILIES = (
    "coverage",
    "exclusivity",
    "piece_usage",
    "adjacency",
    "fixed",
    "symmetry",
)


class CnfFormula:
    """Flat CNF handed to the engine.

    ``placement_vars`` is the allocator's variable count; identifiers above it
    are auxiliary (compact encodings) and carry no board meaning.  Instances
    are not mutated once built.
    """

    __slots__ = ("num_vars", "placement_vars", "clauses", "families")

    def __init__(
        self,
        num_vars: int,
        clauses: List[Clause],
        *,
        placement_vars: Optional[int] = None,
        families: Optional[Dict[str, int]] = None,
    ):
        self.num_vars = int(num_vars)
        self.placement_vars = int(num_vars if placement_vars is None else placement_vars)
        self.clauses = clauses
        self.families = dict(families or {})

    def __len__(self) -> int:
        return len(self.clauses)

    def __repr__(self) -> str:
        return f"CnfFormula(vars={self.num_vars}, clauses={len(self.clauses)})"

    def family_slice(self, family: str) -> slice:
        start = 0
        for name in FAMILIES:
            n = self.families.get(name, 0)
            if name == family:
                return slice(start, start + n)
            start += n
        raise KeyError(family)

    def family_clauses(self, family: str) -> List[Clause]:
        return self.clauses[self.family_slice(family)]

    def violated(self, true_ids: AbstractSet[int]) -> List[int]:
        """Indexes of clauses not satisfied when exactly ``true_ids`` are true."""
        bad = []
        for i, clause in enumerate(self.clauses):
            if not any((lit > 0) == (abs(lit) in true_ids) for lit in clause):
                bad.append(i)
        return bad

    def stats(self) -> Dict[str, object]:
        return {
            "variables": self.num_vars,
            "placement_variables": self.placement_vars,
            "clauses": len(self.clauses),
            "families": dict(self.families),
        }


class CnfBuilder:
    """Accumulates clauses family by family; auxiliary ids follow the placement variables."""

    def __init__(self, placement_vars: int):
        self.placement_vars = int(placement_vars)
        self.top = int(placement_vars)
        self.clauses: List[Clause] = []
        self.families: Dict[str, int] = {}
        self._family: Optional[str] = None

    def family(self, name: str) -> "CnfBuilder":
        if name not in FAMILIES:
            raise ValueError(f"Unknown clause family {name!r}")
        self._family = name
        self.families.setdefault(name, 0)
        return self

    def new_var(self) -> int:
        self.top += 1
        return self.top

    def add(self, clause: Sequence[int]) -> None:
        if self._family is None:
            raise RuntimeError("family() must be selected before adding clauses")
        self.clauses.append(list(clause))
        self.families[self._family] += 1

    def extend(self, clauses: Iterable[Sequence[int]]) -> None:
        for clause in clauses:
            self.add(clause)

    def build(self) -> CnfFormula:
        return CnfFormula(
            self.top,
            self.clauses,
            placement_vars=self.placement_vars,
            families=self.families,
        )


__all__ = ["Clause", "CnfFormula", "CnfBuilder", "FAMILIES"]
