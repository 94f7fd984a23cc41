from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Dict, FrozenSet, Iterator, List, NamedTuple, Optional, Sequence, Tuple

Edges = Tuple[int, int, int, int]  # (north, east, south, west)


class Side(IntEnum):
    NORTH = 0
    EAST = 1
    SOUTH = 2
    WEST = 3

    @property
    def opposite(self) -> "Side":
        return Side((self + 2) % 4)

    @property
    def offset(self) -> Tuple[int, int]:
        """(d_row, d_col) towards the neighbour on this side; rows grow southwards."""
        return _SIDE_OFFSETS[self]


_SIDE_OFFSETS = {
    Side.NORTH: (-1, 0),
    Side.EAST: (0, 1),
    Side.SOUTH: (1, 0),
    Side.WEST: (0, -1),
}


class Rotation(IntEnum):
    """Clockwise quarter turns."""

    R0 = 0
    R90 = 1
    R180 = 2
    R270 = 3

    @property
    def degrees(self) -> int:
        return int(self) * 90

    def apply(self, edges: Sequence[int]) -> Edges:
        # rotating (N, E, S, W) by 90° gives (W, N, E, S)
        r = int(self)
        return tuple(edges[(s - r) % 4] for s in range(4))  # type: ignore[return-value]

    def compose(self, other: "Rotation") -> "Rotation":
        return Rotation((int(self) + int(other)) % 4)

    @classmethod
    def from_value(cls, value) -> "Rotation":
        """Accept quarter turns (0..3), degrees (0/90/180/270) or names like ``R90``."""
        if isinstance(value, Rotation):
            return value
        if isinstance(value, str):
            text = value.strip().upper()
            if text in cls.__members__:
                return cls[text]
            value = int(float(text.rstrip("°")))
        value = int(value)
        if value in (0, 1, 2, 3):
            return cls(value)
        if value % 90 == 0:
            return cls((value // 90) % 4)
        raise ValueError(f"Not a rotation: {value!r}")


class CellKind(str, Enum):
    INTERIOR = "interior"
    EDGE = "edge"
    CORNER = "corner"
    STRIP = "strip"    # two opposite border sides (one-cell-wide boards)
    END = "end"        # three border sides
    SINGLE = "single"  # all four sides on the border (1x1 board)


def kind_of(border_sides: FrozenSet[Side]) -> CellKind:
    n = len(border_sides)
    if n == 0:
        return CellKind.INTERIOR
    if n == 1:
        return CellKind.EDGE
    if n == 2:
        a, b = sorted(border_sides)
        return CellKind.STRIP if b == a.opposite else CellKind.CORNER
    if n == 3:
        return CellKind.END
    return CellKind.SINGLE


@dataclass(frozen=True)
class Piece:
    id: int
    edges: Edges

    def rotated(self, rotation: Rotation = Rotation.R0) -> Edges:
        return Rotation(rotation).apply(self.edges)

    def edge(self, side: Side, rotation: Rotation = Rotation.R0) -> int:
        return self.edges[(int(side) - int(rotation)) % 4]

    def border_sides(self, border_code: int, rotation: Rotation = Rotation.R0) -> FrozenSet[Side]:
        rotated = self.rotated(rotation)
        return frozenset(s for s in Side if rotated[s] == border_code)

    def kind(self, border_code: int) -> CellKind:
        return kind_of(self.border_sides(border_code))


class Cell(NamedTuple):
    row: int
    col: int


@dataclass(frozen=True)
class BoardGeometry:
    width: int
    height: int

    def __post_init__(self):
        if int(self.width) <= 0 or int(self.height) <= 0:
            raise ValueError(f"Board dimensions must be positive: {self.width}x{self.height}")

    @property
    def cell_count(self) -> int:
        return self.width * self.height

    @property
    def is_square(self) -> bool:
        return self.width == self.height

    @property
    def rotation_order(self) -> int:
        """Order of the board's rotation group (pieces cannot be flipped)."""
        return 4 if self.is_square else 2

    def contains(self, cell: Tuple[int, int]) -> bool:
        r, c = cell
        return 0 <= r < self.height and 0 <= c < self.width

    def cells(self) -> Iterator[Cell]:
        for r in range(self.height):
            for c in range(self.width):
                yield Cell(r, c)

    def index(self, cell: Tuple[int, int]) -> int:
        r, c = cell
        return r * self.width + c

    def cell_at(self, index: int) -> Cell:
        r, c = divmod(index, self.width)
        return Cell(r, c)

    def neighbor(self, cell: Tuple[int, int], side: Side) -> Optional[Cell]:
        dr, dc = side.offset
        nb = Cell(cell[0] + dr, cell[1] + dc)
        return nb if self.contains(nb) else None

    def exterior_sides(self, cell: Tuple[int, int]) -> FrozenSet[Side]:
        return frozenset(s for s in Side if self.neighbor(cell, s) is None)

    def kind(self, cell: Tuple[int, int]) -> CellKind:
        return kind_of(self.exterior_sides(cell))

    def adjacent_pairs(self) -> Iterator[Tuple[Cell, Side, Cell]]:
        """Yield ``(cell, side, neighbour)`` once per shared side, row-major, east before south."""
        for cell in self.cells():
            for side in (Side.EAST, Side.SOUTH):
                nb = self.neighbor(cell, side)
                if nb is not None:
                    yield cell, side, nb

    def required_kinds(self) -> Counter:
        return Counter(self.kind(cell) for cell in self.cells())

    def rotate_cell(self, cell: Tuple[int, int], quarter_turns: int) -> Cell:
        """Image of ``cell`` when the whole board turns clockwise ``quarter_turns`` times."""
        turns = quarter_turns % 4
        if turns % 2 == 1 and not self.is_square:
            raise ValueError("Quarter turns only map a square board onto itself")
        r, c = cell
        n_r, n_c = self.height, self.width
        for _ in range(turns):
            r, c = c, n_r - 1 - r
            n_r, n_c = n_c, n_r
        return Cell(r, c)


@dataclass(frozen=True)
class Placement:
    cell: Cell
    piece_id: int
    rotation: Rotation = Rotation.R0

    def __post_init__(self):
        object.__setattr__(self, "cell", Cell(*self.cell))
        object.__setattr__(self, "rotation", Rotation(self.rotation))


@dataclass(frozen=True)
class BoardSolution:
    geometry: BoardGeometry
    placements: Tuple[Placement, ...] = field(default_factory=tuple)

    def __post_init__(self):
        ordered = tuple(sorted(self.placements, key=lambda p: self.geometry.index(p.cell)))
        object.__setattr__(self, "placements", ordered)

    @classmethod
    def from_grid(cls, grid: Sequence[Sequence[Tuple[int, int]]]) -> "BoardSolution":
        """Build from rows of ``(piece_id, rotation)`` pairs."""
        height = len(grid)
        width = len(grid[0]) if height else 0
        placements = [
            Placement(Cell(r, c), int(pid), Rotation.from_value(rot))
            for r, row in enumerate(grid)
            for c, (pid, rot) in enumerate(row)
        ]
        return cls(BoardGeometry(width, height), tuple(placements))

    def __iter__(self) -> Iterator[Placement]:
        return iter(self.placements)

    def __len__(self) -> int:
        return len(self.placements)

    def as_dict(self) -> Dict[Cell, Placement]:
        return {p.cell: p for p in self.placements}

    def placement_at(self, cell: Tuple[int, int]) -> Optional[Placement]:
        return self.as_dict().get(Cell(*cell))

    def rows(self) -> List[List[Optional[Placement]]]:
        by_cell = self.as_dict()
        return [
            [by_cell.get(Cell(r, c)) for c in range(self.geometry.width)]
            for r in range(self.geometry.height)
        ]

    def to_grid(self) -> List[List[Tuple[int, int]]]:
        return [
            [(p.piece_id, int(p.rotation)) if p else (-1, 0) for p in row]
            for row in self.rows()
        ]
