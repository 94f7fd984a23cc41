from __future__ import annotations

from collections import Counter
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

from config import CFG
from models import BoardGeometry, CellKind, Piece
from edgesat.errors import MalformedPuzzleError

PieceLike = Union[Piece, Tuple[int, Sequence[int]], Sequence[int]]


def _as_piece(obj, default_id: int) -> Piece:
    if isinstance(obj, Piece):
        edges = obj.edges
        pid = obj.id
    elif isinstance(obj, tuple) and len(obj) == 2 and not isinstance(obj[1], int):
        pid, edges = obj
    else:
        pid, edges = default_id, obj
    try:
        edges = tuple(int(e) for e in edges)
        pid = int(pid)
    except (TypeError, ValueError) as e:
        raise MalformedPuzzleError(f"Bad piece {obj!r}: {e}") from e
    if len(edges) != 4:
        raise MalformedPuzzleError(f"Piece {pid} must have exactly four edge codes, got {len(edges)}")
    return Piece(pid, edges)  # type: ignore[arg-type]


def _fmt_kinds(counts: Counter) -> str:
    return ", ".join(f"{k.value}={counts[k]}" for k in CellKind if counts.get(k))


class PieceCatalog:
    """Validated, read-only set of pieces for one board geometry.

    Construction fails with :class:`MalformedPuzzleError` before any variable
    or clause exists when the piece count, the ids or the multiset of piece
    kinds (corner / edge / interior ...) disagree with the board.
    """

    def __init__(
        self,
        pieces: Iterable[PieceLike],
        geometry: BoardGeometry,
        border_code: Optional[int] = None,
    ):
        self._geometry = geometry
        self._border = int(CFG.BORDER_CODE if border_code is None else border_code)

        parsed: List[Piece] = [_as_piece(p, i) for i, p in enumerate(pieces)]

        if len(parsed) != geometry.cell_count:
            raise MalformedPuzzleError(
                f"Inconsistent number of pieces: {len(parsed)} != "
                f"{geometry.height} * {geometry.width}"
            )

        by_id: Dict[int, Piece] = {}
        for p in parsed:
            if p.id in by_id:
                raise MalformedPuzzleError(f"Duplicate piece id {p.id}")
            by_id[p.id] = p

        have = Counter(p.kind(self._border) for p in parsed)
        need = geometry.required_kinds()
        if have != need:
            diffs = []
            for k in CellKind:
                if have.get(k, 0) != need.get(k, 0):
                    diffs.append(f"{k.value}: board needs {need.get(k, 0)}, catalog has {have.get(k, 0)}")
            raise MalformedPuzzleError(
                f"Piece kinds do not fit a {geometry.width}x{geometry.height} board ("
                + "; ".join(diffs) + ")"
            )

        self._pieces: Tuple[Piece, ...] = tuple(sorted(parsed, key=lambda p: p.id))
        self._by_id = by_id
        self._kinds = have

    # ---------------- accessors ----------------

    @property
    def geometry(self) -> BoardGeometry:
        return self._geometry

    @property
    def border_code(self) -> int:
        return self._border

    @property
    def pieces(self) -> Tuple[Piece, ...]:
        return self._pieces

    def ids(self) -> List[int]:
        return [p.id for p in self._pieces]

    def piece(self, piece_id: int) -> Piece:
        try:
            return self._by_id[int(piece_id)]
        except KeyError:
            raise ValueError(f"Unknown piece id {piece_id}") from None

    def __contains__(self, piece_id) -> bool:
        return piece_id in self._by_id

    def __len__(self) -> int:
        return len(self._pieces)

    def __iter__(self) -> Iterator[Piece]:
        return iter(self._pieces)

    def kind_counts(self) -> Counter:
        return Counter(self._kinds)

    def colors(self) -> List[int]:
        codes = {e for p in self._pieces for e in p.edges if e != self._border}
        return sorted(codes)

    def describe(self) -> str:
        g = self._geometry
        return f"{g.width}x{g.height} board, {len(self)} pieces ({_fmt_kinds(self._kinds)})"


__all__ = ["PieceCatalog"]
