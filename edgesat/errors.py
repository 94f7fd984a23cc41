"""Error taxonomy for puzzle encoding.

UNSATISFIABLE and ABORTED solver outcomes are not errors; they travel as
:class:`edgesat.backends.SolveStatus` values.
"""

from __future__ import annotations

from typing import List, Optional, Tuple


class PuzzleError(Exception):
    """Base class for everything the encoding layer raises on purpose."""


class MalformedPuzzleError(PuzzleError, ValueError):
    """The catalog and board geometry are inconsistent (counts, ids, piece kinds)."""


class UnencodablePuzzleError(PuzzleError):
    """A cell or piece has no admissible placement, so no formula is emitted."""

    def __init__(self, message: str, *, cell=None, piece_id: Optional[int] = None):
        super().__init__(message)
        self.cell = cell
        self.piece_id = piece_id


class DecodeError(PuzzleError):
    """A solver assignment breaks the one-piece-per-cell rules."""

    def __init__(
        self,
        message: str,
        *,
        cell=None,
        piece_id: Optional[int] = None,
        variables: Optional[List[Tuple[int, object]]] = None,
    ):
        super().__init__(message)
        self.cell = cell
        self.piece_id = piece_id
        self.variables = list(variables or [])


__all__ = ["PuzzleError", "MalformedPuzzleError", "UnencodablePuzzleError", "DecodeError"]
