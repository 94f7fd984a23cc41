"""Fixture puzzles (border code 0, edges listed north, east, south, west).

Every "solved" fixture is laid out with all pieces at rotation 0 in row-major
id order, and each inner edge code appears on exactly one seam, so the only
solutions are the rotations of that layout allowed by the board outline.
"""

from models import BoardGeometry
from edgesat.catalog import PieceCatalog

# 2x2: A B / C D
PIECES_2X2 = [
    (0, 1, 2, 0),
    (0, 0, 3, 1),
    (2, 4, 0, 0),
    (3, 0, 0, 4),
]

# Same kinds, but D's north edge matches nothing. An interior piece with a
# border pattern cannot stand in here: the catalog rejects it as malformed
# before encoding, so an inner colour mismatch is the unsatisfiable case.
PIECES_2X2_INCOMPATIBLE = [
    (0, 1, 2, 0),
    (0, 0, 3, 1),
    (2, 4, 0, 0),
    (5, 0, 0, 4),
]

# D has a single border edge, so the board is one corner short.
PIECES_2X2_MISSING_CORNER = [
    (0, 1, 2, 0),
    (0, 0, 3, 1),
    (2, 4, 0, 0),
    (3, 0, 5, 4),
]

PIECES_3X3 = [
    (0, 1, 7, 0), (0, 2, 8, 1), (0, 0, 9, 2),
    (7, 3, 10, 0), (8, 4, 11, 3), (9, 0, 12, 4),
    (10, 5, 0, 0), (11, 6, 0, 5), (12, 0, 0, 6),
]

# width 3, height 2
PIECES_3X2 = [
    (0, 1, 5, 0), (0, 2, 6, 1), (0, 0, 7, 2),
    (5, 3, 0, 0), (6, 4, 0, 3), (7, 0, 0, 4),
]

PUZZLE_TEXT_2X2 = """\
# tiny 2x2 board
size 2 2
border 0
0 1 2 0
0 0 3 1
2 4 0 0
3 0 0 4
"""


def catalog_2x2() -> PieceCatalog:
    return PieceCatalog(PIECES_2X2, BoardGeometry(2, 2), 0)


def catalog_2x2_incompatible() -> PieceCatalog:
    return PieceCatalog(PIECES_2X2_INCOMPATIBLE, BoardGeometry(2, 2), 0)


def catalog_3x3() -> PieceCatalog:
    return PieceCatalog(PIECES_3X3, BoardGeometry(3, 3), 0)


def catalog_3x2() -> PieceCatalog:
    return PieceCatalog(PIECES_3X2, BoardGeometry(3, 2), 0)


def solved_grid(width: int, height: int):
    """Row-major ids at rotation 0, i.e. the layout the fixtures were written in."""
    return [[(r * width + c, 0) for c in range(width)] for r in range(height)]
