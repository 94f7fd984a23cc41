import pytest

from models import BoardGeometry, CellKind, Piece
from edgesat.catalog import PieceCatalog
from edgesat.errors import MalformedPuzzleError, PuzzleError
from tests.data import PIECES_2X2, PIECES_2X2_MISSING_CORNER, catalog_3x3


def test_catalog_accepts_tuples_pieces_and_bare_edges():
    g = BoardGeometry(2, 2)
    bare = PieceCatalog(PIECES_2X2, g, 0)
    assert bare.ids() == [0, 1, 2, 3]
    assert bare.piece(3).edges == (3, 0, 0, 4)

    mixed = PieceCatalog(
        [Piece(10, PIECES_2X2[0]), (11, PIECES_2X2[1]), (12, list(PIECES_2X2[2])), (13, PIECES_2X2[3])],
        g,
        0,
    )
    assert mixed.ids() == [10, 11, 12, 13]
    assert 12 in mixed and 3 not in mixed
    assert mixed.colors() == [1, 2, 3, 4]


def test_missing_corner_is_malformed_and_names_kinds():
    with pytest.raises(MalformedPuzzleError) as exc:
        PieceCatalog(PIECES_2X2_MISSING_CORNER, BoardGeometry(2, 2), 0)
    msg = str(exc.value)
    assert "corner: board needs 4, catalog has 3" in msg
    assert "edge: board needs 0, catalog has 1" in msg
    assert isinstance(exc.value, ValueError)
    assert isinstance(exc.value, PuzzleError)


def test_piece_count_mismatch():
    with pytest.raises(MalformedPuzzleError, match="Inconsistent number of pieces"):
        PieceCatalog(PIECES_2X2[:3], BoardGeometry(2, 2), 0)


def test_duplicate_ids_and_bad_edges():
    g = BoardGeometry(2, 2)
    with pytest.raises(MalformedPuzzleError, match="Duplicate piece id 1"):
        PieceCatalog([(1, e) for e in PIECES_2X2], g, 0)
    with pytest.raises(MalformedPuzzleError, match="exactly four"):
        PieceCatalog([(0, 1, 2)] + PIECES_2X2[1:], g, 0)


def test_default_border_code_comes_from_config(monkeypatch):
    from config import CFG

    monkeypatch.setattr(CFG, "BORDER_CODE", 9)
    pieces = [tuple(9 if e == 0 else e for e in p) for p in PIECES_2X2]
    cat = PieceCatalog(pieces, BoardGeometry(2, 2))
    assert cat.border_code == 9
    assert cat.kind_counts() == {CellKind.CORNER: 4}


def test_unknown_piece_lookup_raises_value_error():
    cat = catalog_3x3()
    assert len(cat) == 9
    assert "3x3 board, 9 pieces" in cat.describe()
    with pytest.raises(ValueError):
        cat.piece(99)
