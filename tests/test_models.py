import pytest

from models import (
    BoardGeometry,
    BoardSolution,
    Cell,
    CellKind,
    Piece,
    Placement,
    Rotation,
    Side,
)


def test_rotation_is_a_cyclic_permutation():
    edges = (1, 2, 3, 4)
    assert Rotation.R0.apply(edges) == (1, 2, 3, 4)
    # (N, E, S, W) turned a quarter clockwise shows (W, N, E, S)
    assert Rotation.R90.apply(edges) == (4, 1, 2, 3)
    assert Rotation.R180.apply(edges) == (3, 4, 1, 2)
    assert Rotation.R270.apply(edges) == (2, 3, 4, 1)
    assert Rotation.R90.compose(Rotation.R270) == Rotation.R0


def test_rotation_from_value_accepts_turns_degrees_and_names():
    assert Rotation.from_value(1) == Rotation.R90
    assert Rotation.from_value(270) == Rotation.R270
    assert Rotation.from_value("180") == Rotation.R180
    assert Rotation.from_value("r90") == Rotation.R90
    with pytest.raises(ValueError):
        Rotation.from_value(45)


def test_piece_edge_matches_rotated_edges():
    piece = Piece(7, (0, 1, 2, 0))
    for rot in Rotation:
        rotated = piece.rotated(rot)
        for side in Side:
            assert piece.edge(side, rot) == rotated[side]
    assert piece.kind(0) == CellKind.CORNER
    assert piece.border_sides(0, Rotation.R90) == frozenset({Side.NORTH, Side.EAST})


def test_geometry_kinds_and_adjacency():
    g = BoardGeometry(3, 2)
    assert g.cell_count == 6
    assert g.rotation_order == 2
    assert g.kind(Cell(0, 0)) == CellKind.CORNER
    assert g.kind(Cell(0, 1)) == CellKind.EDGE
    assert g.exterior_sides((1, 1)) == frozenset({Side.SOUTH})
    pairs = list(g.adjacent_pairs())
    # 2 rows * 2 east seams + 3 columns * 1 south seam
    assert len(pairs) == 7
    assert pairs[0] == (Cell(0, 0), Side.EAST, Cell(0, 1))
    assert pairs[1] == (Cell(0, 0), Side.SOUTH, Cell(1, 0))
    assert g.required_kinds() == {CellKind.CORNER: 4, CellKind.EDGE: 2}


def test_one_wide_board_kinds():
    g = BoardGeometry(1, 3)
    assert [g.kind(c) for c in g.cells()] == [CellKind.END, CellKind.STRIP, CellKind.END]
    assert BoardGeometry(1, 1).kind((0, 0)) == CellKind.SINGLE


def test_geometry_rejects_empty_board():
    with pytest.raises(ValueError):
        BoardGeometry(0, 3)


def test_rotate_cell_square_and_rectangle():
    sq = BoardGeometry(3, 3)
    assert sq.rotate_cell((0, 0), 1) == Cell(0, 2)
    assert sq.rotate_cell((0, 2), 1) == Cell(2, 2)
    assert sq.rotate_cell((0, 1), 2) == Cell(2, 1)
    rect = BoardGeometry(3, 2)
    assert rect.rotate_cell((0, 0), 2) == Cell(1, 2)
    with pytest.raises(ValueError):
        rect.rotate_cell((0, 0), 1)


def test_board_solution_orders_cells_and_compares_by_content():
    g = BoardGeometry(2, 1)
    a = BoardSolution(g, (Placement((0, 1), 1, 0), Placement((0, 0), 0, 3)))
    b = BoardSolution.from_grid([[(0, 270), (1, 0)]])
    assert a == b
    assert [p.cell for p in a] == [Cell(0, 0), Cell(0, 1)]
    assert a.placement_at((0, 0)).rotation == Rotation.R270
    assert a.to_grid() == [[(0, 3), (1, 0)]]
