import pytest

from models import BoardSolution, Cell, Placement, Rotation
from edgesat.decoder import SolutionDecoder, assignment_for, true_identifiers, verify_solution
from edgesat.errors import DecodeError, UnencodablePuzzleError
from edgesat.variables import VariableAllocator
from tests.data import catalog_2x2, catalog_3x3, solved_grid


def test_true_identifiers_normalizes_models():
    assert true_identifiers([1, -2, 3, -4]) == {1, 3}
    assert true_identifiers({1: True, 2: False, 5: 1}) == {1, 5}
    assert true_identifiers({7, 9}) == {7, 9}


def test_decode_ignores_auxiliary_variables():
    cat = catalog_2x2()
    alloc = VariableAllocator(cat)
    solution = BoardSolution.from_grid(solved_grid(2, 2))
    ids = assignment_for(solution, alloc)
    model = sorted(ids) + [100, 101]
    assert SolutionDecoder(alloc).decode(model) == solution
    assert verify_solution(solution, cat) == []


def test_empty_cell_raises_with_cell():
    alloc = VariableAllocator(catalog_2x2())
    ids = assignment_for(BoardSolution.from_grid(solved_grid(2, 2)), alloc)
    ids.discard(alloc.identifier_of((1, 1), 3, Rotation.R0))
    with pytest.raises(DecodeError) as exc:
        SolutionDecoder(alloc).decode(ids)
    assert exc.value.cell == Cell(1, 1)


def test_two_placements_in_one_cell_report_variables():
    alloc = VariableAllocator(catalog_2x2())
    ids = assignment_for(BoardSolution.from_grid(solved_grid(2, 2)), alloc)
    ids.add(alloc.identifier_of((0, 0), 1, Rotation.R270))
    with pytest.raises(DecodeError) as exc:
        SolutionDecoder(alloc).decode(ids)
    assert exc.value.cell == Cell(0, 0)
    assert [v for v, _ in exc.value.variables] == [1, 2]
    assert exc.value.variables[1][1] == Placement((0, 0), 1, Rotation.R270)


def test_piece_used_twice_raises():
    alloc = VariableAllocator(catalog_3x3())
    grid = solved_grid(3, 3)
    # piece 1 on the east edge as well, in place of piece 5
    grid[1][2] = (1, 90)
    ids = {alloc.identifier_of(p.cell, p.piece_id, p.rotation) for p in BoardSolution.from_grid(grid)}
    with pytest.raises(DecodeError) as exc:
        SolutionDecoder(alloc).decode(ids)
    assert exc.value.piece_id == 1


def test_assignment_for_rejects_inadmissible_board():
    alloc = VariableAllocator(catalog_2x2())
    grid = solved_grid(2, 2)
    grid[0][0] = (0, 90)
    with pytest.raises(UnencodablePuzzleError):
        assignment_for(BoardSolution.from_grid(grid), alloc)


def test_verify_solution_lists_problems():
    cat = catalog_3x3()
    grid = solved_grid(3, 3)
    grid[0][0], grid[0][2] = (2, 270), (0, 90)
    problems = verify_solution(BoardSolution.from_grid(grid), cat)
    assert any("mismatch" in p for p in problems)

    grid = solved_grid(3, 3)
    grid[1][1] = (4, 0)
    grid[2][2] = (4, 0)
    problems = verify_solution(BoardSolution.from_grid(grid), cat)
    assert "piece 8 used 0 times" in problems
    assert "piece 4 used 2 times" in problems
