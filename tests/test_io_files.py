import os
import tempfile
import unittest

from pysat.formula import CNF

from config import CFG
from io_files import write_dimacs, write_layout_view_html, write_solution
from models import BoardSolution
from edgesat.constraints import ConstraintGenerator, EncodingOptions
from edgesat.variables import VariableAllocator
from tests.data import catalog_2x2, solved_grid


class WriteOutputsTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmpdir.cleanup)
        self._orig_solution = CFG.SOLUTION_OUT
        self._orig_layout = CFG.LAYOUT_HTML
        self._orig_dimacs = CFG.DIMACS_OUT

    def tearDown(self) -> None:
        CFG.SOLUTION_OUT = self._orig_solution
        CFG.LAYOUT_HTML = self._orig_layout
        CFG.DIMACS_OUT = self._orig_dimacs

    def test_write_solution_uses_configured_relative_path(self) -> None:
        CFG.SOLUTION_OUT = "outputs/custom_solution.txt"
        solution = BoardSolution.from_grid(solved_grid(2, 2))

        path = write_solution(solution, catalog_2x2(), self.tmpdir.name)

        expected = os.path.join(self.tmpdir.name, "outputs", "custom_solution.txt")
        self.assertEqual(path, expected)
        with open(path, "r", encoding="utf-8") as fh:
            lines = fh.read().splitlines()
        self.assertEqual(lines[0], "# 2x2 board, border code 0")
        self.assertEqual(lines[1], "0,0: piece #0 rot 0° edges 0-1-2-0")
        self.assertEqual(len(lines), 5)

    def test_write_solution_without_board_keeps_reason(self) -> None:
        CFG.SOLUTION_OUT = "solution.txt"

        path = write_solution(None, catalog_2x2(), self.tmpdir.name, reason="Proven infeasible")

        with open(path, "r", encoding="utf-8") as fh:
            self.assertEqual(fh.read(), "No solution\nProven infeasible\n")

    def test_write_layout_view_html_accepts_absolute_path(self) -> None:
        target = os.path.join(self.tmpdir.name, "html", "layout.html")
        CFG.LAYOUT_HTML = target

        svg = "<svg></svg>"
        legend = "<li>7</li>"

        path = write_layout_view_html(svg, legend, self.tmpdir.name, grid_label="2 × 2")

        self.assertEqual(path, target)
        with open(path, "r", encoding="utf-8") as fh:
            contents = fh.read()
        self.assertIn(svg, contents)
        self.assertIn(legend, contents)
        self.assertIn("Board View (2 × 2)", contents)

    def test_write_dimacs_round_trips_through_pysat(self) -> None:
        CFG.DIMACS_OUT = "cnf/puzzle.cnf"
        formula = ConstraintGenerator(
            VariableAllocator(catalog_2x2()), EncodingOptions(symmetry="off")
        ).generate()

        path = write_dimacs(formula, self.tmpdir.name)

        loaded = CNF(from_file=path)
        self.assertEqual(loaded.nv, 16)
        self.assertEqual(len(loaded.clauses), len(formula))
        self.assertEqual(loaded.clauses, formula.clauses)
        with open(path, "r", encoding="utf-8") as fh:
            self.assertTrue(fh.readline().startswith("c placement variables 1..16"))


if __name__ == "__main__":
    unittest.main()
