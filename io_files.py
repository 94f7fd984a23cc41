"""Helpers for writing solver outputs to disk."""

from __future__ import annotations

import os
from typing import Optional

from pysat.formula import CNF

from config import CFG
from models import BoardSolution
from edgesat.catalog import PieceCatalog
from edgesat.cnf import CnfFormula


def _resolve_output_path(base_dir: str, configured_name: str, fallback: str) -> str:
    """Return the absolute path where an output artifact should be written."""

    name = (configured_name or "").strip() or fallback
    if os.path.isabs(name):
        return name
    return os.path.join(base_dir, name)


def write_solution(
    solution: Optional[BoardSolution],
    catalog: PieceCatalog,
    base_dir: str,
    reason: Optional[str] = None,
) -> str:
    """Write one line per cell to the configured text file (or ``No solution``)."""

    path = _resolve_output_path(base_dir, CFG.SOLUTION_OUT, "solution.txt")
    os.makedirs(os.path.dirname(path), exist_ok=True)

    with open(path, "w", encoding="utf-8") as f:
        if solution is None or not len(solution):
            f.write("No solution\n")
            if reason:
                f.write(f"{reason}\n")
        else:
            g = solution.geometry
            f.write(f"# {g.width}x{g.height} board, border code {catalog.border_code}\n")
            for p in solution:
                edges = catalog.piece(p.piece_id).rotated(p.rotation)
                f.write(
                    f"{p.cell.row},{p.cell.col}: piece #{p.piece_id} rot {p.rotation.degrees}° "
                    f"edges {'-'.join(str(e) for e in edges)}\n"
                )
    return path


def write_layout_view_html(svg: str, legend_html: str, base_dir: str, grid_label: Optional[str] = None) -> str:
    """Write the rendered SVG/legend preview to the configured HTML file."""

    path = _resolve_output_path(base_dir, CFG.LAYOUT_HTML, "layout_view.html")
    os.makedirs(os.path.dirname(path), exist_ok=True)
    heading = "Board View" + (f" ({grid_label})" if grid_label else "")

    with open(path, "w", encoding="utf-8") as vf:
        vf.write(
            f"""<!doctype html>
<html><head><meta charset='utf-8'><title>Board View</title></head>
<body class='container'>
<h1>{heading}</h1>
<section class='card'><div class='gridwrap'>{svg}</div></section>
<section class='card'><h3>Edge codes</h3><ul>{legend_html}</ul></section>
</body></html>"""
        )
    return path


def write_dimacs(formula: CnfFormula, base_dir: str) -> str:
    """Export the formula in DIMACS CNF for external engines."""

    path = _resolve_output_path(base_dir, CFG.DIMACS_OUT, "puzzle.cnf")
    os.makedirs(os.path.dirname(path), exist_ok=True)

    cnf = CNF(from_clauses=formula.clauses)
    cnf.nv = max(cnf.nv, formula.num_vars)
    cnf.comments = [
        f"c placement variables 1..{formula.placement_vars}",
        "c families " + " ".join(f"{k}={v}" for k, v in formula.families.items()),
    ]
    cnf.to_file(path)
    return path


__all__ = ["write_solution", "write_layout_view_html", "write_dimacs"]
