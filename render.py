import random
from typing import Dict, List, Tuple

from models import BoardSolution, Side
from edgesat.catalog import PieceCatalog

BORDER_FILL = "rgb(190,190,190)"


def _color(code: int) -> str:
    rng = random.Random(int(code) * 7919 + 17)
    r = rng.randint(40, 220)
    g = rng.randint(40, 220)
    b = rng.randint(40, 220)
    return f"rgb({r},{g},{b})"


def palette_for(catalog: PieceCatalog) -> Dict[int, str]:
    palette = {catalog.border_code: BORDER_FILL}
    for code in catalog.colors():
        palette.setdefault(code, _color(code))
    return palette


def _triangles(x: int, y: int, s: int) -> Dict[Side, List[Tuple[int, int]]]:
    cx, cy = x + s // 2, y + s // 2
    return {
        Side.NORTH: [(x, y), (x + s, y), (cx, cy)],
        Side.EAST: [(x + s, y), (x + s, y + s), (cx, cy)],
        Side.SOUTH: [(x + s, y + s), (x, y + s), (cx, cy)],
        Side.WEST: [(x, y + s), (x, y), (cx, cy)],
    }


def render_solution(solution: BoardSolution, catalog: PieceCatalog, scale: int = 72):
    """Return ``(svg, legend_html)``; every cell is drawn as four triangles, one per edge."""
    palette = palette_for(catalog)
    g = solution.geometry
    svg_w = g.width * scale + 2
    svg_h = g.height * scale + 2

    shapes = []
    for p in solution:
        x = 1 + p.cell.col * scale
        y = 1 + p.cell.row * scale
        edges = catalog.piece(p.piece_id).rotated(p.rotation)
        for side, pts in _triangles(x, y, scale).items():
            code = edges[side]
            poly = " ".join(f"{px},{py}" for px, py in pts)
            shapes.append(
                f'<polygon points="{poly}" fill="{palette.get(code, BORDER_FILL)}" '
                f'stroke="black" stroke-width="0.5"><title>{code}</title></polygon>'
            )
        shapes.append(
            f'<text x="{x + scale // 2}" y="{y + scale // 2 + 4}" font-size="11" '
            f'text-anchor="middle" fill="black">#{p.piece_id}'
            f'{"" if p.rotation.degrees == 0 else f" {p.rotation.degrees}°"}</text>'
        )
    frame = f'<rect x="1" y="1" width="{svg_w-2}" height="{svg_h-2}" fill="none" stroke="black" stroke-width="2"/>'
    svg = (
        f'<svg class="layout-svg" xmlns="http://www.w3.org/2000/svg" '
        f'width="{svg_w}" height="{svg_h}" '
        f'viewBox="0 0 {svg_w} {svg_h}" preserveAspectRatio="xMinYMin meet">'
        f'{"".join(shapes)}{frame}</svg>'
    )

    legend = "".join(
        f"<li><span class='swatch' style='background:{c}'></span>"
        f"{'border' if code == catalog.border_code else code}</li>"
        for code, c in palette.items()
    )
    return svg, legend


__all__ = ["render_solution", "palette_for"]
