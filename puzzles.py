# puzzles.py: puzzle parser (JSON body, form field or text file)
from __future__ import annotations

import json
import math
import re
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

from models import BoardGeometry, Cell, Placement, Rotation
from edgesat.catalog import PieceCatalog
from edgesat.errors import MalformedPuzzleError

PieceSpec = Tuple[int, Tuple[int, int, int, int]]

_INT = r"-?\d+"
_SIZE_RE = re.compile(rf"^(?:size\s+)?(?P<w>\d+)\s*(?:[x×]|\s)\s*(?P<h>\d+)$", re.IGNORECASE)
_ID_PIECE_RE = re.compile(r"^(?P<id>\d+)\s*[=:]\s*(?P<edges>\d+(?:\s*[-,\s]\s*\d+){3})$")
_FIX_RE = re.compile(rf"^fix\s+(?P<row>\d+)\s+(?P<col>\d+)\s+(?P<piece>\d+)(?:\s+(?P<rot>\S+))?$", re.IGNORECASE)
_BORDER_RE = re.compile(rf"^border\s+(?P<code>{_INT})$", re.IGNORECASE)


@dataclass
class ParsedPuzzle:
    width: int
    height: int
    pieces: List[PieceSpec] = field(default_factory=list)
    fixed: List[Placement] = field(default_factory=list)
    border: Optional[int] = None
    source: str = "json"

    @property
    def geometry(self) -> BoardGeometry:
        return BoardGeometry(self.width, self.height)

    def catalog(self) -> PieceCatalog:
        """Validated catalog; raises :class:`MalformedPuzzleError` on inconsistent input."""
        return PieceCatalog(self.pieces, self.geometry, self.border)

    def label(self) -> str:
        return f"{self.width}×{self.height}, {len(self.pieces)} pieces"


def _to_int(x: Any) -> Optional[int]:
    try:
        return int(str(x).strip())
    except Exception:
        return None


def _first(form_like: Any, key: str) -> Any:
    if form_like is None:
        return None
    if isinstance(form_like, dict):
        val = form_like.get(key)
    elif hasattr(form_like, "get"):
        val = form_like.get(key)
    else:
        return None
    if isinstance(val, (list, tuple)):
        return val[0] if val else None
    return val


def _rotation(value: Any) -> Rotation:
    try:
        return Rotation.from_value(value)
    except (TypeError, ValueError) as e:
        raise MalformedPuzzleError(f"Bad rotation {value!r}") from e


def _infer_dims(width: Optional[int], height: Optional[int], count: int) -> Tuple[int, int]:
    if width and height:
        return width, height
    if width and not height and count % width == 0:
        return width, count // width
    if height and not width and count % height == 0:
        return count // height, height
    side = math.isqrt(count)
    if count and side * side == count:
        return side, side
    raise MalformedPuzzleError(f"Cannot infer the board size for {count} pieces; give width and height")


# ---------------- JSON ----------------

def _piece_from_json(item: Any, index: int) -> PieceSpec:
    if isinstance(item, dict):
        pid = _to_int(item.get("id", index))
        edges = item.get("edges")
        if edges is None:
            edges = [item.get(k) for k in ("n", "e", "s", "w")]
    else:
        pid, edges = index, item
    if pid is None or not isinstance(edges, (list, tuple)) or len(edges) != 4:
        raise MalformedPuzzleError(f"Piece #{index} needs four edge codes")
    codes = [_to_int(e) for e in edges]
    if any(c is None for c in codes):
        raise MalformedPuzzleError(f"Piece #{index} has a non-integer edge code")
    return pid, tuple(codes)  # type: ignore[return-value]


def _fixed_from_json(item: Any) -> Placement:
    if isinstance(item, dict):
        row, col, piece = (_to_int(item.get(k)) for k in ("row", "col", "piece"))
        rot = item.get("rotation", 0)
    elif isinstance(item, (list, tuple)) and len(item) in (3, 4):
        row, col, piece = (_to_int(v) for v in item[:3])
        rot = item[3] if len(item) == 4 else 0
    else:
        row = col = piece = None
        rot = 0
    if None in (row, col, piece):
        raise MalformedPuzzleError(f"Bad fixed placement {item!r}")
    return Placement(Cell(row, col), piece, _rotation(rot))


def _parse_json_obj(obj: dict) -> ParsedPuzzle:
    raw_pieces = obj.get("pieces")
    if not isinstance(raw_pieces, list) or not raw_pieces:
        raise MalformedPuzzleError("No pieces given")
    pieces = [_piece_from_json(item, i) for i, item in enumerate(raw_pieces)]

    width = _to_int(obj.get("width"))
    height = _to_int(obj.get("height"))
    size = obj.get("size")
    if size is not None and not (width or height):
        if isinstance(size, (list, tuple)) and len(size) == 2:
            width, height = _to_int(size[0]), _to_int(size[1])
        else:
            width = height = _to_int(size)
    width, height = _infer_dims(width, height, len(pieces))

    fixed = [_fixed_from_json(item) for item in obj.get("fixed") or []]
    border = obj.get("border")
    border_code = None if border in (None, "") else _to_int(border)
    if border not in (None, "") and border_code is None:
        raise MalformedPuzzleError(f"Bad border code {border!r}")
    return ParsedPuzzle(width, height, pieces, fixed, border_code, "json")


# ---------------- text ----------------

def parse_puzzle_text(text: str) -> ParsedPuzzle:
    """Parse the line format (``#`` comments, ``size W H``, ``n e s w`` or ``id=n-e-s-w``, ``fix``, ``border``)."""
    width = height = None
    border = None
    pieces: List[PieceSpec] = []
    fixed: List[Placement] = []

    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.split("#", 1)[0].strip()
        if not line:
            continue

        m = _BORDER_RE.match(line)
        if m:
            border = int(m.group("code"))
            continue
        m = _FIX_RE.match(line)
        if m:
            fixed.append(Placement(
                Cell(int(m.group("row")), int(m.group("col"))),
                int(m.group("piece")),
                _rotation(m.group("rot") or 0),
            ))
            continue
        m = _ID_PIECE_RE.match(line)
        if m:
            codes = [int(t) for t in re.findall(r"\d+", m.group("edges"))]
            pieces.append((int(m.group("id")), tuple(codes)))  # type: ignore[arg-type]
            continue
        tokens = line.replace(",", " ").split()
        if len(tokens) == 4 and all(re.fullmatch(_INT, t) for t in tokens):
            pieces.append((len(pieces), tuple(int(t) for t in tokens)))  # type: ignore[arg-type]
            continue
        m = _SIZE_RE.match(line)
        if m and not pieces:
            width, height = int(m.group("w")), int(m.group("h"))
            continue
        raise MalformedPuzzleError(f"Line {lineno}: cannot parse {raw.strip()!r}")

    if not pieces:
        raise MalformedPuzzleError("No pieces given")
    width, height = _infer_dims(width, height, len(pieces))
    return ParsedPuzzle(width, height, pieces, fixed, border, "text")


def parse_puzzle(form_like: Any) -> Tuple[Optional[ParsedPuzzle], Optional[str]]:
    """
    Return (parsed_puzzle_or_None, error_message_or_None).
    Accepts a JSON object with ``pieces`` or a ``puzzle`` field holding JSON or text.
    """
    if not form_like:
        return None, "nothing parsed from request"

    try:
        # --- Shape 1: JSON object with pieces ---------------------------------
        if isinstance(form_like, dict) and isinstance(form_like.get("pieces"), list):
            return _parse_json_obj(form_like), None

        # --- Shape 2: puzzle text field (JSON or line format) -----------------
        text = _first(form_like, "puzzle")
        if isinstance(text, dict):
            return _parse_json_obj(text), None
        if text is None or not str(text).strip():
            return None, "nothing parsed from request"
        text = str(text).strip()
        if text.startswith("{"):
            try:
                obj = json.loads(text)
            except json.JSONDecodeError as e:
                return None, f"Invalid JSON puzzle: {e}"
            if not isinstance(obj, dict):
                return None, "JSON puzzle must be an object"
            return _parse_json_obj(obj), None
        return parse_puzzle_text(text), None
    except MalformedPuzzleError as e:
        return None, str(e)


def load_puzzle_file(path: str) -> ParsedPuzzle:
    with open(path, "r", encoding="utf-8") as fh:
        text = fh.read()
    parsed, err = parse_puzzle({"puzzle": text})
    if err:
        raise MalformedPuzzleError(f"{path}: {err}")
    return parsed


__all__ = ["ParsedPuzzle", "parse_puzzle", "parse_puzzle_text", "load_puzzle_file"]
