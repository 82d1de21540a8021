"""
9x9 sudoku grid text codec.

Grids are accepted in two shapes: nine lines of (at least) nine digits, with
any separators between them, or any text holding at least 81 digits which are
read in row-major order. 0 marks an empty cell.
"""
import re
from typing import List, Optional

SIZE = 9

_NON_DIGIT = re.compile(r"[^0-9]")


class GridFormatError(ValueError):
    pass


def _grid_from_rows(rows: List[str]) -> List[List[int]]:
    return [[int(ch) for ch in row[:SIZE]] for row in rows[:SIZE]]


def parse_grid(text: str) -> List[List[int]]:
    """Parse loosely formatted digit text into a 9x9 grid of ints (0-9)."""
    text = text or ""

    lines = [_NON_DIGIT.sub("", line) for line in text.split("\n")]
    lines = [line for line in lines if line]
    if len(lines) >= SIZE and all(len(line) >= SIZE for line in lines[:SIZE]):
        return _grid_from_rows(lines)

    # Fallback: any 81 digits, row-major
    digits = _NON_DIGIT.sub("", text)
    if len(digits) < SIZE * SIZE:
        raise GridFormatError(f"not enough digits for sudoku: expected at least 81, got {len(digits)}")
    return _grid_from_rows([digits[r * SIZE:(r + 1) * SIZE] for r in range(SIZE)])


def format_grid(grid: List[List[int]]) -> str:
    """Render a grid as nine lines of nine digits."""
    return "\n".join("".join(str(v) for v in row) for row in grid) + "\n"


class GridComparison:
    def __init__(self, ok: bool, reason: Optional[str] = None, row: Optional[int] = None,
                 col: Optional[int] = None, got: Optional[int] = None, expected: Optional[int] = None):
        self.ok = ok
        self.reason = reason
        self.row = row
        self.col = col
        self.got = got
        self.expected = expected

    def to_dict(self) -> dict:
        if self.ok:
            return {"ok": True}
        if self.reason == "invalid_format":
            return {"ok": False, "reason": self.reason}
        return {
            "ok": False,
            "reason": self.reason,
            "row": self.row,
            "col": self.col,
            "got": self.got,
            "expected": self.expected,
        }


def compare_grids(output_text: str, expected_text: str) -> GridComparison:
    """Compare a textual answer against the expected grid cell by cell."""
    try:
        got = parse_grid(output_text)
        expected = parse_grid(expected_text)
    except GridFormatError:
        return GridComparison(False, "invalid_format")

    for r in range(SIZE):
        for c in range(SIZE):
            if got[r][c] != expected[r][c]:
                return GridComparison(False, "mismatch", row=r, col=c,
                                      got=got[r][c], expected=expected[r][c])
    return GridComparison(True)
