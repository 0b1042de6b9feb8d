"""
Hex grid coordinate system for the TOWERS battlefield.

Positions are offset coordinates (q = column, r = row) on a rectangular
board. Distance converts to axial coordinates first; neighbours use the
fixed axial direction vectors.
"""

from dataclasses import dataclass
from typing import Iterator


@dataclass(frozen=True, order=True)
class HexPosition:
    """A board position. Equality is by value only."""
    q: int
    r: int

    def key(self) -> str:
        return f"{self.q},{self.r}"

    def to_axial(self) -> tuple[int, int]:
        """Offset → axial (floor division keeps odd columns consistent)."""
        return (self.q, self.r - self.q // 2)

    @classmethod
    def from_axial(cls, q: int, r: int) -> "HexPosition":
        return cls(q, r + q // 2)


# Axial direction vectors: E, SE, SW, W, NW, NE
HEX_DIRECTIONS = [(1, 0), (0, 1), (-1, 1), (-1, 0), (0, -1), (1, -1)]


def neighbors(pos: HexPosition) -> list[HexPosition]:
    """The six positions around pos (not bounds-checked)."""
    return [HexPosition(pos.q + dq, pos.r + dr) for dq, dr in HEX_DIRECTIONS]


def distance(a: HexPosition, b: HexPosition) -> int:
    """Hex distance between two offset positions."""
    aq, ar = a.to_axial()
    bq, br = b.to_axial()
    return (abs(aq - bq) + abs(aq + ar - bq - br) + abs(ar - br)) // 2


def is_valid(pos: HexPosition, width: int, height: int) -> bool:
    """Rectangular bounds check."""
    return 0 <= pos.q < width and 0 <= pos.r < height


def board_positions(width: int, height: int) -> Iterator[HexPosition]:
    """Every position on a width x height board, column by column."""
    for q in range(width):
        for r in range(height):
            yield HexPosition(q, r)


def positions_within(center: HexPosition, radius: int, width: int, height: int) -> list[HexPosition]:
    """All on-board positions at distance <= radius from center."""
    return [
        pos for pos in board_positions(width, height)
        if distance(center, pos) <= radius
    ]


def _round_cube(q: float, r: float) -> tuple[int, int]:
    """Round fractional axial coordinates to the nearest hex."""
    s = -q - r
    rq, rr, rs = round(q), round(r), round(s)

    q_diff = abs(rq - q)
    r_diff = abs(rr - r)
    s_diff = abs(rs - s)

    if q_diff > r_diff and q_diff > s_diff:
        rq = -rr - rs
    elif r_diff > s_diff:
        rr = -rq - rs

    return (int(rq), int(rr))


def hex_line(a: HexPosition, b: HexPosition) -> list[HexPosition]:
    """All hexes along a straight line from a to b, endpoints included."""
    n = distance(a, b)
    if n == 0:
        return [a]

    aq, ar = a.to_axial()
    bq, br = b.to_axial()
    # Nudge off exact edges so rounding is stable
    aq, ar = aq + 1e-6, ar + 1e-6

    results = []
    for i in range(n + 1):
        t = i / n
        q, r = _round_cube(aq + (bq - aq) * t, ar + (br - ar) * t)
        results.append(HexPosition.from_axial(q, r))

    return results
