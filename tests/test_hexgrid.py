"""Tests for hex coordinate math."""

import itertools

from towers.hexgrid import (
    HexPosition, board_positions, distance, hex_line, is_valid, neighbors, positions_within,
)


def test_distance_is_symmetric_and_zero_on_self():
    cells = list(board_positions(10, 8))
    for a in cells:
        assert distance(a, a) == 0
        for b in cells:
            assert distance(a, b) == distance(b, a)


def test_distance_triangle_inequality():
    cells = list(board_positions(5, 5))
    for a, b, c in itertools.product(cells, repeat=3):
        assert distance(a, c) <= distance(a, b) + distance(b, c)


def test_distance_examples():
    assert distance(HexPosition(4, 4), HexPosition(4, 3)) == 1
    assert distance(HexPosition(4, 4), HexPosition(5, 4)) == 1
    assert distance(HexPosition(4, 2), HexPosition(4, 4)) == 2
    assert distance(HexPosition(0, 0), HexPosition(0, 7)) == 7


def test_neighbors_apply_fixed_axial_offsets():
    assert neighbors(HexPosition(4, 4)) == [
        HexPosition(5, 4),
        HexPosition(4, 5),
        HexPosition(3, 5),
        HexPosition(3, 4),
        HexPosition(4, 3),
        HexPosition(5, 3),
    ]


def test_neighbors_are_not_bounds_checked():
    result = neighbors(HexPosition(0, 0))
    assert HexPosition(-1, 0) in result
    assert len(result) == 6


def test_is_valid_rectangular_bounds():
    assert is_valid(HexPosition(0, 0), 10, 8)
    assert is_valid(HexPosition(9, 7), 10, 8)
    assert not is_valid(HexPosition(10, 0), 10, 8)
    assert not is_valid(HexPosition(0, 8), 10, 8)
    assert not is_valid(HexPosition(-1, 3), 10, 8)


def test_positions_within_radius():
    around = positions_within(HexPosition(4, 4), 1, 10, 8)
    assert len(around) == 7
    assert HexPosition(4, 4) in around
    assert all(distance(HexPosition(4, 4), p) <= 1 for p in around)


def test_position_key():
    assert HexPosition(3, 7).key() == "3,7"


def test_hex_line_steps_one_hex_at_a_time():
    start, end = HexPosition(1, 1), HexPosition(7, 5)
    line = hex_line(start, end)
    assert line[0] == start
    assert line[-1] == end
    assert len(line) == distance(start, end) + 1
    for a, b in zip(line, line[1:]):
        assert distance(a, b) == 1


def test_hex_line_straight_column():
    assert hex_line(HexPosition(4, 2), HexPosition(4, 4)) == [
        HexPosition(4, 2), HexPosition(4, 3), HexPosition(4, 4),
    ]
