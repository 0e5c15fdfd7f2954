import pytest

from katreview.core.coords import from_label, is_pass_label, move_from_label, move_label, to_label
from katreview.core.errors import CoordinateError
from katreview.core.sgf_parser import Move


def test_to_label_known_values():
    assert "A19" == to_label(1, 1)
    assert "D4" == to_label(4, 16)
    assert "T19" == to_label(19, 1)
    assert "T1" == to_label(19, 19)
    assert "J10" == to_label(9, 10)  # no I column


def test_from_label_known_values():
    assert (1, 1) == from_label("A19")
    assert (4, 16) == from_label("D4")
    assert (19, 1) == from_label("T19")
    assert (19, 19) == from_label("T1")
    assert (4, 16) == from_label("d4")


def test_round_trip_whole_board():
    for column in range(1, 20):
        for row in range(1, 20):
            assert (column, row) == from_label(to_label(column, row))


def test_small_board():
    assert "A9" == to_label(1, 1, board_size=9)
    assert (5, 5) == from_label("E5", board_size=9)
    with pytest.raises(CoordinateError):
        from_label("K5", board_size=9)


def test_pass():
    assert "PASS" == move_label(Move(coords=None, player="W"))
    assert Move(coords=None, player="W") == move_from_label("PASS", "W")
    assert Move(coords=None, player="B") == move_from_label("pass", "B")
    assert is_pass_label("pass")
    assert not is_pass_label("P5")


@pytest.mark.parametrize("column,row", [(0, 1), (20, 1), (1, 0), (1, 20)])
def test_to_label_off_board(column, row):
    with pytest.raises(CoordinateError):
        to_label(column, row)


@pytest.mark.parametrize("label", ["I5", "Z3", "D", "D0", "D20", "D-1", "Dx", "", "PASS", "D\u00b2", "D\u0661\u0660"])
def test_from_label_invalid(label):
    with pytest.raises(CoordinateError):
        from_label(label)


def test_coordinate_error_is_value_error():
    with pytest.raises(ValueError):
        from_label("I5")
