"""Cell label codec.

Grid coordinates are 1-based ``(column, row)`` pairs with row 1 at the top of
the board, as in SGF. Cell labels are the GTP style strings KataGo speaks:
column letters A-T skipping I, and row numbers counted from the bottom.

Examples (19x19):
    (1, 1)   -> "A19"  (top-left)
    (4, 16)  -> "D4"
    (19, 19) -> "T1"   (bottom-right)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from katreview.core.constants import DEFAULT_BOARD_SIZE
from katreview.core.errors import CoordinateError

if TYPE_CHECKING:
    from katreview.core.sgf_parser import Move

# GTP column letters: A-H, J-T (skips 'I')
GTP_COLUMNS = "ABCDEFGHJKLMNOPQRST"
PASS_LABEL = "PASS"


def is_pass_label(label: str) -> bool:
    """KataGo reports passes as "pass", queries conventionally use "PASS"."""
    return label.strip().upper() == PASS_LABEL


def to_label(column: int, row: int, board_size: int = DEFAULT_BOARD_SIZE) -> str:
    """Convert a 1-based (column, row) grid coordinate to a cell label.

    Raises:
        CoordinateError: If the coordinate is not on the board.
    """
    if not 1 <= column <= min(board_size, len(GTP_COLUMNS)):
        raise CoordinateError(
            f"Column {column} outside 1..{min(board_size, len(GTP_COLUMNS))}",
            context={"column": column, "row": row, "board_size": board_size},
        )
    if not 1 <= row <= board_size:
        raise CoordinateError(
            f"Row {row} outside 1..{board_size}",
            context={"column": column, "row": row, "board_size": board_size},
        )
    return f"{GTP_COLUMNS[column - 1]}{board_size + 1 - row}"


def from_label(label: str, board_size: int = DEFAULT_BOARD_SIZE) -> tuple[int, int]:
    """Convert a cell label back to a 1-based (column, row) grid coordinate.

    The pass literal is rejected; callers check ``is_pass_label`` first.

    Raises:
        CoordinateError: If the label does not name a cell on the board.
    """
    if is_pass_label(label):
        raise CoordinateError(f"Pass label {label!r} has no grid coordinate", context={"label": label})
    label = label.strip().upper()
    if not label:
        raise CoordinateError("Empty cell label", context={"label": label})

    letter, number = label[0], label[1:]
    column = GTP_COLUMNS.find(letter) + 1
    if column == 0 or column > board_size:
        raise CoordinateError(f"Invalid column '{letter}' in: {label!r}", context={"label": label})
    if not (number.isascii() and number.isdigit()):
        raise CoordinateError(f"Invalid row '{number}' in: {label!r}", context={"label": label})

    label_row = int(number)
    if not 1 <= label_row <= board_size:
        raise CoordinateError(f"Row {label_row} outside 1..{board_size} in: {label!r}", context={"label": label})
    return column, board_size + 1 - label_row


def move_label(move: "Move", board_size: int = DEFAULT_BOARD_SIZE) -> str:
    """Returns the cell label of a move, or the pass literal."""
    if move.is_pass:
        return PASS_LABEL
    assert move.coords is not None
    return to_label(*move.coords, board_size=board_size)


def move_from_label(label: str, player: str, board_size: int = DEFAULT_BOARD_SIZE) -> "Move":
    """Build a move from a cell label, handling the pass literal."""
    from katreview.core.sgf_parser import Move

    if is_pass_label(label):
        return Move(coords=None, player=player)
    return Move(coords=from_label(label, board_size), player=player)
