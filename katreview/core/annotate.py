"""Merging analysis responses back into a game record.

The annotated record is an arena of lines: each line is a run of moves plus the
ids of the lines branching off after its last move. Line 0 is the root and the
merge appends to a cursor line id, so re-pointing the cursor into a freshly
created branch never needs a reference into the tree.

Layout produced at a swing (a turn after which the root win-rate moves by more
than the threshold):

    ... -> move i -+-> [actual game continues here]
                   +-> candidate rank 0 principal variation
                   +-> candidate rank 1 principal variation
                   +-> candidate rank 2 principal variation
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Deque, Dict, Iterator, List, Optional, Sequence, Tuple

from katreview.core.analysis.decoder import sort_responses
from katreview.core.analysis.models import AnalysisResponse
from katreview.core.constants import (
    COMMENT_PROPERTY,
    DEFAULT_BOARD_SIZE,
    DEFAULT_MAX_VARIATIONS,
    DEFAULT_SWING_THRESHOLD,
    WINRATE_PROPERTY,
)
from katreview.core.coords import move_from_label
from katreview.core.errors import PreconditionError
from katreview.core.sgf_parser import Move, SGFNode

logger = logging.getLogger(__name__)


def format_winrate(winrate: float) -> str:
    """Win-rate as a percentage with the precision the engine reported, e.g. 0.45678 -> "45.678", 0.5 -> "50".

    Scaled in decimal arithmetic, so 0.45678 gives 45.678 rather than 45.678000000000004.
    """
    return format((Decimal(repr(winrate)) * 100).normalize(), "f")


@dataclass
class AnnotatedMove:
    """A move plus the SGF properties annotating it.

    ``winrate`` keeps the engine's unrounded value; ``properties`` holds the
    display tokens written to the record.
    """

    move: Move
    winrate: float
    properties: Dict[str, List[str]] = field(default_factory=dict)


@dataclass
class Line:
    moves: List[AnnotatedMove] = field(default_factory=list)
    children: List[int] = field(default_factory=list)


class AnnotatedTree:
    """Arena of lines addressed by index. Lines are only ever appended."""

    ROOT = 0

    def __init__(self) -> None:
        self.lines: List[Line] = [Line()]

    def __len__(self) -> int:
        return len(self.lines)

    def line(self, line_id: int) -> Line:
        return self.lines[line_id]

    def add_line(self, parent: int, moves: Optional[List[AnnotatedMove]] = None) -> int:
        """Create a line branching off after the last move of ``parent`` and return its id."""
        self.lines.append(Line(moves=list(moves or [])))
        line_id = len(self.lines) - 1
        self.lines[parent].children.append(line_id)
        return line_id

    def append(self, line_id: int, annotated_move: AnnotatedMove) -> None:
        self.lines[line_id].moves.append(annotated_move)

    def main_line(self) -> List[AnnotatedMove]:
        """Moves along the first child of every line, starting at the root."""
        moves: List[AnnotatedMove] = []
        line_id: Optional[int] = self.ROOT
        while line_id is not None:
            line = self.lines[line_id]
            moves.extend(line.moves)
            line_id = line.children[0] if line.children else None
        return moves

    def walk(self) -> Iterator[Tuple[int, int]]:
        """Yields (line_id, depth) breadth first, depth being the number of branch points above the line."""
        queue: Deque[Tuple[int, int]] = deque([(self.ROOT, 0)])
        while queue:
            line_id, depth = queue.popleft()
            yield line_id, depth
            queue.extend((child, depth + 1) for child in self.lines[line_id].children)

    def to_sgf_tree(self, root_properties: Optional[Dict[str, Any]] = None) -> SGFNode:
        """Builds an SGFNode tree. The root node carries ``root_properties``; lines become node sequences.

        Lines without moves cannot be expressed in SGF and are left out.
        """
        root = SGFNode(properties=root_properties)
        queue: Deque[Tuple[int, SGFNode]] = deque([(self.ROOT, root)])
        while queue:
            line_id, node = queue.popleft()
            line = self.lines[line_id]
            for annotated in line.moves:
                node = SGFNode(parent=node, move=annotated.move)
                for prop, values in annotated.properties.items():
                    node.set_property(prop, values)
            for child in line.children:
                if self.lines[child].moves:
                    queue.append((child, node))
                else:
                    logger.debug("Omitting empty line %d from SGF output", child)
        return root

    def to_sgf(self, root_properties: Optional[Dict[str, Any]] = None) -> str:
        return self.to_sgf_tree(root_properties).sgf()


def check_alignment(moves: Sequence[Move], responses: Sequence[AnalysisResponse]) -> None:
    """Every move needs exactly one response, with turn indices covering 0..n-1.

    Raises:
        PreconditionError: On a length mismatch, an out of range or a repeated turn index.
    """
    n = len(moves)
    if len(responses) != n:
        raise PreconditionError(
            f"Got {len(responses)} analysis responses for {n} moves",
            user_message="The analysis does not match the game record (different number of turns).",
            context={"moves": n, "responses": len(responses)},
        )
    seen = set()
    for response in responses:
        if not 0 <= response.turn_index < n:
            raise PreconditionError(
                f"Turn index {response.turn_index} outside 0..{n - 1}",
                context={"turn_index": response.turn_index, "moves": n},
            )
        if response.turn_index in seen:
            raise PreconditionError(
                f"Turn index {response.turn_index} analyzed twice", context={"turn_index": response.turn_index}
            )
        seen.add(response.turn_index)


def find_swing_indices(responses: Sequence[AnalysisResponse], threshold: float = DEFAULT_SWING_THRESHOLD) -> List[int]:
    """Indices i where the root win-rate of i and i+1 differ by strictly more than threshold.

    ``responses`` must already be in turn order.
    """
    return [
        i
        for i, (before, after) in enumerate(zip(responses, responses[1:]))
        if abs(before.root_winrate - after.root_winrate) > threshold
    ]


def build_variations(
    response: AnalysisResponse,
    color: str,
    max_variations: int = DEFAULT_MAX_VARIATIONS,
    board_size: int = DEFAULT_BOARD_SIZE,
) -> List[List[AnnotatedMove]]:
    """One move list per top candidate, following its principal variation.

    Colors alternate starting with ``color``. Every move carries the same
    comment: the root win-rate of ``response`` and the candidate's visits.

    Raises:
        CoordinateError: If a principal variation contains an invalid label.
    """
    variations = []
    for candidate in response.top_candidates(max_variations):
        comment = f"Winrate: {format_winrate(response.root_winrate)} Visits: {candidate.visits}"
        player = color
        variation = []
        for label in candidate.principal_variation:
            variation.append(
                AnnotatedMove(
                    move=move_from_label(label, player, board_size),
                    winrate=response.root_winrate,
                    properties={COMMENT_PROPERTY: [comment]},
                )
            )
            player = Move.opponent_player(player)
        variations.append(variation)
    return variations


def merge_annotations(
    moves: Sequence[Move],
    responses: Sequence[AnalysisResponse],
    *,
    threshold: float = DEFAULT_SWING_THRESHOLD,
    max_variations: int = DEFAULT_MAX_VARIATIONS,
    board_size: int = DEFAULT_BOARD_SIZE,
) -> AnnotatedTree:
    """Builds the annotated record from the game's moves and one analysis response per move.

    Raises:
        PreconditionError: If moves and responses do not line up.
        CoordinateError: If a principal variation contains an invalid label.
    """
    check_alignment(moves, responses)
    responses = sort_responses(list(responses))

    swings = iter(find_swing_indices(responses, threshold))
    next_swing = next(swings, None)

    tree = AnnotatedTree()
    cursor = AnnotatedTree.ROOT
    for i, (move, response) in enumerate(zip(moves, responses)):
        tree.append(
            cursor,
            AnnotatedMove(
                move=move,
                winrate=response.root_winrate,
                properties={WINRATE_PROPERTY: [format_winrate(response.root_winrate)]},
            ),
        )
        if i == next_swing:
            logger.debug(
                "Swing after move %d: %.4f -> %.4f", i + 1, response.root_winrate, responses[i + 1].root_winrate
            )
            actual = tree.add_line(cursor)
            for variation in build_variations(response, move.opponent, max_variations, board_size):
                tree.add_line(cursor, variation)
            cursor = actual
            next_swing = next(swings, None)

    logger.info("Annotated %d moves, %d branch points", len(moves), sum(1 for line in tree.lines if line.children))
    return tree
