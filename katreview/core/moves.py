"""Move extraction from a parsed record's main line."""

import logging
from typing import List

from katreview.core.constants import COLOR_SOURCE_PARITY, COLOR_SOURCE_RECORD, COLOR_SOURCES
from katreview.core.errors import ConfigError
from katreview.core.sgf_parser import Move, SGFNode

logger = logging.getLogger(__name__)


def extract_moves(root: SGFNode, color_source: str = COLOR_SOURCE_RECORD) -> List[Move]:
    """Returns the moves of the main line, in order.

    Nodes without a move token (root, setup, comments) are skipped. The recorded
    B/W property decides the player unless ``color_source`` is "parity", in which
    case players alternate from the record's initial player.

    Raises:
        ConfigError: If color_source is unknown.
        ParseError: If a move token holds an invalid coordinate.
    """
    if color_source not in COLOR_SOURCES:
        raise ConfigError(
            f"Unknown color source {color_source!r}, expected one of {', '.join(COLOR_SOURCES)}",
            context={"color_source": color_source},
        )

    moves = [move for move in (node.move for node in root.main_line) if move is not None]

    if color_source == COLOR_SOURCE_PARITY:
        player = root.initial_player
        inferred = []
        for i, move in enumerate(moves):
            if move.player != player:
                logger.warning("Move %d is recorded as %s, parity gives %s", i + 1, move.player, player)
            inferred.append(Move(coords=move.coords, player=player))
            player = Move.opponent_player(player)
        moves = inferred

    logger.debug("Extracted %d moves from main line", len(moves))
    return moves


def extract_setup(root: SGFNode) -> List[Move]:
    """Setup stones (AB/AW) of the root node, e.g. handicap stones."""
    return root.placements
