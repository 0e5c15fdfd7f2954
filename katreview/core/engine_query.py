"""Query building for the KataGo analysis engine.

The analysis engine reads one JSON object per line on stdin. A single query
covering the whole game asks for one response per analyzed turn.
"""

import json
from typing import Any, Dict, List, Optional, Sequence

from katreview.core.constants import ANALYZED_TURN_OFFSET, DEFAULT_BOARD_SIZE, DEFAULT_KOMI, DEFAULT_RULES
from katreview.core.coords import move_label
from katreview.core.sgf_parser import Move


def build_analysis_query(
    query_id: str,
    moves: Sequence[Move],
    *,
    rules: str = DEFAULT_RULES,
    komi: float = DEFAULT_KOMI,
    board_size: int = DEFAULT_BOARD_SIZE,
    analyze_turns: Optional[List[int]] = None,
    initial_stones: Optional[Sequence[Move]] = None,
    initial_player: Optional[str] = None,
    max_visits: Optional[int] = None,
    override_settings: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Build a KataGo analysis query dict.

    This is a pure function with no side effects.

    Args:
        query_id: Identifier echoed back in every response.
        moves: Moves of the game, in order.
        rules: KataGo rules string (e.g., "japanese", "chinese").
        komi: Komi.
        board_size: Board width and height.
        analyze_turns: KataGo turns to analyze. Defaults to the position after
            every move, 1..len(moves).
        initial_stones: Optional setup stones (handicap).
        initial_player: Optional player to move first, needed with setup stones.
        max_visits: Optional visit limit overriding the engine config.
        override_settings: Optional KataGo overrideSettings.

    Returns:
        A dict suitable for sending to KataGo as JSON.

    Raises:
        CoordinateError: If a move is not on the board.
    """
    if analyze_turns is None:
        analyze_turns = [i + ANALYZED_TURN_OFFSET for i in range(len(moves))]

    query: Dict[str, Any] = {
        "id": query_id,
        "moves": [[m.player, move_label(m, board_size)] for m in moves],
        "rules": rules,
        "komi": komi,
        "boardXSize": board_size,
        "boardYSize": board_size,
        "analyzeTurns": analyze_turns,
    }
    if initial_stones:
        query["initialStones"] = [[m.player, move_label(m, board_size)] for m in initial_stones]
    if initial_player:
        query["initialPlayer"] = initial_player
    if max_visits is not None:
        query["maxVisits"] = max_visits
    if override_settings:
        query["overrideSettings"] = dict(override_settings)
    return query


def format_query(query: Dict[str, Any]) -> str:
    """Serializes a query as the single newline-terminated line KataGo expects."""
    return json.dumps(query, separators=(",", ":")) + "\n"
