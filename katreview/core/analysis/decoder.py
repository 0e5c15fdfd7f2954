"""Decoder for KataGo analysis output.

KataGo writes one JSON object per line, which is not itself a JSON document.
The lines are joined into an array first (that array is what gets cached to
disk), then decoded strictly: every field the merge relies on must be present
and correctly typed.
"""

import json
import logging
import math
from typing import Any, Dict, List, Tuple, Type

from katreview.core.analysis.models import AnalysisResponse, Candidate
from katreview.core.constants import ANALYZED_TURN_OFFSET
from katreview.core.errors import ResponseDecodeError

logger = logging.getLogger(__name__)

_INT: Tuple[Type, ...] = (int,)
_NUMBER: Tuple[Type, ...] = (int, float)


def join_response_lines(output: str) -> str:
    """Wrap newline-delimited JSON objects into a single JSON array string."""
    lines = [line.strip() for line in output.strip().splitlines()]
    return "[" + ",".join(line for line in lines if line) + "]"


def _require(obj: Dict[str, Any], key: str, types: Tuple[Type, ...], where: str) -> Any:
    if key not in obj:
        raise ResponseDecodeError(f"{where}: missing field '{key}'", context={"where": where, "field": key})
    value = obj[key]
    # bool is a subclass of int but never a valid count or rate
    if isinstance(value, bool) or not isinstance(value, types):
        raise ResponseDecodeError(
            f"{where}: field '{key}' has type {type(value).__name__}",
            context={"where": where, "field": key, "value": value},
        )
    return value


def _require_count(obj: Dict[str, Any], key: str, where: str) -> int:
    value = _require(obj, key, _INT, where)
    if value < 0:
        raise ResponseDecodeError(
            f"{where}: field '{key}' is negative", context={"where": where, "field": key, "value": value}
        )
    return value


def _require_rate(obj: Dict[str, Any], key: str, where: str) -> float:
    value = _require(obj, key, _NUMBER, where)
    # json.loads accepts NaN and Infinity
    if not (isinstance(value, int) or math.isfinite(value)) or not 0 <= value <= 1:
        raise ResponseDecodeError(
            f"{where}: field '{key}' is outside 0..1", context={"where": where, "field": key, "value": value}
        )
    return float(value)


def _require_object(value: Any, where: str) -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise ResponseDecodeError(f"{where}: expected an object, got {type(value).__name__}", context={"where": where})
    return value


def decode_candidate(data: Any, where: str) -> Candidate:
    data = _require_object(data, where)
    pv = _require(data, "pv", (list,), where)
    for i, label in enumerate(pv):
        if not isinstance(label, str):
            raise ResponseDecodeError(
                f"{where}: pv[{i}] has type {type(label).__name__}",
                context={"where": where, "field": "pv", "value": label},
            )
    return Candidate(
        label=_require(data, "move", (str,), where),
        rank=_require_count(data, "order", where),
        visits=_require_count(data, "visits", where),
        winrate=_require_rate(data, "winrate", where),
        principal_variation=list(pv),
    )


def decode_response(data: Any, index: int = 0, turn_offset: int = ANALYZED_TURN_OFFSET) -> AnalysisResponse:
    """Decode one KataGo response object. ``turn_index`` is turnNumber minus ``turn_offset``.

    Raises:
        ResponseDecodeError: If the engine reported an error, or a field is missing or mistyped.
    """
    where = f"response[{index}]"
    data = _require_object(data, where)
    if "error" in data:
        raise ResponseDecodeError(
            f"{where}: KataGo error: {data['error']}",
            user_message=f"KataGo rejected the query: {data['error']}",
            context={"where": where, "field": data.get("field")},
        )

    turn_number = _require_count(data, "turnNumber", where)
    if turn_number < turn_offset:
        raise ResponseDecodeError(
            f"{where}: turnNumber {turn_number} was never requested",
            context={"where": where, "field": "turnNumber", "value": turn_number},
        )
    root_info = _require_object(_require(data, "rootInfo", (dict,), where), f"{where}.rootInfo")
    move_infos = _require(data, "moveInfos", (list,), where)

    candidates = [decode_candidate(info, f"{where}.moveInfos[{i}]") for i, info in enumerate(move_infos)]
    candidates.sort(key=lambda c: c.rank)

    return AnalysisResponse(
        turn_index=turn_number - turn_offset,
        root_visits=_require_count(root_info, "visits", f"{where}.rootInfo"),
        root_winrate=_require_rate(root_info, "winrate", f"{where}.rootInfo"),
        candidates=candidates,
    )


def decode_responses(document: str, turn_offset: int = ANALYZED_TURN_OFFSET) -> List[AnalysisResponse]:
    """Decode a JSON array of KataGo responses. Order is preserved; see sort_responses.

    Raises:
        ResponseDecodeError: On malformed JSON or any invalid response.
    """
    try:
        data = json.loads(document)
    except json.JSONDecodeError as e:
        raise ResponseDecodeError(f"Analysis output is not valid JSON: {e}", context={"position": e.pos}) from e
    if not isinstance(data, list):
        raise ResponseDecodeError(f"Expected a JSON array of responses, got {type(data).__name__}")

    responses = [decode_response(item, i, turn_offset) for i, item in enumerate(data)]
    logger.debug("Decoded %d analysis responses", len(responses))
    return responses


def sort_responses(responses: List[AnalysisResponse]) -> List[AnalysisResponse]:
    """KataGo answers turns in completion order, not turn order."""
    return sorted(responses, key=lambda r: r.turn_index)
