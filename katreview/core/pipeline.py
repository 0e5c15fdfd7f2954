"""The annotation run: record in, engine once, annotated record out.

Every step consumes the previous step's complete output. Any failure aborts the
run before the output record is written.
"""

import contextlib
import logging
import os
import tempfile
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from katreview import __version__
from katreview.common.config import AnnotateConfig, Config
from katreview.core.analysis.decoder import decode_responses, join_response_lines, sort_responses
from katreview.core.analysis.models import AnalysisResponse
from katreview.core.annotate import AnnotatedTree, find_swing_indices, merge_annotations
from katreview.core.constants import GAME_INFO_PROPERTIES, MAX_BOARD_SIZE, PROGRAM_NAME
from katreview.core.engine import AnalysisBackend, KataGoAnalysisProcess
from katreview.core.engine_query import build_analysis_query, format_query
from katreview.core.errors import ConfigError, RecordIOError, SGFError
from katreview.core.moves import extract_moves, extract_setup
from katreview.core.sgf_parser import SGF, Move, ParseError, SGFNode

logger = logging.getLogger(__name__)


@dataclass
class AnnotationResult:
    moves: List[Move]
    responses: List[AnalysisResponse]
    tree: AnnotatedTree
    sgf: str
    swings: List[int] = field(default_factory=list)


# ---------------------------------------------------------------------------
# File helpers
# ---------------------------------------------------------------------------


def read_record(path: str) -> SGFNode:
    """Parse the input record.

    Raises:
        RecordIOError: If the file cannot be read.
        SGFError: If the file is not valid SGF.
    """
    try:
        return SGF.parse_file(path)
    except OSError as e:
        raise RecordIOError(f"Cannot read game record {path}: {e}", context={"path": path}) from e
    except ParseError as e:
        raise SGFError(f"Invalid game record {path}: {e}", context={"path": path}) from e


def read_text(path: str) -> str:
    try:
        with open(path, encoding="utf-8") as f:
            return f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise RecordIOError(f"Cannot read {path}: {e}", context={"path": path}) from e


def write_text(path: str, content: str) -> None:
    """Write a file atomically: temp file in the same directory + os.replace.

    Raises:
        RecordIOError: If the file cannot be written.
    """
    save_dir = os.path.dirname(path) or "."
    temp_path = None
    try:
        os.makedirs(save_dir, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(suffix=".tmp", dir=save_dir)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.replace(temp_path, path)
        temp_path = None
    except (OSError, UnicodeEncodeError) as e:
        raise RecordIOError(f"Cannot write {path}: {e}", context={"path": path}) from e
    finally:
        if temp_path is not None:
            with contextlib.suppress(OSError):
                os.unlink(temp_path)


# ---------------------------------------------------------------------------
# Steps
# ---------------------------------------------------------------------------


def game_settings(root: SGFNode, config: AnnotateConfig) -> Tuple[str, float, int]:
    """Rules, komi and board size for the query.

    Raises:
        ConfigError: If the record's board does not fit the configuration.
        SGFError: If the record's SZ property is unreadable.
    """
    try:
        size_x, size_y = root.board_size
    except ParseError as e:
        raise SGFError(str(e)) from e
    if size_x != size_y:
        raise ConfigError(f"Only square boards are supported, record is {size_x}x{size_y}")

    if config.rules_from_record:
        if not 2 <= size_x <= MAX_BOARD_SIZE:
            raise ConfigError(f"Record board size {size_x} is not supported", context={"board_size": size_x})
        return root.ruleset, root.komi, size_x
    if "SZ" in root.properties and size_x != config.board_size:
        raise ConfigError(
            f"Record is {size_x}x{size_x} but board_size is {config.board_size}; set rules_from_record to follow the record",
            context={"record": size_x, "board_size": config.board_size},
        )
    return config.rules, config.komi, config.board_size


def root_properties(root: SGFNode, board_size: int) -> Dict[str, Any]:
    """Game info of the original root, re-labelled for the annotated record."""
    properties: Dict[str, Any] = {
        prop: list(root.get_list_property(prop)) for prop in GAME_INFO_PROPERTIES if root.get_list_property(prop)
    }
    properties.update(
        {"GM": ["1"], "FF": ["4"], "CA": ["UTF-8"], "AP": [f"{PROGRAM_NAME}:{__version__}"], "SZ": [str(board_size)]}
    )
    return properties


def extract_game(root: SGFNode, config: AnnotateConfig) -> Tuple[List[Move], List[Move]]:
    """Main line moves and setup stones.

    Raises:
        SGFError: If a move or setup stone has an invalid coordinate.
    """
    try:
        return extract_moves(root, config.color_source), extract_setup(root)
    except ParseError as e:
        raise SGFError(f"Invalid move in game record: {e}") from e


def run_analysis(
    moves: List[Move],
    setup: List[Move],
    initial_player: str,
    settings: Tuple[str, float, int],
    config: Config,
    backend: AnalysisBackend,
) -> str:
    """Query the engine once and return its output joined into a JSON array."""
    rules, komi, board_size = settings
    query = build_analysis_query(
        config.annotate.query_id,
        moves,
        rules=rules,
        komi=komi,
        board_size=board_size,
        initial_stones=setup,
        initial_player=initial_player if setup else None,
        max_visits=config.engine.max_visits,
        override_settings=config.engine.override_settings,
    )
    request = format_query(query)
    logger.debug("Query: %s", request.strip())
    logger.info("Analyzing %d moves (rules %s, komi %s)", len(moves), rules, komi)
    return join_response_lines(backend.analyze(request))


def annotate_file(config: Config, backend: Optional[AnalysisBackend] = None) -> AnnotationResult:
    """Run the whole pipeline described by ``config``.

    ``backend`` replaces the KataGo subprocess, e.g. with canned output in tests.

    Raises:
        KatReviewError: On any failure; nothing is written to the output path then.
    """
    annotate = config.annotate.validate()
    root = read_record(annotate.input_path)
    settings = game_settings(root, annotate)
    board_size = settings[2]
    moves, setup = extract_game(root, annotate)
    logger.info("Read %d moves from %s", len(moves), annotate.input_path)

    if annotate.reuse_analysis:
        logger.info("Reusing analysis from %s", annotate.results_path)
        document = read_text(annotate.results_path)
    elif not moves:
        logger.warning("No moves in %s, nothing to analyze", annotate.input_path)
        document = "[]"
    else:
        engine = backend if backend is not None else KataGoAnalysisProcess(config.engine)
        document = run_analysis(moves, setup, root.initial_player, settings, config, engine)
        write_text(annotate.results_path, document)

    responses = sort_responses(decode_responses(document))
    tree = merge_annotations(
        moves,
        responses,
        threshold=annotate.threshold,
        max_variations=annotate.max_variations,
        board_size=board_size,
    )
    sgf = tree.to_sgf(root_properties(root, board_size))
    write_text(annotate.output_path, sgf)
    logger.info("Wrote %s", annotate.output_path)
    return AnnotationResult(
        moves=moves,
        responses=responses,
        tree=tree,
        sgf=sgf,
        swings=find_swing_indices(responses, annotate.threshold),
    )
