"""
Pytest configuration and shared fixtures for katreview tests.

This module provides:
- The four-move game used by the end-to-end scenario
- Its canned KataGo output (one swing after move 2, two candidates)
- A Config pointing every file into tmp_path
"""

from pathlib import Path

import pytest

from katreview.common.config import AnnotateConfig, Config, EngineConfig
from tests.helpers.mock_analysis import CannedBackend, make_candidate, make_response, to_stdout

TESTS_DIR = Path(__file__).parent

FOUR_MOVE_SGF = "(;GM[1]FF[4]SZ[19]KM[6.5]PB[Black]PW[White];B[pd];W[dp];B[pp];W[dd])"

# After W D4 (move 2) black's win-rate jumps from 0.50 to 0.65
SWING_CANDIDATES = [
    make_candidate("Q4", 0, pv=["Q4", "D16", "R10"], visits=120, winrate=0.52),
    make_candidate("C3", 1, pv=["C3", "D3"], visits=80, winrate=0.49),
]


@pytest.fixture
def four_move_responses():
    """Responses for turns 1..4, deliberately out of order like KataGo's."""
    return [
        make_response(3, 0.65),
        make_response(1, 0.5),
        make_response(4, 0.64),
        make_response(2, 0.5, candidates=SWING_CANDIDATES),
    ]


@pytest.fixture
def canned_backend(four_move_responses):
    return CannedBackend(to_stdout(four_move_responses))


@pytest.fixture
def game_file(tmp_path):
    path = tmp_path / "game.sgf"
    path.write_text(FOUR_MOVE_SGF, encoding="utf-8")
    return path


@pytest.fixture
def config(tmp_path, game_file):
    """Config with all files inside tmp_path."""
    return Config(
        engine=EngineConfig(),
        annotate=AnnotateConfig(
            input_path=str(game_file),
            output_path=str(tmp_path / "new.sgf"),
            results_path=str(tmp_path / "result.json"),
        ),
    )
