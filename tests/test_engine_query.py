"""Tests for katreview.core.engine_query module."""

import json

import pytest

from katreview.core.engine_query import build_analysis_query, format_query
from katreview.core.errors import CoordinateError
from katreview.core.sgf_parser import Move


@pytest.fixture
def moves():
    return [Move((16, 4), "B"), Move((4, 16), "W"), Move(None, "B"), Move((4, 4), "W")]


class TestBuildAnalysisQuery:
    """Tests for build_analysis_query function."""

    def test_basic_query_structure(self, moves):
        """Query should have all fields KataGo requires."""
        query = build_analysis_query("game-1", moves)

        assert {"id", "moves", "rules", "komi", "boardXSize", "boardYSize", "analyzeTurns"} == set(query)
        assert "game-1" == query["id"]
        assert "japanese" == query["rules"]
        assert 6.5 == query["komi"]
        assert 19 == query["boardXSize"] == query["boardYSize"]

    def test_moves_as_color_label_pairs(self, moves):
        query = build_analysis_query("test", moves)
        assert [["B", "Q16"], ["W", "D4"], ["B", "PASS"], ["W", "D16"]] == query["moves"]

    def test_every_turn_is_analyzed(self, moves):
        """One response per move: the position after each of them."""
        query = build_analysis_query("test", moves)
        assert [1, 2, 3, 4] == query["analyzeTurns"]

    def test_explicit_turns(self, moves):
        query = build_analysis_query("test", moves, analyze_turns=[0, 2])
        assert [0, 2] == query["analyzeTurns"]

    def test_rules_komi_size(self):
        query = build_analysis_query("test", [Move((5, 5), "B")], rules="chinese", komi=7.5, board_size=9)
        assert "chinese" == query["rules"]
        assert 7.5 == query["komi"]
        assert 9 == query["boardXSize"]
        assert [["B", "E5"]] == query["moves"]

    def test_optional_fields(self, moves):
        query = build_analysis_query(
            "test",
            moves,
            initial_stones=[Move((4, 16), "B"), Move((16, 4), "B")],
            initial_player="W",
            max_visits=200,
            override_settings={"reportAnalysisWinratesAs": "BLACK"},
        )
        assert [["B", "D4"], ["B", "Q16"]] == query["initialStones"]
        assert "W" == query["initialPlayer"]
        assert 200 == query["maxVisits"]
        assert {"reportAnalysisWinratesAs": "BLACK"} == query["overrideSettings"]

    def test_optional_fields_omitted_by_default(self, moves):
        query = build_analysis_query("test", moves)
        for key in ("initialStones", "initialPlayer", "maxVisits", "overrideSettings"):
            assert key not in query

    def test_empty_game(self):
        query = build_analysis_query("test", [])
        assert [] == query["moves"]
        assert [] == query["analyzeTurns"]

    def test_move_off_board(self):
        with pytest.raises(CoordinateError):
            build_analysis_query("test", [Move((12, 12), "B")], board_size=9)


class TestFormatQuery:
    def test_single_terminated_line(self, moves):
        line = format_query(build_analysis_query("test", moves))
        assert line.endswith("\n")
        assert 1 == line.count("\n")
        assert " " not in line

    def test_is_json(self, moves):
        query = build_analysis_query("test", moves)
        assert query == json.loads(format_query(query))
