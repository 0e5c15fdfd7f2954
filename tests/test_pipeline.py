"""End-to-end tests of the annotation run with a canned engine."""

import json
from dataclasses import replace

import pytest

from katreview import __version__
from katreview.core.errors import (
    ConfigError,
    EngineError,
    PreconditionError,
    RecordIOError,
    ResponseDecodeError,
    SGFError,
)
from katreview.core.pipeline import annotate_file, game_settings, root_properties, write_text
from katreview.core.sgf_parser import SGF, Move
from tests.helpers.mock_analysis import CannedBackend, make_response, responses_for_winrates, to_stdout


def with_annotate(config, **changes):
    return replace(config, annotate=replace(config.annotate, **changes))


class FailingBackend:
    def analyze(self, request):
        raise EngineError("KataGo exited with code 1: boom")


class TestAnnotateFile:
    def test_four_move_game(self, config, canned_backend):
        result = annotate_file(config, canned_backend)

        assert 4 == len(result.moves)
        assert [0, 1, 2, 3] == [r.turn_index for r in result.responses]
        assert [1] == result.swings

        with open(config.annotate.output_path, encoding="utf-8") as f:
            written = f.read()
        assert result.sgf == written

        root = SGF.parse_sgf(written)
        assert ["Black", "White"] == [root.get_property("PB"), root.get_property("PW")]
        assert f"katreview:{__version__}" == root.get_property("AP")
        assert "6.5" == root.get_property("KM")
        branch_point = root.children[0].children[0]
        assert 3 == len(branch_point.children)
        assert [Move((16, 16), "B"), Move((4, 4), "W")] == [n.move for n in branch_point.children[0].main_line]

    def test_single_query(self, config, canned_backend):
        annotate_file(config, canned_backend)
        assert 1 == len(canned_backend.requests)
        request = canned_backend.requests[0]
        assert request.endswith("\n") and 1 == request.count("\n")
        query = json.loads(request)
        assert [["B", "Q16"], ["W", "D4"], ["B", "Q4"], ["W", "D16"]] == query["moves"]
        assert [1, 2, 3, 4] == query["analyzeTurns"]
        assert ("test", "japanese", 6.5, 19, 19) == (
            query["id"],
            query["rules"],
            query["komi"],
            query["boardXSize"],
            query["boardYSize"],
        )
        assert "initialStones" not in query

    def test_results_file_holds_joined_array(self, config, canned_backend, four_move_responses):
        annotate_file(config, canned_backend)
        with open(config.annotate.results_path, encoding="utf-8") as f:
            assert four_move_responses == json.load(f)

    def test_reuse_analysis(self, config, canned_backend):
        first = annotate_file(config, canned_backend)
        backend = CannedBackend("")
        second = annotate_file(with_annotate(config, reuse_analysis=True), backend)
        assert [] == backend.requests
        assert first.sgf == second.sgf

    def test_reuse_analysis_without_results(self, config):
        with pytest.raises(RecordIOError):
            annotate_file(with_annotate(config, reuse_analysis=True), CannedBackend(""))

    def test_threshold_and_variations(self, config, canned_backend):
        result = annotate_file(with_annotate(config, threshold=0.2, max_variations=1), canned_backend)
        assert [] == result.swings
        assert 1 == len(result.tree)

        result = annotate_file(with_annotate(config, max_variations=1), canned_backend)
        assert 3 == len(result.tree)

    def test_setup_stones_sent(self, tmp_path, config):
        path = tmp_path / "handicap.sgf"
        path.write_text("(;GM[1]SZ[19]HA[2]AB[dp][pd];W[dd];B[pp])")
        backend = CannedBackend(to_stdout(responses_for_winrates([0.8, 0.8])))
        annotate_file(with_annotate(config, input_path=str(path)), backend)
        query = json.loads(backend.requests[0])
        assert [["B", "D4"], ["B", "Q16"]] == query["initialStones"]
        assert "W" == query["initialPlayer"]
        assert [["W", "D16"], ["B", "Q4"]] == query["moves"]

    def test_empty_game_skips_engine(self, tmp_path, config):
        path = tmp_path / "empty.sgf"
        path.write_text("(;GM[1]SZ[19]PB[A]PW[B])")
        backend = CannedBackend("")
        result = annotate_file(with_annotate(config, input_path=str(path)), backend)
        assert [] == backend.requests
        assert [] == result.moves
        assert [] == SGF.parse_file(config.annotate.output_path).children


class TestFailures:
    """Nothing is written to the output path when the run fails."""

    def test_response_count_mismatch(self, tmp_path, config):
        path = tmp_path / "five.sgf"
        path.write_text("(;GM[1]SZ[19];B[pd];W[dp];B[pp];W[dd];B[jj])")
        backend = CannedBackend(to_stdout(responses_for_winrates([0.5, 0.5, 0.5, 0.5])))
        with pytest.raises(PreconditionError):
            annotate_file(with_annotate(config, input_path=str(path)), backend)
        assert not (tmp_path / "new.sgf").exists()

    def test_engine_failure(self, config, tmp_path):
        with pytest.raises(EngineError):
            annotate_file(config, FailingBackend())
        assert not (tmp_path / "new.sgf").exists()
        assert not (tmp_path / "result.json").exists()

    def test_malformed_response(self, config, tmp_path):
        bad = make_response(1, 0.5)
        del bad["rootInfo"]["winrate"]
        backend = CannedBackend(to_stdout([bad] + responses_for_winrates([0.5, 0.5, 0.5])[1:]))
        with pytest.raises(ResponseDecodeError):
            annotate_file(config, backend)
        assert not (tmp_path / "new.sgf").exists()

    def test_missing_record(self, config, tmp_path):
        with pytest.raises(RecordIOError):
            annotate_file(with_annotate(config, input_path=str(tmp_path / "missing.sgf")), CannedBackend(""))

    def test_invalid_record(self, config, tmp_path):
        path = tmp_path / "bad.sgf"
        path.write_text("not a game record")
        with pytest.raises(SGFError):
            annotate_file(with_annotate(config, input_path=str(path)), CannedBackend(""))

    def test_invalid_config(self, config, canned_backend):
        with pytest.raises(ConfigError):
            annotate_file(with_annotate(config, threshold=2.0), canned_backend)
        assert [] == canned_backend.requests


class TestGameSettings:
    def test_configured_settings_win(self, config):
        root = SGF.parse_sgf("(;GM[1]SZ[19]RU[Chinese]KM[7.5];B[pd])")
        assert ("japanese", 6.5, 19) == game_settings(root, config.annotate)

    def test_rules_from_record(self, config):
        root = SGF.parse_sgf("(;GM[1]SZ[9]RU[Chinese]KM[7.5];B[ee])")
        assert ("Chinese", 7.5, 9) == game_settings(root, replace(config.annotate, rules_from_record=True))

    def test_board_size_mismatch(self, config):
        root = SGF.parse_sgf("(;GM[1]SZ[9];B[ee])")
        with pytest.raises(ConfigError):
            game_settings(root, config.annotate)

    def test_rectangular_board(self, config):
        root = SGF.parse_sgf("(;GM[1]SZ[19:13];B[ee])")
        with pytest.raises(ConfigError):
            game_settings(root, config.annotate)


def test_root_properties_keep_game_info():
    root = SGF.parse_sgf("(;GM[1]FF[3]CA[GBK]AP[CGoban]SZ[19]PB[Lee]PW[Cho]RE[W+R]C[chat]MULTIGOGM[1];B[pd])")
    properties = root_properties(root, 19)
    assert ["Lee"] == properties["PB"]
    assert ["W+R"] == properties["RE"]
    assert ["4"] == properties["FF"]
    assert ["UTF-8"] == properties["CA"]
    assert "C" not in properties
    assert "MULTIGOGM" not in properties


def test_write_text_replaces_file(tmp_path):
    path = tmp_path / "out" / "new.sgf"
    write_text(str(path), "(;GM[1])")
    write_text(str(path), "(;GM[1]FF[4])")
    assert "(;GM[1]FF[4])" == path.read_text(encoding="utf-8")
    assert ["new.sgf"] == [p.name for p in path.parent.iterdir()]
