#!/usr/bin/env python
"""
Annotate an SGF game record with KataGo win-rates and alternative lines.

Every move gets its win-rate (SBKV property). Where the win-rate swings by more
than the threshold between two moves, the engine's top alternatives are added
as variations next to the move that was actually played.

Usage:
    python -m katreview --input game.sgf --output new.sgf
    python -m katreview --config katreview.json --threshold 0.15 --variations 2
    python -m katreview --reuse-analysis  # re-merge result.json without running KataGo
"""

import argparse
import logging
import sys
from typing import List, Optional

from katreview import __version__
from katreview.common.config import load_config
from katreview.core.constants import COLOR_SOURCES, DEFAULT_CONFIG_PATH
from katreview.core.errors import KatReviewError
from katreview.core.pipeline import annotate_file

logger = logging.getLogger("katreview")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="katreview",
        description="Annotate an SGF game record using the KataGo analysis engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Annotate game.sgf into new.sgf with settings from katreview.json
    python -m katreview

    # Explicit files and engine
    python -m katreview --input games/3.sgf --output games/3-annotated.sgf \\
        --katago ./katago --model weights.bin.gz --katago-config analysis.cfg

    # Only flag large swings, show two alternatives
    python -m katreview --threshold 0.2 --variations 2
""",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--config",
        default=DEFAULT_CONFIG_PATH,
        help=f"JSON config file with 'engine' and 'annotate' sections (default: {DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument("--input", dest="input_path", help="Game record to annotate")
    parser.add_argument("--output", dest="output_path", help="Annotated record to write (overwritten)")
    parser.add_argument("--results", dest="results_path", help="File caching KataGo's raw responses")
    parser.add_argument(
        "--threshold",
        type=float,
        default=None,
        help="Win-rate change (0-1) that opens alternative lines (default: 0.1)",
    )
    parser.add_argument(
        "--variations",
        dest="max_variations",
        type=int,
        default=None,
        help="Number of alternative lines at each swing (default: 3)",
    )
    parser.add_argument(
        "--color-source",
        choices=COLOR_SOURCES,
        default=None,
        help="Take move colors from the record (default) or alternate them from the first player",
    )
    parser.add_argument(
        "--rules-from-record",
        action="store_true",
        default=None,
        help="Use the record's ruleset, komi and board size instead of the configured ones",
    )
    parser.add_argument(
        "--reuse-analysis",
        action="store_true",
        default=None,
        help="Decode the existing results file instead of running KataGo",
    )
    parser.add_argument("--katago", help="KataGo executable")
    parser.add_argument("--model", help="KataGo model file")
    parser.add_argument("--katago-config", dest="katago_config", help="KataGo analysis config file")
    parser.add_argument("--threads", dest="analysis_threads", type=int, default=None, help="KataGo analysis threads")
    parser.add_argument("--visits", dest="max_visits", type=int, default=None, help="Maximum visits per position")
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Seconds to wait for KataGo before giving up (default: wait forever)",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug output")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_config(args.config).with_overrides(
            engine={
                "katago": args.katago,
                "model": args.model,
                "config": args.katago_config,
                "analysis_threads": args.analysis_threads,
                "max_visits": args.max_visits,
                "timeout": args.timeout,
            },
            annotate={
                "input_path": args.input_path,
                "output_path": args.output_path,
                "results_path": args.results_path,
                "threshold": args.threshold,
                "max_variations": args.max_variations,
                "color_source": args.color_source,
                "rules_from_record": args.rules_from_record,
                "reuse_analysis": args.reuse_analysis,
            },
        )
        result = annotate_file(config)
    except KatReviewError as e:
        logger.error("%s: %s", type(e).__name__, e.user_message)
        logger.debug("Context: %s", e.context, exc_info=True)
        return 1

    print(
        f"Annotated {len(result.moves)} moves, {len(result.swings)} win-rate swings: {config.annotate.output_path}"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
