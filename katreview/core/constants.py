PROGRAM_NAME = "katreview"

# board
DEFAULT_BOARD_SIZE = 19
MAX_BOARD_SIZE = 19
PLAYERS = "BW"

# KataGo query
DEFAULT_QUERY_ID = "test"
DEFAULT_RULES = "japanese"
DEFAULT_KOMI = 6.5
DEFAULT_ANALYSIS_THREADS = 9

# annotation
DEFAULT_SWING_THRESHOLD = 0.1
DEFAULT_MAX_VARIATIONS = 3
WINRATE_PROPERTY = "SBKV"  # Sabaki win-rate property, value in percent
COMMENT_PROPERTY = "C"

# files
DEFAULT_INPUT_PATH = "game.sgf"
DEFAULT_OUTPUT_PATH = "new.sgf"
DEFAULT_RESULTS_PATH = "result.json"
DEFAULT_CONFIG_PATH = "katreview.json"

COLOR_SOURCE_RECORD = "record"
COLOR_SOURCE_PARITY = "parity"
COLOR_SOURCES = (COLOR_SOURCE_RECORD, COLOR_SOURCE_PARITY)

# root properties copied into the annotated record
GAME_INFO_PROPERTIES = (
    "GM", "FF", "CA", "AP", "SZ", "KM", "HA", "RU", "PB", "PW", "BR", "WR",
    "DT", "EV", "GN", "PC", "RE", "TM", "OT", "AB", "AW", "PL",
)

# KataGo turn k is the position after k moves; the response for move i (0-based) is turn i + 1
ANALYZED_TURN_OFFSET = 1
