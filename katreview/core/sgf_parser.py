import copy
import logging
import re
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Optional

import chardet

from katreview.core.constants import DEFAULT_BOARD_SIZE, PLAYERS
from katreview.core.coords import move_label

logger = logging.getLogger(__name__)


class ParseError(Exception):
    """Exception raised on a parse error"""

    pass


@dataclass(frozen=True)
class Move:
    """A single player's move. ``coords`` is a 1-based (column, row) pair with row 1 at the top, or None for a pass."""

    coords: Optional[tuple[int, int]] = None
    player: str = "B"

    SGF_COORD = list("ABCDEFGHIJKLMNOPQRSTUVWXYZ".lower()) + list("ABCDEFGHIJKLMNOPQRSTUVWXYZ")  # sgf goes to 52

    @classmethod
    def from_sgf(cls, sgf_coords: str, board_size: tuple[int, int], player: str = "B") -> "Move":
        """Initialize a move from SGF coordinates and player"""
        if sgf_coords == "" or (
            sgf_coords == "tt" and board_size[0] <= 19 and board_size[1] <= 19
        ):  # [tt] can be used as "pass" for <= 19x19 board
            return cls(coords=None, player=player)
        try:
            column = Move.SGF_COORD.index(sgf_coords[0]) + 1
            row = Move.SGF_COORD.index(sgf_coords[1]) + 1
        except (ValueError, IndexError):
            raise ParseError(f"Invalid SGF coordinate {sgf_coords!r}")
        if column > board_size[0] or row > board_size[1]:
            raise ParseError(f"SGF coordinate {sgf_coords!r} outside {board_size[0]}x{board_size[1]} board")
        return cls(coords=(column, row), player=player)

    def __repr__(self) -> str:
        return f"Move({self.player or ''}{self.label()})"

    def label(self, board_size: int = DEFAULT_BOARD_SIZE) -> str:
        """Returns the cell label (e.g. "D4") of the move, or "PASS"."""
        return move_label(self, board_size)

    def sgf(self) -> str:
        """Returns SGF coordinates of the move"""
        if self.is_pass:
            return ""
        assert self.coords is not None
        return f"{Move.SGF_COORD[self.coords[0] - 1]}{Move.SGF_COORD[self.coords[1] - 1]}"

    @property
    def is_pass(self) -> bool:
        """Returns True if the move is a pass"""
        return self.coords is None

    @staticmethod
    def opponent_player(player: str) -> str:
        """Returns the opposing player, i.e. W <-> B"""
        return "W" if player == "B" else "B"

    @property
    def opponent(self) -> str:
        """Returns the opposing player, i.e. W <-> B"""
        return self.opponent_player(self.player)


class SGFNode:
    children: list["SGFNode"]
    properties: dict[str, list[Any]]
    _parent: Optional["SGFNode"]
    _root: Optional["SGFNode"]

    def __init__(
        self,
        parent: Optional["SGFNode"] = None,
        properties: dict[str, Any] | None = None,
        move: Move | None = None,
    ) -> None:
        self.children = []
        self.properties = defaultdict(list)
        if properties:
            for k, v in properties.items():
                self.set_property(k, v)
        self.parent = parent
        if self.parent:
            self.parent.children.append(self)
        if move:
            self.set_property(move.player, move.sgf())

    def __repr__(self) -> str:
        return f"SGFNode({dict(self.properties)})"

    def sgf_properties(self) -> dict[str, list[Any]]:
        """Properties to be written, in insertion order."""
        return copy.deepcopy(self.properties)

    @staticmethod
    def _escape_value(value: Any) -> Any:
        return re.sub(r"([\]\\])", r"\\\1", value) if isinstance(value, str) else value  # escape \ and ]

    @staticmethod
    def _unescape_value(value: Any) -> Any:
        return re.sub(r"\\([\]\\])", r"\1", value) if isinstance(value, str) else value  # unescape \ and ]

    def sgf(self) -> str:
        """Serializes the tree rooted at this node. Single children continue the sequence, multiple children become variations."""

        def node_sgf_str(node: "SGFNode") -> str:
            return ";" + "".join(
                [
                    prop + "".join(f"[{self._escape_value(v)}]" for v in values)
                    for prop, values in node.sgf_properties().items()
                    if values
                ]
            )

        stack: list[str | SGFNode] = [")", self, "("]
        sgf_str = ""
        while stack:
            item = stack.pop()
            if isinstance(item, str):
                sgf_str += item
            else:
                sgf_str += node_sgf_str(item)
                if len(item.children) == 1:
                    stack.append(item.children[0])
                elif item.children:
                    for c in item.children[::-1]:
                        stack.extend([")", c, "("])
        return sgf_str

    def add_list_property(self, property: str, values: list[Any]) -> None:
        """Add some values to the property list."""
        # SiZe[19] ==> SZ[19] etc. for old SGF
        normalized_property = re.sub("[a-z]", "", property)
        self.properties[normalized_property] += values

    def get_list_property(self, property: str, default: Any = None) -> Any:
        """Get the list of values for a property."""
        return self.properties.get(property, default)

    def set_property(self, property: str, value: Any) -> None:
        """Add some values to the property. If not a list, it will be made into a single-value list."""
        if not isinstance(value, list):
            value = [value]
        self.properties[property] = value

    def get_property(self, property: str, default: Any = None) -> Any:
        """Get the first value of the property, typically when exactly one is expected."""
        return self.properties.get(property, [default])[0]

    @property
    def parent(self) -> Optional["SGFNode"]:
        """Returns the parent node"""
        return self._parent

    @parent.setter
    def parent(self, parent_node: Optional["SGFNode"]) -> None:
        self._parent = parent_node
        self._root = None

    @property
    def root(self) -> "SGFNode":
        """Returns the root of the tree, cached for speed"""
        if self._root is None:
            self._root = self.parent.root if self.parent else self
        return self._root

    @property
    def board_size(self) -> tuple[int, int]:
        """Retrieves the root's SZ property, or 19 if missing. Parses it, and returns board size as a tuple x,y"""
        size = str(self.root.get_property("SZ", "19"))
        try:
            if ":" in size:
                x, y = map(int, size.split(":"))
            else:
                x = int(size)
                y = x
        except ValueError:
            raise ParseError(f"Invalid board size SZ[{size}]")
        return x, y

    @property
    def komi(self) -> float:
        """Retrieves the root's KM property, or 6.5 if missing"""
        try:
            km = float(self.root.get_property("KM", 6.5))
        except ValueError:
            km = 6.5

        return km

    @property
    def ruleset(self) -> str:
        """Retrieves the root's RU property, or 'japanese' if missing"""
        return str(self.root.get_property("RU", "japanese"))

    @property
    def moves(self) -> list[Move]:
        """Returns all moves in the node, in property order."""
        board_size = self.board_size
        return [
            Move.from_sgf(move, player=pl, board_size=board_size)
            for pl in self.properties
            if pl in ("B", "W")
            for move in self.get_list_property(pl, [])
        ]

    @property
    def placements(self) -> list[Move]:
        """Returns all setup stones (AB/AW) in the node. Compressed point lists are not expanded."""
        board_size = self.board_size
        return [
            Move.from_sgf(sgf_coord, player=pl, board_size=board_size)
            for pl in PLAYERS
            for sgf_coord in self.get_list_property("A" + pl, [])
            if ":" not in sgf_coord
        ]

    @property
    def move(self) -> Move | None:
        """Returns the first move token of the node, or None if the node has none."""
        moves = self.moves
        return moves[0] if moves else None

    @property
    def empty(self) -> bool:
        """Returns true if node has no children or properties"""
        return not self.children and not self.properties

    @property
    def nodes_in_tree(self) -> list["SGFNode"]:
        """Returns all nodes in the tree rooted at this node"""
        stack: list[SGFNode] = [self]
        nodes: list[SGFNode] = []
        while stack:
            item = stack.pop(0)
            nodes.append(item)
            stack += item.children
        return nodes

    @property
    def main_line(self) -> list["SGFNode"]:
        """Returns this node and its first-child descendants."""
        nodes = [self]
        while nodes[-1].children:
            nodes.append(nodes[-1].children[0])
        return nodes

    @property
    def initial_player(self) -> str:  # player for first node
        root = self.root
        if "PL" in root.properties:  # explicit
            return "B" if self.root.get_property("PL").upper().strip() == "B" else "W"
        elif root.children:  # child exist, use it if not placement
            for child in root.children:
                for color in PLAYERS:
                    if color in child.properties:
                        return color
        # setup with only black stones, like handicap
        if "AB" in root.properties and "AW" not in root.properties:
            return "W"
        else:
            return "B"


class SGF:
    DEFAULT_ENCODING = "UTF-8"

    _NODE_CLASS = SGFNode  # Class used for SGF Nodes, can change this to something that inherits from SGFNode
    SGFPROP_PAT = re.compile(r"\s*(?:\(|\)|;|(\w+)((\s*\[([^\]\\]|\\.)*\])+))", flags=re.DOTALL)
    SGF_PAT = re.compile(r"\(;.*\)", flags=re.DOTALL)

    @classmethod
    def parse_sgf(cls, input_str: str) -> SGFNode:
        """Parse a string as SGF."""
        match = re.search(cls.SGF_PAT, input_str)
        clipped_str = match.group() if match else input_str
        return cls(clipped_str).root

    @classmethod
    def detect_encoding(cls, bin_contents: bytes) -> str:
        """Encoding from the CA property, otherwise guessed by chardet."""
        match = re.search(rb"CA\[(.*?)\]", bin_contents)
        if match:
            return match[1].decode("ascii", errors="ignore")
        detected = chardet.detect(bin_contents[:300])["encoding"]
        # workaround for some compatibility issues for Windows-1252 and GB2312 encodings
        if detected == "Windows-1252" or detected == "GB2312":
            return "GBK"
        return detected or cls.DEFAULT_ENCODING

    @classmethod
    def parse_file(cls, filename: str, encoding: str | None = None) -> SGFNode:
        """Parse a file as SGF, encoding will be detected if not given."""
        with open(filename, "rb") as f:
            bin_contents = f.read()
        encoding = encoding or cls.detect_encoding(bin_contents)
        logger.debug("Decoding %s as %s", filename, encoding)
        try:
            decoded = bin_contents.decode(encoding=encoding, errors="ignore")
        except LookupError:
            decoded = bin_contents.decode(encoding=cls.DEFAULT_ENCODING, errors="ignore")
        return cls.parse_sgf(decoded)

    def __init__(self, contents: str) -> None:
        self.contents = contents
        try:
            self.ix = self.contents.index("(") + 1
        except ValueError:
            raise ParseError(f"Parse error: Expected '(' at start, found {self.contents[:50]}")
        self.root = self._NODE_CLASS()
        self._parse_branch(self.root)

    def _parse_branch(self, current_move: SGFNode) -> None:
        while self.ix < len(self.contents):
            match = re.match(self.SGFPROP_PAT, self.contents[self.ix :])
            if not match:
                break
            self.ix += len(match[0])
            matched_item = match[0].strip()
            if matched_item == ")":
                return
            if matched_item == "(":
                self._parse_branch(self._NODE_CLASS(parent=current_move))
            elif matched_item == ";":
                # ignore ;) for old SGF
                useless = self.ix < len(self.contents) and self.contents[self.ix :].strip() == ")"
                # ignore ; that generate empty nodes
                if not (current_move.empty or useless):
                    current_move = self._NODE_CLASS(parent=current_move)
            else:
                property, value = match[1], match[2].strip()[1:-1]
                values = re.split(r"\]\s*\[", value)
                current_move.add_list_property(property, [SGFNode._unescape_value(v) for v in values])
        if self.ix < len(self.contents):
            raise ParseError(f"Parse Error: unexpected character at {self.contents[self.ix : self.ix + 25]}")
        raise ParseError("Parse Error: expected ')' at end of input.")
