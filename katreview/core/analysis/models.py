"""Data models for KataGo analysis responses.

Win-rates are kept exactly as the engine reports them. Their perspective
(side to move, or fixed by reportAnalysisWinratesAs in the engine config) is
the engine's choice and is never renormalized here.
"""

from dataclasses import dataclass, field
from typing import List


@dataclass(frozen=True)
class Candidate:
    """One ranked alternative from moveInfos.

    Attributes:
        label: Cell label or pass literal (e.g., "Q16", "pass")
        rank: KataGo "order", 0 = best
        visits: Search visit count
        winrate: Win probability 0.0-1.0
        principal_variation: Predicted continuation starting with this move
    """

    label: str
    rank: int
    visits: int
    winrate: float
    principal_variation: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class AnalysisResponse:
    """KataGo's evaluation of the position right after the move at ``turn_index``.

    The candidates are therefore alternatives for the opponent's reply.

    Attributes:
        turn_index: 0-based index of the move, KataGo "turnNumber" minus one
        root_visits: Total visits at root
        root_winrate: Win probability at root, 0.0-1.0
        candidates: Alternatives ordered by rank
    """

    turn_index: int
    root_visits: int
    root_winrate: float
    candidates: List[Candidate] = field(default_factory=list)

    def top_candidates(self, n: int) -> List[Candidate]:
        return self.candidates[:n]
