"""
katreview.core.analysis - KataGo analysis responses

- models.py: AnalysisResponse / Candidate dataclasses
- decoder.py: strict decoding of the engine's JSON lines
"""

from katreview.core.analysis.decoder import decode_responses, join_response_lines, sort_responses
from katreview.core.analysis.models import AnalysisResponse, Candidate

__all__ = [
    "AnalysisResponse",
    "Candidate",
    "decode_responses",
    "join_response_lines",
    "sort_responses",
]
