"""katreview - annotate Go game records with KataGo win-rate swings."""

__version__ = "0.3.0"
