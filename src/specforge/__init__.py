"""Specforge: interview transcripts to facts, hypotheses, PRD and spec."""

__version__ = "0.1.0"
