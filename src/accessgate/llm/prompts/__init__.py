"""
Prompt templates for LLM operations in AccessGate.

Modules:
    answer_synthesis: Answer and chart generation for approved queries
"""

from . import answer_synthesis

__all__ = ["answer_synthesis"]
