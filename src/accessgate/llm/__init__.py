"""
LLM integration module for AccessGate.

Answer synthesis for approved queries lives here; the access decision itself
never calls a language model.
"""

__all__ = ["prompts"]
