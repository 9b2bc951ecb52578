"""
Answer synthesis prompts for approved data queries.

This module provides the prompts used to turn an approved natural-language
query into a short answer with optional chart data.

Usage:
    Only called after the access gate has approved a query and the caller has
    redeemed its proceed token.
"""

from typing import Literal, Optional, TypedDict


class VisualizationPointOutput(TypedDict):
    """One chart data point."""

    name: str
    value: float
    previous_value: Optional[float]
    category: Optional[str]


class VisualizationOutput(TypedDict):
    """Chart definition."""

    type: Literal["bar", "line", "pie", "area"]
    title: str
    subtitle: Optional[str]
    x_axis_label: Optional[str]
    y_axis_label: Optional[str]
    data: list[VisualizationPointOutput]


class AnswerSynthesisOutput(TypedDict):
    """Expected output schema for answer synthesis."""

    text_response: str
    visualizations: list[VisualizationOutput]


ANSWER_SYSTEM_PROMPT = """You are a data assistant answering questions about company data.

The user's access to the requested data has already been approved.

Rules:
- Answer concisely in plain language.
- Only include a visualization when the answer contains numbers that are
  easier to read as a chart. Otherwise return an empty list.
- Never invent precise figures you were not given; say what is unknown.

Respond with a JSON object:
{
  "text_response": "<answer>",
  "visualizations": [
    {
      "type": "bar" | "line" | "pie" | "area",
      "title": "<title>",
      "subtitle": "<optional subtitle>",
      "x_axis_label": "<optional>",
      "y_axis_label": "<optional>",
      "data": [{"name": "<label>", "value": <number>}]
    }
  ]
}"""

ANSWER_USER_PROMPT_TEMPLATE = """Question: {query}

Resource type: {resource_type}
"""
