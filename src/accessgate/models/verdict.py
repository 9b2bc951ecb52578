"""Verdicts returned to the requester and answer payloads.

Verdicts never carry risk signals; a denial exposes only the sanitized
reason text.
"""

from typing import Literal, Optional, Union

from pydantic import BaseModel, Field

from accessgate.models.access_request import ResourceContext


class ApprovedVerdict(BaseModel):
    """The query may proceed to answer synthesis."""

    outcome: Literal["approved"] = "approved"
    proceed_token: str
    access_request_id: str
    ticket_id: str


class DeniedVerdict(BaseModel):
    """The query was refused."""

    outcome: Literal["denied"] = "denied"
    reason: str
    access_request_id: str
    ticket_id: str


Verdict = Union[ApprovedVerdict, DeniedVerdict]


class QuerySubmission(BaseModel):
    """Request body for submitting a query."""

    requester_id: str = Field(..., min_length=1)
    query: str = Field(..., min_length=1, max_length=4000)
    resource_context: ResourceContext = Field(default_factory=ResourceContext)


class AnswerRequest(BaseModel):
    """Request body for redeeming a proceed token."""

    proceed_token: str = Field(..., min_length=1)


class VisualizationPoint(BaseModel):
    """One data point of a chart."""

    name: str
    value: float
    previous_value: Optional[float] = None
    category: Optional[str] = None


class Visualization(BaseModel):
    """Chart data accompanying an answer."""

    type: str = Field(..., description="bar, line, pie, ...")
    title: str
    subtitle: Optional[str] = None
    x_axis_label: Optional[str] = None
    y_axis_label: Optional[str] = None
    data: list[VisualizationPoint] = Field(default_factory=list)


class AnswerPayload(BaseModel):
    """Natural-language answer with optional charts."""

    text_response: str
    visualizations: list[Visualization] = Field(default_factory=list)

    @property
    def has_visualizations(self) -> bool:
        return bool(self.visualizations)
