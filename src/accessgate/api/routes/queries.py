"""Query submission API routes.

Every submitted query passes through the access gate. Approved queries get
a proceed token that can be redeemed for an answer for as long as the
approved record stands; denied queries get only the sanitized reason.
"""

from typing import Union

import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from accessgate.api.dependencies import get_query_gate
from accessgate.models.access_request import DecisionOutcome
from accessgate.models.verdict import (
    AnswerPayload,
    AnswerRequest,
    ApprovedVerdict,
    DeniedVerdict,
    QuerySubmission,
    Visualization,
)
from accessgate.services.answer_synthesis import (
    AnswerSynthesisError,
    AnswerSynthesisService,
    get_answer_synthesis_service,
)
from accessgate.services.database import (
    AccessRequestRepository,
    get_access_request_repository,
)
from accessgate.services.query_gate import QueryGate

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["Queries"])


class RagResponse(BaseModel):
    """Response for a combined submit-and-answer call."""

    text_response: str
    has_visualizations: bool
    visualizations: list[Visualization]
    ticket_id: str


def get_answer_service() -> AnswerSynthesisService:
    """Resolve the answer synthesis service or report it unavailable."""
    try:
        return get_answer_synthesis_service()
    except AnswerSynthesisError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(e),
        )


@router.post("/queries", response_model=Union[ApprovedVerdict, DeniedVerdict])
async def submit_query(
    submission: QuerySubmission,
    gate: QueryGate = Depends(get_query_gate),
) -> Union[ApprovedVerdict, DeniedVerdict]:
    """Submit a query for an access decision.

    Both outcomes return 200; a denial is a verdict, not an error.

    Args:
        submission: Requester, query and resource context
        gate: Query gate

    Returns:
        Approved or denied verdict
    """
    return await gate.submit_query(
        requester_id=submission.requester_id,
        query_text=submission.query,
        resource_context=submission.resource_context,
    )


@router.post("/queries/answer", response_model=AnswerPayload)
async def answer_query(
    body: AnswerRequest,
    requests: AccessRequestRepository = Depends(get_access_request_repository),
    answers: AnswerSynthesisService = Depends(get_answer_service),
) -> AnswerPayload:
    """Redeem a proceed token for an answer.

    Args:
        body: Proceed token
        requests: Access request repository
        answers: Answer synthesis service

    Returns:
        Answer payload

    Raises:
        HTTPException: 403 for unknown or non-approved tokens, 502 if synthesis fails
    """
    request = await requests.get_by_proceed_token(body.proceed_token)
    if request is None or request.decision.outcome != DecisionOutcome.APPROVED:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid proceed token",
        )

    try:
        return await answers.answer(request)
    except AnswerSynthesisError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=str(e),
        )


@router.post("/rag", response_model=RagResponse)
async def rag(
    submission: QuerySubmission,
    gate: QueryGate = Depends(get_query_gate),
    requests: AccessRequestRepository = Depends(get_access_request_repository),
    answers: AnswerSynthesisService = Depends(get_answer_service),
) -> Union[RagResponse, JSONResponse]:
    """Submit a query and, if approved, answer it in one call.

    Args:
        submission: Requester, query and resource context
        gate: Query gate
        requests: Access request repository
        answers: Answer synthesis service

    Returns:
        Answer, or a 403 response carrying the denial reason
    """
    verdict = await gate.submit_query(
        requester_id=submission.requester_id,
        query_text=submission.query,
        resource_context=submission.resource_context,
    )

    if isinstance(verdict, DeniedVerdict):
        return JSONResponse(
            status_code=status.HTTP_403_FORBIDDEN,
            content={
                "error": "Access denied",
                "details": verdict.reason,
                "ticket_id": verdict.ticket_id,
            },
        )

    request = await requests.get_by_proceed_token(verdict.proceed_token)
    if request is None:
        logger.error(
            "Approved request missing after submission",
            access_request_id=verdict.access_request_id,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Approved request could not be loaded",
        )

    try:
        payload = await answers.answer(request)
    except AnswerSynthesisError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=str(e),
        )

    return RagResponse(
        text_response=payload.text_response,
        has_visualizations=payload.has_visualizations,
        visualizations=payload.visualizations,
        ticket_id=verdict.ticket_id,
    )
