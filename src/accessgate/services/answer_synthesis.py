"""Answer synthesis for approved queries using OpenAI chat completions."""

import json
from typing import Optional

import structlog
from openai import AsyncOpenAI
from pydantic import ValidationError

from accessgate.llm.prompts.answer_synthesis import (
    ANSWER_SYSTEM_PROMPT,
    ANSWER_USER_PROMPT_TEMPLATE,
)
from accessgate.models.access_request import AccessRequest, DecisionOutcome
from accessgate.models.verdict import AnswerPayload

logger = structlog.get_logger(__name__)


class AnswerSynthesisError(Exception):
    """Raised when an answer cannot be produced."""

    pass


class AnswerSynthesisService:
    """Service for generating answers to approved queries."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        temperature: float = 0.2,
    ):
        """Initialize answer synthesis service.

        Args:
            api_key: OpenAI API key
            model: Chat model to use
            temperature: Temperature for generation (0.0-1.0)
        """
        self.client = AsyncOpenAI(api_key=api_key)
        self.model = model
        self.temperature = temperature

    async def answer(self, request: AccessRequest) -> AnswerPayload:
        """Answer the query of an approved access request.

        Args:
            request: Approved access request

        Returns:
            AnswerPayload with text and optional visualizations

        Raises:
            AnswerSynthesisError: If the request is not approved or generation fails
        """
        if request.decision.outcome != DecisionOutcome.APPROVED:
            raise AnswerSynthesisError("Answers are only produced for approved requests")

        user_prompt = ANSWER_USER_PROMPT_TEMPLATE.format(
            query=request.query_text,
            resource_type=request.resource_context.resource_type or "unspecified",
        )

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                temperature=self.temperature,
                messages=[
                    {"role": "system", "content": ANSWER_SYSTEM_PROMPT},
                    {"role": "user", "content": user_prompt},
                ],
                response_format={"type": "json_object"},
            )
            content = response.choices[0].message.content
            payload = AnswerPayload.model_validate(json.loads(content))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.error(
                "Answer synthesis returned invalid output",
                access_request_id=str(request.id),
                error=str(e),
            )
            raise AnswerSynthesisError("Answer synthesis returned invalid output") from e
        except Exception as e:
            logger.error(
                "Failed to synthesize answer",
                access_request_id=str(request.id),
                error=str(e),
            )
            raise AnswerSynthesisError("Answer synthesis failed") from e

        logger.info(
            "Synthesized answer",
            access_request_id=str(request.id),
            visualization_count=len(payload.visualizations),
            model=self.model,
        )
        return payload


_answer_synthesis_service: Optional[AnswerSynthesisService] = None


def get_answer_synthesis_service() -> AnswerSynthesisService:
    """Get the global answer synthesis service.

    Raises:
        AnswerSynthesisError: If no OpenAI API key is configured
    """
    global _answer_synthesis_service
    from accessgate.config import settings

    if _answer_synthesis_service is None:
        if not settings.openai_api_key:
            raise AnswerSynthesisError("Answer synthesis is not configured")
        _answer_synthesis_service = AnswerSynthesisService(
            api_key=settings.openai_api_key,
            model=settings.openai_answer_model,
        )
    return _answer_synthesis_service
