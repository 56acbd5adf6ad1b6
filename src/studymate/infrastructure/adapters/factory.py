"""
Oracle Factory
Centralizes the logic for selecting question and grading oracles.
"""

import logging
from dataclasses import dataclass

from openai import AsyncOpenAI

from studymate.application.config import AppConfig
from studymate.domain.ports import AnswerGrader, QuestionGenerator

from .openai_oracle import OpenAIAnswerGrader, OpenAIQuestionGenerator

logger = logging.getLogger(__name__)


@dataclass
class Oracles:
    """The configured oracles and the API client they share, if any."""

    generator: QuestionGenerator | None = None
    grader: AnswerGrader | None = None
    client: AsyncOpenAI | None = None

    async def aclose(self) -> None:
        if self.client is not None:
            await self.client.close()


def build_oracles(config: AppConfig) -> Oracles:
    """
    Returns the configured oracles.

    Without an API key no oracle is built; the application then refuses to
    build sessions and grades free text by exact match.
    """
    if not config.openai_api_key:
        logger.warning("No OpenAI API key configured: question generation is unavailable")
        return Oracles()

    # Retries are left to the caller
    client = AsyncOpenAI(
        api_key=config.openai_api_key,
        base_url=config.openai_base_url,
        timeout=config.oracle_timeout,
        max_retries=0,
    )
    return Oracles(
        generator=OpenAIQuestionGenerator(client, model=config.openai_model),
        grader=OpenAIAnswerGrader(client, model=config.openai_model),
        client=client,
    )
