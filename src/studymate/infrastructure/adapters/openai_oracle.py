"""Oracles backed by an OpenAI-compatible chat-completions API."""

import logging

import openai
from openai import AsyncOpenAI
from pydantic import BaseModel, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from studymate.domain.constants import DEFAULT_OPENAI_MODEL
from studymate.domain.errors import OracleFailureError
from studymate.domain.models import Concept, Difficulty, GeneratedQuestion, QuestionType
from studymate.domain.ports import AnswerGrader, QuestionGenerator

logger = logging.getLogger(__name__)

GENERATION_PROMPT = (
    'Generate {count} diverse questions for interleaved studying about the concept "{title}". '
    "Mix question types: multiple choice, short answer, and true/false. "
    "Difficulty: {difficulty}. "
    'Return a JSON object: {{"questions": [{{"question": string, "answer": string, '
    '"type": "multiple_choice"|"short_answer"|"true_false", '
    '"options": string[] (for multiple choice only)}}]}}'
)

GRADING_PROMPT = (
    "You are an AI tutor evaluating student answers. Compare the user's answer with the "
    "correct answer. Be flexible with wording but strict with accuracy. Return only 'true' "
    "if the answer is correct, 'false' otherwise."
)


class GeneratedItem(BaseModel):
    """One question as the model is asked to emit it."""

    question: str = Field(min_length=1)
    answer: str = Field(min_length=1)
    type: QuestionType
    options: list[str] | None = None

    def to_domain(self) -> GeneratedQuestion:
        options = None
        if self.type == QuestionType.MULTIPLE_CHOICE and self.options:
            options = tuple(self.options)
        return GeneratedQuestion(
            question=self.question,
            answer=self.answer,
            question_type=self.type,
            options=options,
        )


class GeneratedBatch(BaseModel):
    questions: list[GeneratedItem]


_GENERATED_OUTPUT = TypeAdapter(GeneratedBatch | list[GeneratedItem])


class OpenAIQuestionGenerator(QuestionGenerator):
    """Generates interleaving questions for a concept with a chat model."""

    def __init__(self, client: AsyncOpenAI, model: str = DEFAULT_OPENAI_MODEL):
        self.client = client
        self.model = model

    async def generate_questions(
        self, concept: Concept, difficulty: Difficulty, count: int
    ) -> list[GeneratedQuestion]:
        tags = ", ".join(concept.tags) if concept.tags else "none"
        messages = [
            {
                "role": "system",
                "content": GENERATION_PROMPT.format(
                    count=count, title=concept.title, difficulty=Difficulty(difficulty).value
                ),
            },
            {
                "role": "user",
                "content": (
                    f"Concept: {concept.title}\n"
                    f"Description: {concept.description or ''}\n"
                    f"Tags: {tags}"
                ),
            },
        ]
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                response_format={"type": "json_object"},
                temperature=0.7,
            )
        except openai.OpenAIError as e:
            logger.error(f"Question generation request for concept {concept.id} failed: {e}")
            raise OracleFailureError(f"Question generation request failed: {e}") from e

        return parse_generated_questions(response.choices[0].message.content)


class OpenAIAnswerGrader(AnswerGrader):
    """Judges free-text answers with a chat model."""

    def __init__(self, client: AsyncOpenAI, model: str = DEFAULT_OPENAI_MODEL):
        self.client = client
        self.model = model

    async def is_answer_correct(
        self, question: str, canonical_answer: str, user_answer: str
    ) -> bool:
        messages = [
            {"role": "system", "content": GRADING_PROMPT},
            {
                "role": "user",
                "content": (
                    f"Question: {question}\n"
                    f"Correct Answer: {canonical_answer}\n"
                    f"User Answer: {user_answer}\n\n"
                    "Is the user's answer correct? Respond with only 'true' or 'false'."
                ),
            },
        ]
        response = await self.client.chat.completions.create(
            model=self.model, messages=messages, temperature=0.1, max_tokens=10
        )
        content = response.choices[0].message.content or ""
        return content.strip().lower() == "true"


def parse_generated_questions(content: str | None) -> list[GeneratedQuestion]:
    """
    Parse model output into GeneratedQuestion objects.

    Accepts either a bare JSON array or an object wrapping it under
    "questions". Options are kept only for multiple choice items.

    Raises:
        OracleFailureError: Content is not JSON or items are malformed.
    """
    try:
        parsed = _GENERATED_OUTPUT.validate_json(content or "")
    except PydanticValidationError as e:
        raise OracleFailureError(
            f"Question generator returned malformed output: {e.error_count()} error(s)"
        ) from e

    items = parsed.questions if isinstance(parsed, GeneratedBatch) else parsed
    return [item.to_domain() for item in items]
