import logging
import random
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import date, datetime

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict

from studymate.application.answer_checker import AnswerChecker
from studymate.application.concept_service import ConceptService
from studymate.application.config import AppConfig, resolve_config
from studymate.application.progress_tracker import SessionProgressTracker
from studymate.application.review_service import FlashcardReviewService
from studymate.application.session_builder import SessionBuilder
from studymate.consts import VERSION
from studymate.domain.errors import OracleFailureError, StudyError
from studymate.domain.models import (
    Difficulty,
    MasteryStatus,
    QuestionType,
    UserContext,
)
from studymate.domain.ports import (
    AnswerGrader,
    Clock,
    QuestionGenerator,
    StudyRepository,
)
from studymate.infrastructure.adapters.factory import Oracles, build_oracles
from studymate.infrastructure.clock import SystemClock
from studymate.infrastructure.memory_repository import InMemoryStudyRepository

logger = logging.getLogger("studymate.server")


@dataclass
class Services:
    repo: StudyRepository
    concepts: ConceptService
    reviews: FlashcardReviewService
    tracker: SessionProgressTracker
    builder: SessionBuilder | None


# ---------------------------------------------------------------------------
# Request / response models
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    status: str
    version: str
    uptime_seconds: float


class ConceptRequest(BaseModel):
    title: str
    description: str | None = None
    tags: list[str] = []


class ConceptResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: str | None
    tags: list[str]


class ConceptProgressRequest(BaseModel):
    status: MasteryStatus
    confidence: int | None = None


class ConceptProgressResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    concept_id: int
    status: MasteryStatus
    confidence: int | None
    last_reviewed: datetime
    updated_at: datetime


class FlashcardRequest(BaseModel):
    question: str
    answer: str
    concept_id: int | None = None
    tags: list[str] = []


class ReviewRequest(BaseModel):
    quality: int


class MemoryStateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    difficulty: int
    interval: int
    repetitions: int
    ease_factor: float
    next_review_date: date


class FlashcardResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    question: str
    answer: str
    concept_id: int | None
    tags: list[str]
    memory: MemoryStateResponse


class SessionRequest(BaseModel):
    title: str
    description: str | None = None
    concepts: list[int]
    difficulty: Difficulty = Difficulty.MEDIUM


class SessionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: str | None
    concepts: list[int]
    difficulty: Difficulty
    total_questions: int
    questions_answered: int
    correct_answers: int
    is_active: bool
    created_at: datetime
    completed_at: datetime | None


class QuestionResponse(BaseModel):
    id: int
    session_id: int
    concept_id: int
    concept_title: str
    question: str
    question_type: QuestionType
    options: list[str] | None
    order_in_session: int
    user_answer: str | None
    is_correct: bool | None
    time_spent: int | None


class AnswerRequest(BaseModel):
    answer: str
    time_spent: int = 0


class AnswerResponse(BaseModel):
    is_correct: bool
    correct_answer: str
    graded_by_fallback: bool


class ProgressResponse(BaseModel):
    session_id: int
    total_questions: int
    questions_answered: int
    correct_answers: int
    remaining: int
    progress_percent: int
    accuracy_percent: int
    all_answered: bool
    is_active: bool
    completed_at: datetime | None


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_user(x_user_id: str | None = Header(default=None)) -> UserContext:
    """Identity is resolved per request from the X-User-Id header."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return UserContext(user_id=x_user_id.strip())


def _session_out(session) -> SessionResponse:
    return SessionResponse.model_validate(session)


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------


def create_app(
    config: AppConfig | None = None,
    repo: StudyRepository | None = None,
    generator: QuestionGenerator | None = None,
    grader: AnswerGrader | None = None,
    clock: Clock | None = None,
    rng: random.Random | None = None,
) -> FastAPI:
    """
    Build the API with its services wired.

    Oracles not passed explicitly are built from the configuration.
    """
    config = config or resolve_config()
    repo = repo or InMemoryStudyRepository()
    clock = clock or SystemClock()
    if generator is None and grader is None:
        oracles = build_oracles(config)
    else:
        oracles = Oracles(generator=generator, grader=grader)
    generator, grader = oracles.generator, oracles.grader

    builder = None
    if generator is not None:
        builder = SessionBuilder(
            repo,
            generator,
            clock,
            rng=rng,
            questions_per_concept=config.questions_per_concept,
            oracle_timeout=config.oracle_timeout,
        )

    services = Services(
        repo=repo,
        concepts=ConceptService(repo, clock),
        reviews=FlashcardReviewService(repo, clock),
        tracker=SessionProgressTracker(
            repo, clock, AnswerChecker(grader, timeout=config.grading_timeout)
        ),
        builder=builder,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        logger.info(f"studymate server v{VERSION} starting up...")
        yield
        # Shutdown
        logger.info("studymate server shutting down...")
        await oracles.aclose()

    app = FastAPI(
        title="studymate",
        description="Spaced-repetition flashcards and interleaved study sessions.",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.services = services
    app.state.oracles = oracles
    app.state.start_time = time.time()

    @app.exception_handler(StudyError)
    async def study_error_handler(request: Request, exc: StudyError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.error(f"{request.method} {request.url.path} crashed: {exc}", exc_info=exc)
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    @app.get("/health", response_model=HealthResponse)
    async def health_check():
        """
        Simple health check to verify server is reachable.
        """
        return HealthResponse(
            status="ok",
            version=VERSION,
            uptime_seconds=time.time() - app.state.start_time,
        )

    @app.get("/version")
    async def get_version():
        return {"version": VERSION}

    # Concepts

    @app.post("/api/concepts", response_model=ConceptResponse)
    async def create_concept(
        req: ConceptRequest,
        user: UserContext = Depends(get_user),
        svc: Services = Depends(get_services),
    ):
        concept = await svc.concepts.create_concept(user, req.title, req.description, req.tags)
        return ConceptResponse.model_validate(concept)

    @app.get("/api/concepts", response_model=list[ConceptResponse])
    async def list_concepts(
        user: UserContext = Depends(get_user), svc: Services = Depends(get_services)
    ):
        concepts = await svc.concepts.list_concepts(user)
        return [ConceptResponse.model_validate(c) for c in concepts]

    @app.get("/api/concepts/progress", response_model=list[ConceptProgressResponse])
    async def list_concept_progress(
        user: UserContext = Depends(get_user), svc: Services = Depends(get_services)
    ):
        rows = await svc.concepts.list_progress(user)
        return [ConceptProgressResponse.model_validate(p) for p in rows]

    @app.post("/api/concepts/{concept_id}/progress", response_model=ConceptProgressResponse)
    async def record_concept_progress(
        concept_id: int,
        req: ConceptProgressRequest,
        user: UserContext = Depends(get_user),
        svc: Services = Depends(get_services),
    ):
        progress = await svc.concepts.record_progress(
            user, concept_id, req.status, req.confidence
        )
        return ConceptProgressResponse.model_validate(progress)

    # Flashcards

    @app.post("/api/flashcards", response_model=FlashcardResponse)
    async def create_flashcard(
        req: FlashcardRequest,
        user: UserContext = Depends(get_user),
        svc: Services = Depends(get_services),
    ):
        card = await svc.reviews.create_flashcard(
            user, req.question, req.answer, concept_id=req.concept_id, tags=req.tags
        )
        return FlashcardResponse.model_validate(card)

    @app.get("/api/flashcards", response_model=list[FlashcardResponse])
    async def list_flashcards(
        due: bool = False,
        user: UserContext = Depends(get_user),
        svc: Services = Depends(get_services),
    ):
        if due:
            cards = await svc.reviews.due_flashcards(user)
        else:
            cards = await svc.reviews.list_flashcards(user)
        return [FlashcardResponse.model_validate(c) for c in cards]

    @app.patch("/api/flashcards/{flashcard_id}", response_model=FlashcardResponse)
    async def review_flashcard(
        flashcard_id: int,
        req: ReviewRequest,
        user: UserContext = Depends(get_user),
        svc: Services = Depends(get_services),
    ):
        card = await svc.reviews.review(user, flashcard_id, req.quality)
        return FlashcardResponse.model_validate(card)

    # Interleaved sessions

    @app.post("/api/interleaved-sessions", response_model=SessionResponse)
    async def create_session(
        req: SessionRequest,
        user: UserContext = Depends(get_user),
        svc: Services = Depends(get_services),
    ):
        if svc.builder is None:
            raise OracleFailureError("No question generator is configured")
        session, _ = await svc.builder.create_session(
            user, req.title, req.description, req.concepts, req.difficulty
        )
        return _session_out(session)

    @app.get("/api/interleaved-sessions", response_model=list[SessionResponse])
    async def list_sessions(
        user: UserContext = Depends(get_user), svc: Services = Depends(get_services)
    ):
        return [_session_out(s) for s in await svc.tracker.list_sessions(user)]

    @app.get("/api/interleaved-sessions/{session_id}", response_model=SessionResponse)
    async def get_session(
        session_id: int,
        user: UserContext = Depends(get_user),
        svc: Services = Depends(get_services),
    ):
        return _session_out(await svc.tracker.get_session(user, session_id))

    @app.get(
        "/api/interleaved-sessions/{session_id}/questions",
        response_model=list[QuestionResponse],
    )
    async def list_questions(
        session_id: int,
        user: UserContext = Depends(get_user),
        svc: Services = Depends(get_services),
    ):
        views = await svc.tracker.list_questions(user, session_id)
        return [
            QuestionResponse(
                id=v.question.id,
                session_id=v.question.session_id,
                concept_id=v.question.concept_id,
                concept_title=v.concept_title,
                question=v.question.question,
                question_type=v.question.question_type,
                options=list(v.question.options) if v.question.options else None,
                order_in_session=v.question.order_in_session,
                user_answer=v.question.user_answer,
                is_correct=v.question.is_correct,
                time_spent=v.question.time_spent,
            )
            for v in views
        ]

    @app.get(
        "/api/interleaved-sessions/{session_id}/progress", response_model=ProgressResponse
    )
    async def get_progress(
        session_id: int,
        user: UserContext = Depends(get_user),
        svc: Services = Depends(get_services),
    ):
        p = await svc.tracker.progress(user, session_id)
        return ProgressResponse(
            session_id=p.session_id,
            total_questions=p.total_questions,
            questions_answered=p.questions_answered,
            correct_answers=p.correct_answers,
            remaining=p.remaining,
            progress_percent=p.progress_percent,
            accuracy_percent=p.accuracy_percent,
            all_answered=p.all_answered,
            is_active=p.is_active,
            completed_at=p.completed_at,
        )

    async def _answer(
        svc: Services,
        user: UserContext,
        session_id: int | None,
        question_id: int,
        req: AnswerRequest,
    ) -> AnswerResponse:
        result = await svc.tracker.submit_answer(
            user, session_id, question_id, req.answer, req.time_spent
        )
        return AnswerResponse(
            is_correct=result.is_correct,
            correct_answer=result.canonical_answer,
            graded_by_fallback=result.fallback is not None,
        )

    @app.post(
        "/api/interleaved-sessions/{session_id}/questions/{question_id}/answer",
        response_model=AnswerResponse,
    )
    async def submit_session_answer(
        session_id: int,
        question_id: int,
        req: AnswerRequest,
        user: UserContext = Depends(get_user),
        svc: Services = Depends(get_services),
    ):
        return await _answer(svc, user, session_id, question_id, req)

    @app.post("/api/interleaved-questions/{question_id}/answer", response_model=AnswerResponse)
    async def submit_answer(
        question_id: int,
        req: AnswerRequest,
        user: UserContext = Depends(get_user),
        svc: Services = Depends(get_services),
    ):
        return await _answer(svc, user, None, question_id, req)

    @app.post(
        "/api/interleaved-sessions/{session_id}/complete", response_model=SessionResponse
    )
    async def complete_session(
        session_id: int,
        user: UserContext = Depends(get_user),
        svc: Services = Depends(get_services),
    ):
        return _session_out(await svc.tracker.complete_session(user, session_id))

    return app
