# Application Package
from .answer_checker import AnswerChecker
from .concept_service import ConceptService
from .due_selector import DueSet, due_cards
from .progress_tracker import SessionProgressTracker
from .review_service import FlashcardReviewService
from .scheduler import schedule
from .session_builder import SessionBuilder

__all__ = [
    "AnswerChecker",
    "ConceptService",
    "DueSet",
    "due_cards",
    "FlashcardReviewService",
    "SessionBuilder",
    "SessionProgressTracker",
    "schedule",
]
