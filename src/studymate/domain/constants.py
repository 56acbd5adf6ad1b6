"""Centralized constants for the studymate application.

All magic numbers and configuration defaults live here so every layer
imports from a single source of truth.
"""

# ---------- SM-2 Scheduling ----------
MIN_QUALITY = 0
MAX_QUALITY = 5
PASSING_QUALITY = 3
DEFAULT_EASE_FACTOR = 2.5
MIN_EASE_FACTOR = 1.3
DEFAULT_INTERVAL = 1
SECOND_INTERVAL = 6

# ---------- Interleaved Sessions ----------
QUESTIONS_PER_CONCEPT = 5
MIN_SESSION_CONCEPTS = 2
MAX_SESSION_CONCEPTS = 10
MAX_TITLE_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 500

# ---------- Oracles / HTTP ----------
ORACLE_TIMEOUT = 30.0  # seconds
GRADING_TIMEOUT = 10.0  # seconds
DEFAULT_OPENAI_BASE_URL = "https://api.openai.com/v1"
DEFAULT_OPENAI_MODEL = "gpt-4o"

# ---------- Concept Mastery ----------
MIN_CONFIDENCE = 1
MAX_CONFIDENCE = 5
