# Infrastructure Package
from .clock import FixedClock, SystemClock
from .memory_repository import InMemoryStudyRepository

__all__ = ["InMemoryStudyRepository", "SystemClock", "FixedClock"]
