from datetime import date, datetime, timezone

from studymate.domain.ports import Clock


class SystemClock(Clock):
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock(Clock):
    """Clock pinned to a given instant; can be moved forward explicitly."""

    def __init__(self, current: datetime):
        self._current = current

    def now(self) -> datetime:
        return self._current

    def set(self, current: datetime) -> None:
        self._current = current

    def set_today(self, day: date) -> None:
        self._current = datetime.combine(day, self._current.timetz())
