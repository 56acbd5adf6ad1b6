"""
Due-card selection.

Filters flashcards whose review date has arrived and orders them
reproducibly: by review date, then by card id.
"""

from collections.abc import Iterable, Iterator
from datetime import date

from studymate.domain.models import Flashcard


class DueSet:
    """
    Lazy, restartable view of the due cards in a collection.

    Every iteration re-evaluates the filter against the source, so it can be
    consumed any number of times. Cards are never mutated.
    """

    def __init__(self, cards: Iterable[Flashcard], today: date):
        # One-shot iterators are captured so the view stays restartable
        if isinstance(cards, Iterator):
            cards = tuple(cards)
        self._cards = cards
        self._today = today

    @property
    def today(self) -> date:
        return self._today

    def __iter__(self) -> Iterator[Flashcard]:
        due = [card for card in self._cards if card.memory.is_due(self._today)]
        due.sort(key=lambda card: (card.memory.next_review_date, card.id))
        return iter(due)

    def __len__(self) -> int:
        return sum(1 for card in self._cards if card.memory.is_due(self._today))

    def __bool__(self) -> bool:
        return any(card.memory.is_due(self._today) for card in self._cards)


def due_cards(cards: Iterable[Flashcard], today: date) -> DueSet:
    """Cards with `next_review_date <= today`, oldest due date first."""
    return DueSet(cards, today)
