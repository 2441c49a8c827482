"""Ordered, first-match-wins rule tables."""

from dataclasses import dataclass
from typing import Callable, Generic, Iterable, Optional, TypeVar

from signal_monitor.core.entities import Classification, SignalCategory

T = TypeVar("T")


@dataclass(frozen=True)
class Rule(Generic[T]):
    """One row of a classification table."""
    
    name: str
    predicate: Callable[[T], bool]
    category: SignalCategory
    confidence: float
    
    def matches(self, subject: T) -> bool:
        return self.predicate(subject)
    
    def to_classification(self) -> Classification:
        return Classification(category=self.category, confidence=self.confidence)


def first_match(rules: Iterable[Rule[T]], subject: T) -> Optional[Rule[T]]:
    """Return the first rule whose predicate accepts the subject."""
    for rule in rules:
        if rule.matches(subject):
            return rule
    return None


def contains_any(*needles: str) -> Callable[[str], bool]:
    """Predicate: lowercase text contains any of the needles."""
    def predicate(text: str) -> bool:
        return any(needle in text for needle in needles)
    
    return predicate
