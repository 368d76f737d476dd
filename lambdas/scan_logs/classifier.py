# lambdas/scan_logs/classifier.py
from typing import Iterable, List, Sequence, Tuple

from .models import CategoryKeywordSet, ClassifiedEntry, LogEntry


class KeywordClassifier:
    """
    Tags log entries with the categories whose keywords they contain.

    Matching is plain substring containment on the lowercased text, with no
    tokenisation or word boundaries, so "classic" matches the keyword "ass".
    Categories are not mutually exclusive.
    """

    def __init__(self, categories: Sequence[CategoryKeywordSet]):
        if categories is None:
            raise TypeError("categories must be a sequence, not None")
        self.categories = tuple(categories)

    def categories_for(self, entry: LogEntry) -> Tuple[str, ...]:
        """Returns the matching category names, in configuration order."""
        text = (entry.text or "").lower()
        if not text:
            return ()
        # A name configured twice is reported once.
        return tuple(dict.fromkeys(c.name for c in self.categories if self._matches(text, c)))

    def classify_all(self, entries: Iterable[LogEntry]) -> List[ClassifiedEntry]:
        if entries is None:
            raise TypeError("entries must be an iterable of LogEntry, not None")
        return [ClassifiedEntry(entry=e, categories=self.categories_for(e)) for e in entries]

    @staticmethod
    def _matches(text: str, category: CategoryKeywordSet) -> bool:
        if not any(keyword in text for keyword in category.keywords):
            return False
        if category.qualifiers:
            return any(qualifier in text for qualifier in category.qualifiers)
        return True


def classify(entries: Iterable[LogEntry], categories: Sequence[CategoryKeywordSet]) -> List[ClassifiedEntry]:
    """Classifies every entry against the given keyword sets."""
    return KeywordClassifier(categories).classify_all(entries)
