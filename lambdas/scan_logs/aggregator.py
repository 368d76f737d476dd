# lambdas/scan_logs/aggregator.py
from collections import defaultdict
from typing import Dict, Iterable, List

from .models import ClassifiedEntry, IncidentSummary, LogEntry, resolve_timestamp

DEFAULT_TOP_K = 10


class IncidentAggregator:
    """
    Groups classified entries by category and keeps the most recent ones.
    """

    def __init__(self, top_k: int = DEFAULT_TOP_K):
        if top_k is None or top_k < 0:
            raise ValueError(f"top_k must be a non-negative integer, got {top_k!r}")
        self.top_k = top_k

    def summarize(self, classified: Iterable[ClassifiedEntry]) -> Dict[str, IncidentSummary]:
        """
        Returns one IncidentSummary per category that has at least one entry.

        An entry tagged with two categories is counted in both. The total
        count always reflects the whole group; only the recent list is
        truncated to top_k. Entries without a resolvable timestamp are left
        out, as ingestion would have rejected them.
        """
        if classified is None:
            raise TypeError("classified must be an iterable of ClassifiedEntry, not None")

        groups: Dict[str, List[LogEntry]] = defaultdict(list)
        for item in classified:
            if resolve_timestamp(item.entry.timestamp) is None:
                continue
            for category in dict.fromkeys(item.categories):
                groups[category].append(item.entry)

        summaries = {}
        for category, entries in groups.items():
            # sorted() is stable with reverse=True, so ties keep input order
            newest_first = sorted(entries, key=lambda e: resolve_timestamp(e.timestamp), reverse=True)
            summaries[category] = IncidentSummary(
                category=category,
                total_count=len(entries),
                recent=newest_first[:self.top_k],
            )
        return summaries


def summarize(classified: Iterable[ClassifiedEntry], top_k: int = DEFAULT_TOP_K) -> Dict[str, IncidentSummary]:
    return IncidentAggregator(top_k=top_k).summarize(classified)
