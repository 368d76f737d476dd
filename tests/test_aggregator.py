# tests/test_aggregator.py
from datetime import datetime, timedelta, timezone

import pytest

from lambdas.scan_logs.aggregator import IncidentAggregator, summarize
from lambdas.scan_logs.models import ClassifiedEntry, LogEntry

BASE = datetime(2024, 6, 17, tzinfo=timezone.utc)


def at(seconds: int, text: str = "msg") -> LogEntry:
    return LogEntry(timestamp=BASE + timedelta(seconds=seconds), source_id="/ecs/api-td", text=text)


def test_groups_by_every_category():
    both = at(10, "disk full error")
    classified = [ClassifiedEntry(both, ("storage", "error")), ClassifiedEntry(at(20), ("error",))]

    summaries = summarize(classified)

    assert summaries["storage"].total_count == 1
    assert summaries["error"].total_count == 2
    assert both in summaries["storage"].recent
    assert both in summaries["error"].recent


def test_recent_entries_are_newest_first():
    classified = [ClassifiedEntry(at(t), ("error",)) for t in (5, 30, 10, 20)]

    recent = summarize(classified)["error"].recent

    assert [e.timestamp for e in recent] == sorted((e.timestamp for e in recent), reverse=True)
    assert recent[0].timestamp == BASE + timedelta(seconds=30)


def test_ties_keep_input_order():
    first, second, third = at(10, "first"), at(10, "second"), at(10, "third")
    classified = [ClassifiedEntry(e, ("error",)) for e in (first, second, third)]

    recent = summarize(classified)["error"].recent

    assert [e.text for e in recent] == ["first", "second", "third"]


def test_total_count_ignores_top_k():
    classified = [ClassifiedEntry(at(t), ("error",)) for t in range(25)]

    for top_k in (0, 1, 10, 25, 100):
        summary = summarize(classified, top_k=top_k)["error"]
        assert summary.total_count == 25
        assert len(summary.recent) == min(25, top_k)


def test_top_k_zero_means_counts_only():
    summary = summarize([ClassifiedEntry(at(1), ("storage",))], top_k=0)["storage"]

    assert summary.total_count == 1
    assert summary.recent == []


def test_default_top_k_is_ten():
    classified = [ClassifiedEntry(at(t), ("error",)) for t in range(12)]

    assert len(summarize(classified)["error"].recent) == 10


def test_uncategorised_entries_are_left_out():
    summaries = summarize([ClassifiedEntry(at(1), ())])

    assert summaries == {}


def test_empty_input_gives_empty_mapping():
    assert summarize([]) == {}


def test_negative_top_k_is_rejected():
    with pytest.raises(ValueError):
        IncidentAggregator(top_k=-1)


def test_none_input_raises_type_error():
    with pytest.raises(TypeError):
        summarize(None)


def test_naive_and_aware_timestamps_sort_together():
    naive = LogEntry(timestamp=(BASE + timedelta(seconds=20)).replace(tzinfo=None), source_id="/ecs/api-td", text="naive")
    classified = [ClassifiedEntry(at(10, "older"), ("error",)), ClassifiedEntry(naive, ("error",)), ClassifiedEntry(at(30, "newer"), ("error",))]

    recent = summarize(classified)["error"].recent

    assert [e.text for e in recent] == ["newer", "naive", "older"]


def test_entries_without_timestamp_are_left_out():
    missing = LogEntry(timestamp=None, source_id="/ecs/api-td", text="no timestamp")
    classified = [ClassifiedEntry(missing, ("error",)), ClassifiedEntry(at(10), ("error",))]

    summaries = summarize(classified)

    assert summaries["error"].total_count == 1
    assert missing not in summaries["error"].recent


def test_repeated_category_counts_entry_once():
    entry = at(10, "disk error")

    summaries = summarize([ClassifiedEntry(entry, ("error", "error"))])

    assert summaries["error"].total_count == 1
    assert summaries["error"].recent == [entry]
