"""Context changes report: diffs between latest and previous document versions."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from evaluation.context_changes import build_context_changes, select_documents

SCOPE = "ehonda-test"
T0 = datetime(2025, 8, 25, 9, 0, tzinfo=timezone.utc)


def test_select_all_when_count_covers_everything():
    assert select_documents(["b", "a"], 10) == ["a", "b"]


def test_seeded_selection_is_reproducible():
    names = [f"doc-{i}.csv" for i in range(20)]
    first = select_documents(names, 5, seed=42)
    assert len(first) == 5
    assert len(set(first)) == 5
    assert first == select_documents(list(reversed(names)), 5, seed=42)


@pytest.mark.asyncio
async def test_reports_diff_for_changed_documents_only(store):
    await store.put("changed.csv", SCOPE, "a\nb\n", T0)
    await store.put("changed.csv", SCOPE, "a\nc\n", T0 + timedelta(days=1))
    await store.put("single.csv", SCOPE, "only\n", T0)

    report = await build_context_changes(store, SCOPE)
    assert report.total_documents == 2
    assert report.checked == ["changed.csv", "single.csv"]
    assert [c.name for c in report.changes] == ["changed.csv"]
    change = report.changes[0]
    assert (change.previous_version, change.latest_version) == (0, 1)
    assert "-b" in change.diff
    assert "+c" in change.diff


@pytest.mark.asyncio
async def test_count_limits_documents_checked(store):
    for i in range(5):
        await store.put(f"doc-{i}.csv", SCOPE, "x", T0)
    report = await build_context_changes(store, SCOPE, count=2, seed=7)
    assert len(report.checked) == 2
    assert report.total_documents == 5


@pytest.mark.asyncio
async def test_empty_scope(store):
    report = await build_context_changes(store, SCOPE)
    assert report.to_dict()["changed"] == 0
    assert report.total_documents == 0
