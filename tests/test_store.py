"""Tests for the summary state stores (Supabase is mocked)."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from postgrest.exceptions import APIError

from livedigest.summary.models import SourceState
from livedigest.summary.store import InMemorySummaryStore, StoreError, SupabaseSummaryStore

WHEN = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class TestInMemorySummaryStore:
    def test_get_creates_empty_state(self) -> None:
        state = asyncio.run(InMemorySummaryStore().get("k"))
        assert state.key == "k"
        assert state.running_summary == ""

    def test_put_replaces_record(self) -> None:
        store = InMemorySummaryStore()

        async def scenario() -> SourceState:
            await store.put(SourceState(key="k", running_summary="A", last_activity=WHEN))
            return await store.get("k")

        assert asyncio.run(scenario()) == SourceState(key="k", running_summary="A", last_activity=WHEN)

    def test_bootstrap_keeps_existing_state(self) -> None:
        store = InMemorySummaryStore()

        async def scenario() -> list[SourceState]:
            await store.put(SourceState(key="b", running_summary="B"))
            await store.bootstrap(["b", "a"])
            return await store.all()

        states = asyncio.run(scenario())
        assert [s.key for s in states] == ["a", "b"]
        assert states[1].running_summary == "B"


def _row(key: str = "k", summary: str = "A") -> dict[str, str]:
    return {
        "system_key": key,
        "summary": summary,
        "last_received": WHEN.isoformat(),
        "pending_transcript": "",
    }


@pytest.fixture
def supabase() -> MagicMock:
    return MagicMock()


class TestSupabaseSummaryStore:
    def test_get_reads_row(self, supabase: MagicMock) -> None:
        table = supabase.table.return_value
        table.select.return_value.eq.return_value.execute.return_value = MagicMock(data=[_row()])

        state = asyncio.run(SupabaseSummaryStore(supabase).get("k"))

        supabase.table.assert_called_with("source_state")
        table.select.return_value.eq.assert_called_with("system_key", "k")
        assert state == SourceState(key="k", running_summary="A", last_activity=WHEN)

    def test_get_missing_row_creates_it(self, supabase: MagicMock) -> None:
        table = supabase.table.return_value
        table.select.return_value.eq.return_value.execute.return_value = MagicMock(data=[])

        state = asyncio.run(SupabaseSummaryStore(supabase).get("new"))

        assert state.key == "new"
        assert state.running_summary == ""
        row = table.upsert.call_args.args[0]
        assert row["system_key"] == "new"
        assert table.upsert.call_args.kwargs["on_conflict"] == "system_key"

    def test_put_upserts_row(self, supabase: MagicMock) -> None:
        table = supabase.table.return_value
        asyncio.run(SupabaseSummaryStore(supabase).put(SourceState(key="k", running_summary="A", last_activity=WHEN)))
        table.upsert.assert_called_once_with(_row(), on_conflict="system_key")

    def test_bootstrap_does_not_overwrite(self, supabase: MagicMock) -> None:
        table = supabase.table.return_value
        asyncio.run(SupabaseSummaryStore(supabase).bootstrap(["a", "b"]))
        rows = table.upsert.call_args.args[0]
        assert [r["system_key"] for r in rows] == ["a", "b"]
        assert table.upsert.call_args.kwargs["ignore_duplicates"] is True

    def test_all_orders_by_key(self, supabase: MagicMock) -> None:
        table = supabase.table.return_value
        table.select.return_value.order.return_value.execute.return_value = MagicMock(
            data=[_row("a", ""), _row("b", "B")]
        )
        states = asyncio.run(SupabaseSummaryStore(supabase).all())
        table.select.return_value.order.assert_called_with("system_key")
        assert [(s.key, s.running_summary) for s in states] == [("a", ""), ("b", "B")]

    def test_api_error_becomes_store_error(self, supabase: MagicMock) -> None:
        table = supabase.table.return_value
        table.upsert.return_value.execute.side_effect = APIError({"message": "permission denied"})
        with pytest.raises(StoreError, match="source_state"):
            asyncio.run(SupabaseSummaryStore(supabase).put(SourceState(key="k")))
