"""Storage backends for per-source summary state."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable
from datetime import datetime
from typing import Any, Protocol, TypeVar, cast

import httpx
from postgrest.exceptions import APIError
from supabase import Client, create_client

from livedigest.summary.models import SourceState, utcnow

T = TypeVar("T")

TABLE = "source_state"


class StoreError(RuntimeError):
    """Raised when the state backend cannot be read or written."""


class SummaryStore(Protocol):
    async def bootstrap(self, keys: Iterable[str]) -> None: ...

    async def get(self, key: str) -> SourceState: ...

    async def put(self, state: SourceState) -> None: ...

    async def all(self) -> list[SourceState]: ...


class InMemorySummaryStore:
    """Process-local store; state is lost on restart."""

    def __init__(self) -> None:
        self._states: dict[str, SourceState] = {}

    async def bootstrap(self, keys: Iterable[str]) -> None:
        for key in keys:
            self._states.setdefault(key, SourceState(key=key))

    async def get(self, key: str) -> SourceState:
        state = self._states.get(key)
        if state is None:
            state = self._states[key] = SourceState(key=key)
        return state

    async def put(self, state: SourceState) -> None:
        self._states[state.key] = state

    async def all(self) -> list[SourceState]:
        return [self._states[k] for k in sorted(self._states)]


def get_supabase_client(url: str, key: str) -> Client:
    """Create and return a Supabase client."""
    return create_client(url, key)


def _to_row(state: SourceState) -> dict[str, Any]:
    return {
        "system_key": state.key,
        "summary": state.running_summary,
        "last_received": state.last_activity.isoformat(),
        "pending_transcript": state.pending_transcript,
    }


def _from_row(row: dict[str, Any]) -> SourceState:
    return SourceState(
        key=row["system_key"],
        running_summary=row.get("summary") or "",
        last_activity=datetime.fromisoformat(row["last_received"]),
        pending_transcript=row.get("pending_transcript") or "",
    )


class SupabaseSummaryStore:
    """Durable store backed by the ``source_state`` table (see supabase/schema.sql).

    The Supabase client is synchronous, so every call runs in a worker thread.
    """

    def __init__(self, client: Client, table: str = TABLE) -> None:
        self.client = client
        self.table = table

    async def bootstrap(self, keys: Iterable[str]) -> None:
        now = utcnow()
        rows = [_to_row(SourceState(key=k, last_activity=now)) for k in keys]
        if not rows:
            return
        await self._run(
            lambda: self.client.table(self.table)
            .upsert(rows, on_conflict="system_key", ignore_duplicates=True)
            .execute()
        )

    async def get(self, key: str) -> SourceState:
        result = await self._run(
            lambda: self.client.table(self.table).select("*").eq("system_key", key).execute()
        )
        # Supabase .data is typed as JSON (broad union); cast to concrete type.
        rows = cast(list[dict[str, Any]], result.data)
        if rows:
            return _from_row(rows[0])
        state = SourceState(key=key)
        await self.put(state)
        return state

    async def put(self, state: SourceState) -> None:
        row = _to_row(state)
        await self._run(
            lambda: self.client.table(self.table).upsert(row, on_conflict="system_key").execute()
        )

    async def all(self) -> list[SourceState]:
        result = await self._run(
            lambda: self.client.table(self.table).select("*").order("system_key").execute()
        )
        return [_from_row(row) for row in cast(list[dict[str, Any]], result.data)]

    async def _run(self, call: Callable[[], T]) -> T:
        try:
            return await asyncio.to_thread(call)
        except (APIError, httpx.HTTPError) as exc:
            raise StoreError(f"Supabase {self.table}: {exc}") from exc
