"""Public leaderboard: full recomputation on every change or poll."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, Sequence

from .errors import TransientIOError
from .ranking import LeaderboardEntry, compute_leaderboard
from .settings import Settings, get_settings
from .store import PARTICIPANTS, ChangeFeed, RecordStore, guarded_call

logger = logging.getLogger(__name__)


class Leaderboard:
    def __init__(self, store: RecordStore, *, settings: Settings | None = None) -> None:
        self.store = store
        self.settings = settings or get_settings()
        self.entries: tuple[LeaderboardEntry, ...] = ()
        self._shown_ids: set[str] | None = None

    async def refresh(self) -> tuple[LeaderboardEntry, ...]:
        """Re-read every participant and rank from scratch.

        Entries absent from the previous refresh are flagged is_new; the very
        first refresh flags nothing.
        """
        records: Sequence[Dict[str, Any]] = await guarded_call(
            self.store.list_participants(),
            self.settings.io_timeout_seconds,
            "load leaderboard",
        )
        self.entries = compute_leaderboard(records, previous_ids=self._shown_ids)
        self._shown_ids = {entry.participant_id for entry in self.entries}
        return self.entries

    async def watch(
        self,
        feed: ChangeFeed,
        on_update: Callable[[tuple[LeaderboardEntry, ...]], None],
        stop_event: asyncio.Event,
    ) -> None:
        """Refresh on participant changes, falling back to a fixed poll.

        A transient refresh failure is logged and retried on the next trigger; the loop
        only ends when stop_event is set.
        """
        changed = asyncio.Event()
        unsubscribe = feed.subscribe(PARTICIPANTS, lambda _record: changed.set())
        stop_task = asyncio.ensure_future(stop_event.wait())
        try:
            while not stop_event.is_set():
                changed.clear()
                try:
                    on_update(await self.refresh())
                except TransientIOError as e:
                    logger.warning(f"Leaderboard refresh failed: {e}")
                change_task = asyncio.ensure_future(changed.wait())
                await asyncio.wait(
                    {change_task, stop_task},
                    timeout=self.settings.poll_interval_seconds,
                    return_when=asyncio.FIRST_COMPLETED,
                )
                change_task.cancel()
        finally:
            unsubscribe()
            stop_task.cancel()
