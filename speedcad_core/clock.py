"""Admin-facing competition clock.

Wraps the pure transitions in competition.py with persistence:

- every command is computed on a copy, written with one store update, and
  only then adopted as the cached record (a failed write leaves it untouched)
- observers call elapsed()/status, which always derive from the latest
  authoritative record plus the injected wall clock
- reconcile() adopts a record pushed by the change feed; the local ticker
  recomputes from start_time on every tick, so reconciliation never drifts
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, Dict

from .competition import (
    ACTIVE,
    apply_transition,
    compute_elapsed,
    current_status,
    default_competition,
    utcnow,
)
from .errors import ValidationError
from .settings import Settings, get_settings
from .store import COMPETITIONS, ChangeFeed, ObjectStorage, RecordStore, guarded_call
from .validation import InputSanitizer, check_upload

logger = logging.getLogger(__name__)


class CompetitionClock:
    def __init__(
        self,
        store: RecordStore,
        storage: ObjectStorage | None = None,
        *,
        settings: Settings | None = None,
        now: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.storage = storage
        self.settings = settings or get_settings()
        self.now = now
        self._record: Dict[str, Any] = self._default_record()
        self._loaded = False

    def _default_record(self) -> Dict[str, Any]:
        return default_competition(
            self.settings.competition_id, self.settings.default_tolerance
        )

    @property
    def record(self) -> Dict[str, Any]:
        return dict(self._record)

    @property
    def status(self) -> str:
        return current_status(self._record)

    def elapsed(self) -> int:
        return compute_elapsed(self._record, self.now())

    async def load(self) -> Dict[str, Any]:
        """Read the singleton row, creating it on first bootstrap."""
        timeout = self.settings.io_timeout_seconds
        competition_id = self.settings.competition_id
        record = await guarded_call(
            self.store.get_competition(competition_id), timeout, "load competition"
        )
        if record is None:
            logger.info(f"Bootstrapping competition {competition_id}")
            record = await guarded_call(
                self.store.save_competition(self._default_record()),
                timeout,
                "create competition",
            )
        self._record = record
        self._loaded = True
        return self.record

    def reconcile(self, record: Dict[str, Any]) -> None:
        """Adopt an authoritative row (change notification or poll)."""
        if record.get("id", self.settings.competition_id) != self.settings.competition_id:
            return
        self._record = dict(record)
        self._loaded = True

    async def _issue(self, cmd: Dict[str, Any]) -> Dict[str, Any]:
        if not self._loaded:
            # Commands always apply to the stored row, bootstrapping it if needed
            await self.load()
        outcome = apply_transition(
            self._record, cmd, self.now(), default_tolerance=self.settings.default_tolerance
        )
        if not outcome.changes:
            return self.record
        stored = await guarded_call(
            self.store.update_competition(self.settings.competition_id, outcome.changes),
            self.settings.io_timeout_seconds,
            f"{cmd['type'].lower()} competition",
        )
        self._record = stored
        logger.info(f"Competition {cmd['type']}: {outcome.previous_status} → {self.status}")
        return self.record

    async def start(
        self, material: str, reference_weight: float, tolerance: float | None = None
    ) -> Dict[str, Any]:
        return await self._issue(
            {
                "type": "START",
                "material": material,
                "reference_weight": reference_weight,
                "tolerance": tolerance,
            }
        )

    async def pause(self) -> Dict[str, Any]:
        return await self._issue({"type": "PAUSE"})

    async def resume(self) -> Dict[str, Any]:
        return await self._issue({"type": "RESUME"})

    async def stop(self) -> Dict[str, Any]:
        return await self._issue({"type": "STOP"})

    async def reset(self) -> Dict[str, Any]:
        return await self._issue({"type": "RESET"})

    async def update_material(
        self, material: str, reference_weight: float | None = None
    ) -> Dict[str, Any]:
        return await self._issue(
            {"type": "UPDATE_MATERIAL", "material": material, "reference_weight": reference_weight}
        )

    async def upload_drawing(self, filename: str, data: bytes) -> Dict[str, Any]:
        """Upload the reference drawing and attach its public reference."""
        if self.storage is None:
            raise RuntimeError("CompetitionClock was created without object storage")
        try:
            check_upload(
                filename,
                len(data),
                self.settings.max_upload_bytes,
                self.settings.drawing_extensions,
            )
        except ValueError as e:
            raise ValidationError(str(e)) from e
        stamp = int(self.now().timestamp() * 1000)
        path = f"drawings/{stamp}-{InputSanitizer.sanitize_filename(filename)}"
        url = await guarded_call(
            self.storage.upload(self.settings.drawings_bucket, path, data),
            self.settings.upload_timeout_seconds,
            "upload drawing",
        )
        logger.info(f"Drawing uploaded to {url}")
        return await self._issue({"type": "SET_DRAWING", "drawing_url": url})

    def watch(self, feed: ChangeFeed) -> Callable[[], None]:
        """Reconcile on every competition change; returns unsubscribe."""
        return feed.subscribe(COMPETITIONS, self.reconcile)

    async def run_ticker(
        self,
        on_tick: Callable[[int], None],
        stop_event: asyncio.Event,
    ) -> None:
        """Emit elapsed() every tick interval while active until stop_event is set.

        Each tick recomputes from start_time; nothing is incremented locally.
        """
        interval = self.settings.tick_interval_seconds
        while not stop_event.is_set():
            if self.status == ACTIVE:
                on_tick(self.elapsed())
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                continue
