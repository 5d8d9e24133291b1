"""External collaborator interfaces: record store, object storage, change feed.

The controllers depend only on these Protocols. The in-memory classes back
the test-suite and local runs; a hosted backend plugs in by implementing the
same coroutine methods.
"""
from __future__ import annotations

import asyncio
import logging
from copy import deepcopy
from typing import Any, Awaitable, Callable, Dict, List, Protocol, TypeVar

from .errors import NotFoundError, TransientIOError

logger = logging.getLogger(__name__)

T = TypeVar("T")

COMPETITIONS = "competitions"
PARTICIPANTS = "participants"

ChangeCallback = Callable[[Dict[str, Any]], None]


class RecordStore(Protocol):
    async def get_competition(self, competition_id: int) -> Dict[str, Any] | None:
        ...

    async def save_competition(self, record: Dict[str, Any]) -> Dict[str, Any]:
        ...

    async def update_competition(
        self, competition_id: int, changes: Dict[str, Any]
    ) -> Dict[str, Any]:
        ...

    async def get_participant(self, email: str) -> Dict[str, Any] | None:
        ...

    async def list_participants(self) -> List[Dict[str, Any]]:
        ...

    async def upsert_participant(self, email: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        ...

    async def update_participant_where_unset(
        self, email: str, guard_field: str, fields: Dict[str, Any]
    ) -> bool:
        """Apply fields only if the row exists and guard_field is unset."""
        ...

    async def update_all_participants(self, fields: Dict[str, Any]) -> int:
        ...

    async def delete_all_participants(self) -> int:
        ...


class ObjectStorage(Protocol):
    async def upload(self, bucket: str, path: str, data: bytes) -> str:
        """Store bytes and return a public reference."""
        ...


class ChangeFeed(Protocol):
    def subscribe(self, collection: str, callback: ChangeCallback) -> Callable[[], None]:
        """Register callback for row changes; returns an unsubscribe function."""
        ...


async def guarded_call(awaitable: Awaitable[T], timeout: float, operation: str) -> T:
    """Await an external call with a deadline.

    Timeouts and transport-level failures become TransientIOError; anything
    else (programming errors, our own CompetitionErrors) propagates as is.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as e:
        logger.warning(f"{operation} timed out after {timeout}s")
        raise TransientIOError(operation, f"{operation} timed out") from e
    except (ConnectionError, OSError) as e:
        logger.warning(f"{operation} failed: {e}")
        raise TransientIOError(operation, f"{operation} failed: {e}") from e


class InMemoryChangeFeed:
    """Synchronous fan-out of row changes to subscribers."""

    def __init__(self) -> None:
        self._subscribers: Dict[str, List[ChangeCallback]] = {}

    def subscribe(self, collection: str, callback: ChangeCallback) -> Callable[[], None]:
        callbacks = self._subscribers.setdefault(collection, [])
        callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in callbacks:
                callbacks.remove(callback)

        return unsubscribe

    def publish(self, collection: str, record: Dict[str, Any]) -> None:
        for callback in list(self._subscribers.get(collection, [])):
            callback(deepcopy(record))


class InMemoryRecordStore:
    """Dict-backed RecordStore; publishes every write to an optional feed."""

    def __init__(self, feed: InMemoryChangeFeed | None = None) -> None:
        self.feed = feed
        self._competitions: Dict[int, Dict[str, Any]] = {}
        self._participants: Dict[str, Dict[str, Any]] = {}

    def _publish(self, collection: str, record: Dict[str, Any]) -> None:
        if self.feed is not None:
            self.feed.publish(collection, record)

    async def get_competition(self, competition_id: int) -> Dict[str, Any] | None:
        record = self._competitions.get(competition_id)
        return deepcopy(record) if record is not None else None

    async def save_competition(self, record: Dict[str, Any]) -> Dict[str, Any]:
        stored = deepcopy(record)
        self._competitions[stored["id"]] = stored
        self._publish(COMPETITIONS, stored)
        return deepcopy(stored)

    async def update_competition(
        self, competition_id: int, changes: Dict[str, Any]
    ) -> Dict[str, Any]:
        stored = self._competitions.get(competition_id)
        if stored is None:
            raise NotFoundError(f"competition {competition_id} does not exist")
        stored.update(deepcopy(changes))
        self._publish(COMPETITIONS, stored)
        return deepcopy(stored)

    async def get_participant(self, email: str) -> Dict[str, Any] | None:
        record = self._participants.get(email)
        return deepcopy(record) if record is not None else None

    async def list_participants(self) -> List[Dict[str, Any]]:
        return [deepcopy(record) for record in self._participants.values()]

    async def upsert_participant(self, email: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        stored = self._participants.setdefault(email, {"email": email})
        stored.update(deepcopy(fields))
        self._publish(PARTICIPANTS, stored)
        return deepcopy(stored)

    async def update_participant_where_unset(
        self, email: str, guard_field: str, fields: Dict[str, Any]
    ) -> bool:
        # No await between check and write, so this is atomic on the event loop.
        stored = self._participants.get(email)
        if stored is None or stored.get(guard_field) is not None:
            return False
        stored.update(deepcopy(fields))
        self._publish(PARTICIPANTS, stored)
        return True

    async def update_all_participants(self, fields: Dict[str, Any]) -> int:
        for stored in self._participants.values():
            stored.update(deepcopy(fields))
            self._publish(PARTICIPANTS, stored)
        return len(self._participants)

    async def delete_all_participants(self) -> int:
        removed = list(self._participants.values())
        self._participants.clear()
        for stored in removed:
            self._publish(PARTICIPANTS, stored)
        return len(removed)


class InMemoryObjectStorage:
    def __init__(self, base_url: str = "memory://") -> None:
        self.base_url = base_url
        self.objects: Dict[str, bytes] = {}

    async def upload(self, bucket: str, path: str, data: bytes) -> str:
        key = f"{bucket}/{path}"
        if key in self.objects:
            # Matches upsert=false on hosted storage
            raise FileExistsError(key)
        self.objects[key] = bytes(data)
        return f"{self.base_url}{key}"
