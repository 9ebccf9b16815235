"""
Room registry for live viewer connections

A connection joins the room of each meeting it is watching; events for a meeting
are forwarded only to that meeting's room.
"""

import asyncio
import logging
from typing import Any, Optional, Protocol

from .. import config
from .events import MeetingEvent

logger = logging.getLogger(__name__)


class Connection(Protocol):
    async def send_json(self, data: Any) -> None: ...


class RoomManager:
    def __init__(self, send_timeout: Optional[float] = None):
        self.send_timeout = send_timeout or config.RELAY_SEND_TIMEOUT_SECONDS
        self._rooms: dict[str, set[Connection]] = {}
        self._memberships: dict[Connection, set[str]] = {}
        self._lock = asyncio.Lock()

    async def join(self, connection: Connection, meeting_id: str) -> None:
        async with self._lock:
            self._rooms.setdefault(meeting_id, set()).add(connection)
            self._memberships.setdefault(connection, set()).add(meeting_id)
        logger.info(f"👤 Connection joined meeting_{meeting_id}")

    async def leave(self, connection: Connection, meeting_id: str) -> None:
        async with self._lock:
            self._discard(connection, meeting_id)
        logger.info(f"👋 Connection left meeting_{meeting_id}")

    async def disconnect(self, connection: Connection) -> None:
        """Remove a connection from every room it joined"""
        async with self._lock:
            for meeting_id in list(self._memberships.get(connection, ())):
                self._discard(connection, meeting_id)
            self._memberships.pop(connection, None)

    def _discard(self, connection: Connection, meeting_id: str) -> None:
        members = self._rooms.get(meeting_id)
        if members is not None:
            members.discard(connection)
            if not members:
                del self._rooms[meeting_id]
        joined = self._memberships.get(connection)
        if joined is not None:
            joined.discard(meeting_id)
            if not joined:
                del self._memberships[connection]

    def room_size(self, meeting_id: str) -> int:
        return len(self._rooms.get(meeting_id, ()))

    @property
    def connection_count(self) -> int:
        return len(self._memberships)

    async def broadcast(self, meeting_id: str, message: Any) -> int:
        """
        Send a message to every connection in a room.
        Connections that fail or stall past send_timeout are dropped.
        Returns the delivery count.
        """
        async with self._lock:
            members = list(self._rooms.get(meeting_id, ()))
        if not members:
            return 0

        results = await asyncio.gather(
            *(
                asyncio.wait_for(connection.send_json(message), self.send_timeout)
                for connection in members
            ),
            return_exceptions=True,
        )

        delivered = 0
        for connection, result in zip(members, results):
            if isinstance(result, Exception):
                logger.warning(f"⚠️ Dropping connection in meeting_{meeting_id}: {result}")
                await self.disconnect(connection)
            else:
                delivered += 1
        return delivered

    async def deliver(self, event: MeetingEvent) -> int:
        """Forward a bus event to its meeting's room"""
        delivered = await self.broadcast(
            event.meetingId, {"event": "update", "data": event.room_payload()}
        )
        logger.info(f"📤 Broadcasted to meeting_{event.meetingId}: {event.type.value}")
        return delivered
