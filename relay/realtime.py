"""
Room-scoped chat over WebSockets.

Frames are JSON objects ``{"event": <name>, "data": <payload>}`` in both
directions. Clients join task or project rooms; a message sent to a room is
persisted to Airtable first and then fanned out to every member. Failures are
reported back to the sending connection as ``<event>Error`` frames.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Protocol

from fastapi import WebSocket, WebSocketDisconnect
from fastapi.concurrency import run_in_threadpool

from relay import tables
from relay.record_store import RecordStore

logger = logging.getLogger(__name__)


class Connection(Protocol):
    async def send_json(self, data: Any) -> None:
        ...


class RoomManager:
    """In-process room membership. Lost on restart; clients rejoin on reconnect."""

    def __init__(self):
        self.rooms: dict[str, set] = {}

    def join(self, room: str, connection: Connection) -> None:
        self.rooms.setdefault(room, set()).add(connection)

    def leave(self, room: str, connection: Connection) -> None:
        members = self.rooms.get(room)
        if not members:
            return
        members.discard(connection)
        if not members:
            del self.rooms[room]

    def leave_all(self, connection: Connection) -> None:
        for room in list(self.rooms):
            self.leave(room, connection)

    def members(self, room: str) -> set:
        return set(self.rooms.get(room, ()))

    async def emit(self, connection: Connection, event: str, data: Any) -> None:
        await connection.send_json({"event": event, "data": data})

    async def broadcast(self, room: str, event: str, data: Any) -> None:
        for connection in self.members(room):
            try:
                await self.emit(connection, event, data)
            except Exception as exc:
                logger.warning("Dropping connection from room %s: %s", room, exc)
                self.leave_all(connection)


class ChatHub:
    """Handles chat events for connected clients."""

    def __init__(self, records: RecordStore, rooms: RoomManager | None = None):
        self.records = records
        self.rooms = rooms or RoomManager()
        self._handlers: dict[str, Callable[[Connection, Any], Awaitable[None]]] = {
            "joinTaskRoom": self.join_room,
            "leaveTaskRoom": self.leave_room,
            "joinProjectRoom": self.join_room,
            "leaveProjectRoom": self.leave_room,
            "sendMessage": self.send_task_message,
            "sendProjectMessage": self.send_project_message,
            "markMessagesAsRead": self.mark_messages_as_read,
        }

    async def handle(self, connection: Connection, event: str, data: Any) -> None:
        handler = self._handlers.get(event)
        if handler is None:
            logger.warning("Ignoring unknown event %s", event)
            return
        try:
            await handler(connection, data)
        except Exception:
            logger.exception("Error handling %s", event)
            await self.rooms.emit(
                connection, f"{event}Error", {"error": _FAILURE_MESSAGES[event]}
            )

    async def join_room(self, connection: Connection, room: Any) -> None:
        self.rooms.join(str(room), connection)
        logger.info("User joined room: %s", room)

    async def leave_room(self, connection: Connection, room: Any) -> None:
        self.rooms.leave(str(room), connection)
        logger.info("User left room: %s", room)

    async def send_task_message(self, connection: Connection, data: dict) -> None:
        task_id = data["taskId"]
        task_record_id = task_id
        if not task_id.startswith("rec"):
            task_record_id = await run_in_threadpool(
                self.records.find_task_record_id, task_id
            )
            if not task_record_id:
                raise LookupError(f"Task with display ID {task_id} not found.")

        message = {
            "fields": {
                "task_id": [task_record_id],
                "message_text": data.get("message"),
                "sender": data.get("sender"),
            }
        }
        created = await run_in_threadpool(
            self.records.create_many, [message], tables.TASK_CHAT
        )
        await self.rooms.broadcast(task_id, "receiveMessage", created[0].as_dict())

    async def send_project_message(self, connection: Connection, data: dict) -> None:
        project_id = data["projectId"]
        message = {
            "fields": {
                "project_id": [project_id],
                "message_text": data.get("message"),
                "sender": data.get("sender"),
            }
        }
        created = await run_in_threadpool(
            self.records.create_many, [message], tables.PROJECT_MESSAGES
        )
        await self.rooms.broadcast(
            project_id, "receiveProjectMessage", created[0].as_dict()
        )

    async def mark_messages_as_read(self, connection: Connection, data: dict) -> None:
        message_ids = (data or {}).get("messageIds") or []
        table_name = (data or {}).get("tableName")
        if not message_ids or not table_name:
            return
        logger.info("Marking %d messages as read in %s", len(message_ids), table_name)
        updates = [{"id": mid, "fields": {"is_read": True}} for mid in message_ids]
        await run_in_threadpool(self.records.update_many, updates, table_name)

    async def serve(self, websocket: WebSocket) -> None:
        await websocket.accept()
        logger.info("a user connected")
        try:
            while True:
                try:
                    frame = await websocket.receive_json()
                except ValueError as exc:
                    logger.warning("Ignoring malformed frame: %s", exc)
                    continue
                if not isinstance(frame, dict) or "event" not in frame:
                    logger.warning("Ignoring frame without an event name")
                    continue
                await self.handle(websocket, frame["event"], frame.get("data"))
        except WebSocketDisconnect:
            logger.info("user disconnected")
        finally:
            self.rooms.leave_all(websocket)


_FAILURE_MESSAGES = {
    "joinTaskRoom": "Failed to join room",
    "leaveTaskRoom": "Failed to leave room",
    "joinProjectRoom": "Failed to join room",
    "leaveProjectRoom": "Failed to leave room",
    "sendMessage": "Failed to send message",
    "sendProjectMessage": "Failed to send project message",
    "markMessagesAsRead": "Failed to mark messages as read",
}
