# dbcoach/lib/websocket.py
from typing import Any, Dict, List, Optional, Set
import asyncio

from fastapi import WebSocket

from dbcoach.core.logging import log
from dbcoach.orchestration.progress import aggregate
from dbcoach.orchestration.state import Session, SessionEvent
from dbcoach.orchestration.store import SessionStore


class ConnectionManager:
    """
    WebSocket connection manager for generation subscribers.

    - Every client watches the single active session.
    - Dead sockets are dropped on the next failed send.
    """

    def __init__(self) -> None:
        self.active_connections: List[WebSocket] = []
        # Guards the connection list across connect/disconnect/broadcast
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self.active_connections.append(websocket)
        log("WS", f"Client connected ({len(self.active_connections)} total)")

    async def disconnect(self, websocket: WebSocket) -> None:
        async with self._lock:
            if websocket in self.active_connections:
                self.active_connections.remove(websocket)

    async def send_json(self, websocket: WebSocket, data: dict) -> None:
        await websocket.send_json(data)

    async def broadcast_json(self, message: dict) -> None:
        """
        Send a JSON message to every connected client.
        Takes a snapshot under lock, then sends outside it.
        """
        async with self._lock:
            connections = list(self.active_connections)

        disconnected: List[WebSocket] = []
        for ws in connections:
            try:
                await ws.send_json(message)
            except Exception as e:
                log("WS", f"Dropping client after failed send: {e}")
                disconnected.append(ws)

        for ws in disconnected:
            await self.disconnect(ws)


def transition_message(session: Optional[Session], event: Optional[SessionEvent]) -> Dict[str, Any]:
    """WebSocket payload for one applied event."""
    return {
        "type": "SESSION_UPDATE",
        "event": type(event).__name__ if event is not None else None,
        "session": session.to_dict() if session else None,
        "progress": aggregate(session).to_dict(),
    }


class StoreBroadcaster:
    """
    Streams every store transition to the connection manager.

    Store listeners are synchronous, so each send is scheduled on the loop.
    Messages go out in dispatch order because each send waits for the
    previous one.
    """

    def __init__(self, store: SessionStore, manager: ConnectionManager):
        self.store = store
        self.manager = manager
        self._unsubscribe = None
        self._last: Optional[asyncio.Task] = None
        self._tasks: Set[asyncio.Task] = set()

    def attach(self) -> "StoreBroadcaster":
        if self._unsubscribe is None:
            self._unsubscribe = self.store.subscribe(self.handle)
        return self

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def handle(self, session: Optional[Session], event: SessionEvent) -> None:
        message = transition_message(session, event)
        task = asyncio.get_running_loop().create_task(self._send_after(self._last, message))
        self._last = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _send_after(self, previous: Optional[asyncio.Task], message: dict) -> None:
        if previous is not None and not previous.done():
            await asyncio.gather(previous, return_exceptions=True)
        await self.manager.broadcast_json(message)

    async def drain(self) -> None:
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
