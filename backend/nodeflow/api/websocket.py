"""WebSocket fan-out for run and node status messages.

Every message for a session goes through one queue drained by a single
sender task, so clients see messages in the order they were published.
"""
import asyncio
import json
from typing import Any

from fastapi import WebSocket
from fastapi.encoders import jsonable_encoder

from ..engine.context import StatusCallback
from ..engine.graph import NodeStatus
from ..utils.logger import get_logger

logger = get_logger(__name__)


class _SessionChannel:
    def __init__(self):
        self.sockets: list[WebSocket] = []
        self.queue: asyncio.Queue[str] = asyncio.Queue()
        self.sender = asyncio.create_task(self._drain())

    async def _drain(self):
        while True:
            message = await self.queue.get()
            try:
                for ws in list(self.sockets):
                    try:
                        await ws.send_text(message)
                    except Exception as e:
                        logger.debug(f"Dropping websocket after failed send: {e}")
                        self.sockets.remove(ws)
            finally:
                self.queue.task_done()

    def close(self):
        self.sender.cancel()
        while not self.queue.empty():
            self.queue.get_nowait()
            self.queue.task_done()


class ConnectionManager:
    """Per-session websocket subscribers with an ordered outgoing queue.

    Must be used from the event loop thread; :meth:`make_status_callback`
    bridges callers on other threads.
    """

    def __init__(self):
        self._channels: dict[str, _SessionChannel] = {}

    async def connect(self, session_id: str, websocket: WebSocket):
        channel = self._channels.get(session_id)
        if channel is None:
            channel = self._channels[session_id] = _SessionChannel()
        channel.sockets.append(websocket)
        await websocket.accept()

    def disconnect(self, session_id: str, websocket: WebSocket):
        channel = self._channels.get(session_id)
        if channel is None:
            return
        if websocket in channel.sockets:
            channel.sockets.remove(websocket)
        if not channel.sockets:
            del self._channels[session_id]
            channel.close()

    def publish(self, session_id: str, data: dict[str, Any]):
        """Queue a message; dropped when nobody is subscribed."""
        channel = self._channels.get(session_id)
        if channel is None:
            return
        channel.queue.put_nowait(json.dumps(jsonable_encoder(data)))

    async def flush(self, session_id: str):
        """Wait until every message queued so far has been sent."""
        channel = self._channels.get(session_id)
        if channel is not None:
            await channel.queue.join()

    async def send_to_session(self, session_id: str, data: dict[str, Any]):
        self.publish(session_id, data)
        await self.flush(session_id)

    def make_status_callback(
        self, session_id: str, execution_id: str, loop: asyncio.AbstractEventLoop,
    ) -> StatusCallback:
        """Sync status callback publishing ``node_status`` messages in call order.

        Safe to call from the event loop thread or from a worker thread.
        """
        def callback(node_id: str, status: NodeStatus, message: str | None = None):
            data = {
                "type": "node_status",
                "execution_id": execution_id,
                "node_id": node_id,
                "status": NodeStatus(status).value,
                "message": message,
            }
            try:
                on_loop = asyncio.get_running_loop() is loop
            except RuntimeError:
                on_loop = False
            if on_loop:
                self.publish(session_id, data)
            else:
                loop.call_soon_threadsafe(self.publish, session_id, data)
        return callback


manager = ConnectionManager()
