"""
Realtime change-feed connection manager.

Connection: {baseUrl}/realtime/v1/socket.io/ with auth={token, apikey}.
Waits for the `ready` event before resolving connect(). Every pushed
`postgres_changes` event is re-checked against each subscription's
table/event/filter before its handler runs.
"""

import asyncio
import logging
from typing import Any, Callable, Optional

import socketio
from socketio.exceptions import ConnectionError as SocketConnectionError

from clubdesk.errors import ConnectionError
from clubdesk.models.events import ChangeType, RealtimeEvent
from clubdesk.transport.changes import ChangeEvent, build_subscription, matches, parse_change

REALTIME_PATH = "/realtime/v1/socket.io/"

logger = logging.getLogger(__name__)

ChangeHandler = Callable[[ChangeEvent], Any]


class Subscription:
    __slots__ = ("id", "table", "change", "filter", "handler", "_manager")

    def __init__(self, manager: "RealtimeManager", request: dict[str, Any], handler: ChangeHandler):
        self._manager = manager
        self.id: str = request["id"]
        self.table: str = request["table"]
        self.change = ChangeType(request["event"])
        self.filter: Optional[str] = request["filter"]
        self.handler = handler

    def wants(self, event: ChangeEvent) -> bool:
        return matches(event, self.table, self.change, self.filter)

    async def unsubscribe(self) -> None:
        await self._manager.unsubscribe(self)

    def __repr__(self) -> str:
        return f"Subscription(table={self.table!r}, change={self.change.value!r}, filter={self.filter!r})"


class RealtimeManager:
    def __init__(
        self,
        base_url: str,
        token: str,
        api_key: str = "",
        transports: Optional[list[str]] = None,
        ready_timeout: float = 15.0,
    ):
        self._base_url = base_url
        self._token = token
        self._api_key = api_key
        self._transports = transports or ["websocket"]
        self._ready_timeout = ready_timeout
        self._sio: Optional[socketio.AsyncClient] = None
        self._connected = False
        self._subscriptions: dict[str, Subscription] = {}

    @property
    def connected(self) -> bool:
        return self._connected and self._sio is not None and self._sio.connected

    @property
    def subscriptions(self) -> list[Subscription]:
        return list(self._subscriptions.values())

    async def connect(self) -> None:
        """Connect to the change feed and wait for `ready`."""
        if self._sio and self._sio.connected:
            return

        self._sio = socketio.AsyncClient()
        ready_event = asyncio.Event()

        @self._sio.on(RealtimeEvent.READY)
        async def on_ready(*_args: Any) -> None:
            self._connected = True
            ready_event.set()

        @self._sio.on(RealtimeEvent.POSTGRES_CHANGES)
        async def on_change(data: Any) -> None:
            if isinstance(data, dict):
                await self.dispatch(data)

        @self._sio.event
        async def disconnect(_reason: str = "") -> None:
            self._connected = False

        try:
            await self._sio.connect(
                self._base_url,
                auth={"token": self._token, "apikey": self._api_key},
                transports=self._transports,
                socketio_path=REALTIME_PATH,
            )
        except SocketConnectionError as e:
            self._sio = None
            raise ConnectionError(f"Realtime connection failed: {e}") from e

        try:
            await asyncio.wait_for(ready_event.wait(), timeout=self._ready_timeout)
        except asyncio.TimeoutError:
            await self._sio.disconnect()
            raise ConnectionError(f"Timed out waiting for 'ready' event after {self._ready_timeout}s")

        # Re-register anything subscribed before a reconnect
        for sub in self._subscriptions.values():
            await self._emit_subscribe(sub)

    async def subscribe(
        self,
        table: str,
        handler: ChangeHandler,
        change: ChangeType = ChangeType.ALL,
        filter: Optional[str] = None,
    ) -> Subscription:
        """Subscribe to row changes on ``table``. ``handler`` may be sync or async."""
        sub = Subscription(self, build_subscription(table, change, filter), handler)
        self._subscriptions[sub.id] = sub
        if self.connected:
            await self._emit_subscribe(sub)
        return sub

    async def unsubscribe(self, sub: Subscription) -> None:
        if self._subscriptions.pop(sub.id, None) is None:
            return
        if self.connected:
            await self._sio.emit(RealtimeEvent.UNSUBSCRIBE, {"id": sub.id})  # type: ignore[union-attr]

    async def _emit_subscribe(self, sub: Subscription) -> None:
        await self._sio.emit(RealtimeEvent.SUBSCRIBE, {  # type: ignore[union-attr]
            "id": sub.id,
            "schema": "public",
            "table": sub.table,
            "event": sub.change.value,
            "filter": sub.filter,
        })

    async def dispatch(self, raw: dict[str, Any]) -> None:
        """Route one pushed change to every matching subscription.

        A failing handler is logged and does not stop delivery to the others.
        """
        event = parse_change(raw)
        if event is None:
            logger.warning("Dropping malformed change event: %r", raw)
            return
        for sub in list(self._subscriptions.values()):
            if not sub.wants(event):
                continue
            try:
                result = sub.handler(event)
                if asyncio.iscoroutine(result):
                    await result
            except Exception:
                logger.exception("Change handler failed for %r", sub)

    async def disconnect(self) -> None:
        self._connected = False
        if self._sio:
            await self._sio.disconnect()
            self._sio = None
