"""Tests for change-event matching and the realtime connection manager."""

import pytest

from clubdesk.errors import ConnectionError
from clubdesk.models.events import ChangeType, RealtimeEvent, Table
from clubdesk.transport import realtime as realtime_module
from clubdesk.transport.changes import ChangeEvent, build_subscription, matches, parse_change, parse_filter
from clubdesk.transport.realtime import REALTIME_PATH, RealtimeManager


def event(type_="INSERT", table=Table.MESSAGES, **record) -> ChangeEvent:
    return ChangeEvent(type=type_, table=table, record=record)


class TestFilters:
    def test_parse_filter(self):
        assert parse_filter("chat_id=eq.abc") == ("chat_id", "abc")
        assert parse_filter(None) is None

    @pytest.mark.parametrize("expr", ["chat_id", "chat_id=gt.5", "=eq.x"])
    def test_unsupported_filters(self, expr):
        with pytest.raises(ValueError):
            parse_filter(expr)

    def test_matches_table_event_and_filter(self):
        e = event(chat_id="c1")
        assert matches(e, Table.MESSAGES, ChangeType.ALL, "chat_id=eq.c1")
        assert matches(e, Table.MESSAGES, ChangeType.INSERT, None)
        assert not matches(e, Table.MESSAGES, ChangeType.UPDATE, None)
        assert not matches(e, Table.PROFILES, ChangeType.ALL, None)
        assert not matches(e, Table.MESSAGES, ChangeType.ALL, "chat_id=eq.c2")

    def test_boolean_filter_values(self):
        e = event(table=Table.PROFILES, is_active=True)
        assert matches(e, Table.PROFILES, ChangeType.ALL, "is_active=eq.true")

    def test_delete_matches_on_old_record(self):
        e = ChangeEvent(type="DELETE", table=Table.MESSAGES, old_record={"id": "m1", "chat_id": "c1"})
        assert matches(e, Table.MESSAGES, ChangeType.DELETE, "chat_id=eq.c1")
        assert e.row["id"] == "m1"

    def test_build_subscription(self):
        req = build_subscription(Table.MESSAGES, ChangeType.INSERT, "chat_id=eq.c1")
        assert req["table"] == "messages"
        assert req["event"] == "INSERT"
        assert req["filter"] == "chat_id=eq.c1"
        assert req["schema"] == "public"
        assert req["id"]

    def test_parse_change(self):
        parsed = parse_change({"type": "UPDATE", "table": "messages", "schema": "public", "record": {"id": "m1"}})
        assert parsed.type == ChangeType.UPDATE
        assert parsed.schema_name == "public"
        assert parse_change({"type": "TRUNCATE", "table": "messages"}) is None


class TestDispatch:
    @pytest.mark.asyncio
    async def test_routes_to_matching_subscriptions(self):
        manager = RealtimeManager("http://localhost:54321", "token")
        got_sync, got_async = [], []

        async def async_handler(e):
            got_async.append(e.record["id"])

        await manager.subscribe(Table.MESSAGES, lambda e: got_sync.append(e.record["id"]), filter="chat_id=eq.c1")
        await manager.subscribe(Table.MESSAGES, async_handler, ChangeType.UPDATE)

        await manager.dispatch({"type": "INSERT", "table": "messages", "record": {"id": "m1", "chat_id": "c1"}})
        await manager.dispatch({"type": "UPDATE", "table": "messages", "record": {"id": "m2", "chat_id": "c2"}})
        assert got_sync == ["m1"]
        assert got_async == ["m2"]

    @pytest.mark.asyncio
    async def test_failing_handler_does_not_block_others(self):
        manager = RealtimeManager("http://localhost:54321", "token")
        got = []

        def broken(_e):
            raise RuntimeError("boom")

        await manager.subscribe(Table.MESSAGES, broken)
        await manager.subscribe(Table.MESSAGES, lambda e: got.append(e))
        await manager.dispatch({"type": "INSERT", "table": "messages", "record": {"id": "m1"}})
        assert len(got) == 1

    @pytest.mark.asyncio
    async def test_malformed_events_are_dropped(self):
        manager = RealtimeManager("http://localhost:54321", "token")
        got = []
        await manager.subscribe(Table.MESSAGES, lambda e: got.append(e))
        await manager.dispatch({"table": "messages"})
        assert got == []

    @pytest.mark.asyncio
    async def test_invalid_filter_rejected_at_subscribe(self):
        manager = RealtimeManager("http://localhost:54321", "token")
        with pytest.raises(ValueError):
            await manager.subscribe(Table.MESSAGES, lambda e: None, filter="chat_id=like.x")


class FakeSocketClient:
    """Just enough of socketio.AsyncClient for RealtimeManager."""

    instances: list["FakeSocketClient"] = []
    refuse = False
    send_ready = True

    def __init__(self):
        self.handlers = {}
        self.emitted = []
        self.connected = False
        self.connect_kwargs = None
        FakeSocketClient.instances.append(self)

    def on(self, name):
        def register(fn):
            self.handlers[name] = fn
            return fn
        return register

    def event(self, fn):
        self.handlers[fn.__name__] = fn
        return fn

    async def connect(self, url, **kwargs):
        if FakeSocketClient.refuse:
            raise realtime_module.SocketConnectionError("refused")
        self.connect_kwargs = {"url": url, **kwargs}
        self.connected = True
        if FakeSocketClient.send_ready:
            await self.handlers[RealtimeEvent.READY]()

    async def emit(self, name, data=None):
        self.emitted.append((name, data))

    async def disconnect(self):
        self.connected = False


@pytest.fixture
def fake_socket(monkeypatch):
    FakeSocketClient.instances = []
    FakeSocketClient.refuse = False
    FakeSocketClient.send_ready = True
    monkeypatch.setattr(realtime_module.socketio, "AsyncClient", FakeSocketClient)
    return FakeSocketClient


class TestConnection:
    @pytest.mark.asyncio
    async def test_connect_and_subscribe(self, fake_socket):
        manager = RealtimeManager("http://localhost:54321", "jwt", api_key="anon")
        early = await manager.subscribe(Table.PROFILES, lambda e: None)
        await manager.connect()
        assert manager.connected

        sio = fake_socket.instances[0]
        assert sio.connect_kwargs["socketio_path"] == REALTIME_PATH
        assert sio.connect_kwargs["auth"] == {"token": "jwt", "apikey": "anon"}
        # subscriptions made before connecting are registered on connect
        assert sio.emitted[0] == (RealtimeEvent.SUBSCRIBE, {
            "id": early.id, "schema": "public", "table": "profiles", "event": "*", "filter": None,
        })

        late = await manager.subscribe(Table.MESSAGES, lambda e: None, ChangeType.INSERT, "chat_id=eq.c1")
        assert sio.emitted[-1][1]["id"] == late.id
        await late.unsubscribe()
        assert sio.emitted[-1] == (RealtimeEvent.UNSUBSCRIBE, {"id": late.id})

        await manager.disconnect()
        assert not manager.connected

    @pytest.mark.asyncio
    async def test_pushed_changes_are_dispatched(self, fake_socket):
        manager = RealtimeManager("http://localhost:54321", "jwt")
        got = []
        await manager.subscribe(Table.MESSAGES, lambda e: got.append(e.record["id"]))
        await manager.connect()

        on_change = fake_socket.instances[0].handlers[RealtimeEvent.POSTGRES_CHANGES]
        await on_change({"type": "INSERT", "table": "messages", "record": {"id": "m9"}})
        assert got == ["m9"]

    @pytest.mark.asyncio
    async def test_refused_connection(self, fake_socket):
        fake_socket.refuse = True
        manager = RealtimeManager("http://localhost:54321", "jwt")
        with pytest.raises(ConnectionError):
            await manager.connect()
        assert not manager.connected

    @pytest.mark.asyncio
    async def test_ready_timeout(self, fake_socket):
        fake_socket.send_ready = False
        manager = RealtimeManager("http://localhost:54321", "jwt", ready_timeout=0.01)
        with pytest.raises(ConnectionError):
            await manager.connect()
