"""Tests for ChatView: store, window and realtime feed wired together."""

import pytest

from clubdesk.chat import ChatView
from clubdesk.models.events import Table
from clubdesk.models.message import MessageType
from clubdesk.notify import Level
from clubdesk.transport.realtime import RealtimeManager
from clubdesk.window import MessageWindow

from conftest import CHAT_ID, ME, OTHER, FakeMessagesAPI, make_message


def message_event(n: int, chat_id: str = CHAT_ID, type_: str = "INSERT") -> dict:
    return {
        "type": type_,
        "table": Table.MESSAGES,
        "schema": "public",
        "record": {
            "id": f"live-{n}",
            "chat_id": chat_id,
            "sender_id": OTHER,
            "content": f"live {n}",
            "message_type": "text",
            "created_at": f"2024-05-01T13:00:{n:02d}+00:00",
        },
        "old_record": {},
    }


async def open_view(history_size: int = 100, api=None):
    api = api or FakeMessagesAPI([make_message(n) for n in range(history_size)])
    realtime = RealtimeManager("http://localhost:54321", "token")
    view = ChatView(CHAT_ID, ME, api, window=MessageWindow(container_height=600))
    await view.open(realtime)
    return view, realtime, api


@pytest.mark.asyncio
async def test_open_loads_newest_page_pinned_to_bottom():
    view, realtime, _ = await open_view()
    assert len(view.messages) == 50
    assert view.window.length == 50
    assert view.window.near_bottom
    assert view.visible_messages[-1].id == "m99"
    assert {s.table for s in realtime.subscriptions} == {Table.MESSAGES, Table.MESSAGE_REACTIONS}


@pytest.mark.asyncio
async def test_live_message_auto_scrolls_at_bottom():
    view, realtime, _ = await open_view()
    await realtime.dispatch(message_event(1))
    assert view.messages[-1].id == "live-1"
    assert view.window.length == 51
    assert view.window.near_bottom
    assert not view.window.show_new_messages


@pytest.mark.asyncio
async def test_live_message_counted_as_unseen_when_scrolled_up():
    view, realtime, _ = await open_view()
    await view.handle_scroll(1000)
    await realtime.dispatch(message_event(1))
    assert view.window.scroll_top == 1000
    assert view.window.unseen == 1


@pytest.mark.asyncio
async def test_duplicate_delivery_is_harmless():
    view, realtime, _ = await open_view()
    await realtime.dispatch(message_event(1))
    await realtime.dispatch(message_event(1))
    await realtime.dispatch(message_event(1, type_="UPDATE"))
    assert len(view.messages) == 51
    assert view.window.length == 51


@pytest.mark.asyncio
async def test_edit_of_unloaded_message_is_not_a_new_arrival():
    view, realtime, _ = await open_view()
    await view.handle_scroll(1000)
    await realtime.dispatch(message_event(1, type_="UPDATE"))
    assert len(view.messages) == 50
    assert view.window.length == 50
    assert view.window.unseen == 0


@pytest.mark.asyncio
async def test_other_chats_are_filtered_out():
    view, realtime, _ = await open_view()
    await realtime.dispatch(message_event(1, chat_id="another-chat"))
    assert len(view.messages) == 50


@pytest.mark.asyncio
async def test_delete_event_shrinks_window():
    view, realtime, _ = await open_view()
    await realtime.dispatch({
        "type": "DELETE", "table": Table.MESSAGES, "schema": "public",
        "record": {}, "old_record": {"id": "m99", "chat_id": CHAT_ID},
    })
    assert view.messages[-1].id == "m98"
    assert view.window.length == 49


@pytest.mark.asyncio
async def test_scrolling_to_top_loads_one_older_page():
    view, _, api = await open_view()
    added = await view.handle_scroll(0)
    assert added == 50
    assert len(view.messages) == 100
    assert view.window.length == 100
    assert view.window.scroll_top == 50 * 80
    # still at the same place, so no second load
    assert await view.handle_scroll(view.window.scroll_top - 10) == 0
    assert len(api.fetches) == 2


@pytest.mark.asyncio
async def test_send_scrolls_to_bottom_even_when_scrolled_up():
    view, _, _ = await open_view()
    await view.handle_scroll(1000)
    sent = await view.send("hello")
    assert sent.content == "hello"
    assert view.window.length == 51
    assert view.window.near_bottom


@pytest.mark.asyncio
async def test_send_file():
    view, _, api = await open_view(history_size=0)
    sent = await view.send_file("photo.png", MessageType.IMAGE)
    assert sent.message_type == MessageType.IMAGE
    assert sent.media_url == "https://cdn.test/photo.png"
    assert api.inserts[0]["message_type"] == MessageType.IMAGE


@pytest.mark.asyncio
async def test_failed_upload_is_notified():
    class BrokenUploads(FakeMessagesAPI):
        async def upload_media(self, file_path, message_type):
            raise FileNotFoundError(file_path)

    view, _, api = await open_view(api=BrokenUploads())
    assert await view.send_file("missing.png", MessageType.IMAGE) is None
    assert view.notifier.last.level == Level.ERROR
    assert view.notifier.last.title == "Upload failed"
    assert api.inserts == []


@pytest.mark.asyncio
async def test_close_unsubscribes():
    view, realtime, _ = await open_view()
    await view.close()
    assert realtime.subscriptions == []
