"""
Chat view — one open chat: optimistic store, render window and realtime feed.

Realtime delivery:
- messages INSERT/UPDATE -> MessageStore.reconcile (idempotent)
- messages DELETE        -> removed locally
- message_reactions      -> reaction added/removed on its message
"""

from typing import Optional

from clubdesk.errors import ClubDeskError
from clubdesk.messages import MessagesAPI
from clubdesk.models.events import ChangeType, Table
from clubdesk.models.message import MediaRef, Message, MessageType
from clubdesk.notify import Notifier
from clubdesk.store import MessageStore
from clubdesk.transport.changes import ChangeEvent
from clubdesk.transport.realtime import RealtimeManager, Subscription
from clubdesk.window import MessageWindow


class ChatView:
    def __init__(
        self,
        chat_id: str,
        user_id: str,
        api: MessagesAPI,
        notifier: Optional[Notifier] = None,
        window: Optional[MessageWindow] = None,
        store: Optional[MessageStore] = None,
    ):
        self.chat_id = chat_id
        self.notifier = notifier or Notifier()
        self.store = store or MessageStore(chat_id, user_id, api, self.notifier)
        self.window = window or MessageWindow()
        self._api = api
        self._subscriptions: list[Subscription] = []
        self._known = 0

    @property
    def messages(self) -> list[Message]:
        return self.store.messages

    @property
    def visible_messages(self) -> list[Message]:
        return self.window.slice(self.store.messages)

    async def open(self, realtime: Optional[RealtimeManager] = None) -> None:
        """Load the newest page and start following the chat."""
        await self.store.load_initial()
        self._known = len(self.store)
        self.window.reset(self._known)
        if realtime is not None:
            await self.follow(realtime)

    async def follow(self, realtime: RealtimeManager) -> None:
        chat_filter = f"chat_id=eq.{self.chat_id}"
        self._subscriptions.append(
            await realtime.subscribe(Table.MESSAGES, self.handle_change, ChangeType.ALL, chat_filter)
        )
        self._subscriptions.append(
            await realtime.subscribe(Table.MESSAGE_REACTIONS, self.handle_change, ChangeType.ALL)
        )

    async def close(self) -> None:
        for sub in self._subscriptions:
            await sub.unsubscribe()
        self._subscriptions.clear()

    def _sync_window(self) -> None:
        """Tell the window about messages that appeared or vanished below."""
        delta = len(self.store) - self._known
        self._known = len(self.store)
        if delta > 0:
            self.window.on_appended(delta)
        elif delta < 0:
            self.window.on_removed(-delta)

    def handle_change(self, event: ChangeEvent) -> None:
        self.store.apply_change(event)
        self._sync_window()

    async def handle_scroll(self, scroll_top: float) -> int:
        """Feed a scroll position; loads one older page when the top is reached."""
        if not self.window.on_scroll(scroll_top, self.store.has_more, self.store.loading_more):
            return 0
        added = await self.store.load_older()
        self._known += added
        self.window.on_prepended(added)
        return added

    async def send(self, content: str = "", message_type: MessageType = MessageType.TEXT,
                   media: Optional[MediaRef] = None) -> Optional[Message]:
        """Optimistic send; the user's own message always scrolls into view."""

        def staged(_msg: Message) -> None:
            self._sync_window()
            self.window.scroll_to_bottom()

        result = await self.store.send(content, message_type, media, on_staged=staged)
        self._sync_window()
        return result

    async def retry(self, temp_id: str) -> Optional[Message]:
        result = await self.store.retry(temp_id)
        self._sync_window()
        return result

    async def send_file(self, file_path: str, message_type: MessageType) -> Optional[Message]:
        """Upload a file to storage, then send it as a media message."""
        try:
            media = await self._api.upload_media(file_path, message_type)
        except (ClubDeskError, OSError) as e:
            self.notifier.error("Upload failed", str(e))
            return None
        return await self.send("", message_type, media)

    async def delete(self, message_id: str) -> bool:
        ok = await self.store.delete(message_id)
        self._sync_window()
        return ok
