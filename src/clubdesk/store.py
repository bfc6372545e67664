"""
Optimistic message store for one chat.

Holds the ordered message list as the user sees it: server-confirmed rows
merged with local sends that the backend has not acknowledged yet.

Lifecycle of a send:

- stage():   a record with a temp_ id and a fresh client_id is appended as PENDING
- commit():  the insert call runs; on success the record takes the server id
             and becomes CONFIRMED, on failure it becomes FAILED and stays
- reconcile(): realtime echoes are matched by server id, then client_id,
             then (rows without a client_id only) by sender/content/type

The list is always sorted by created_at ascending. Every backend failure is
caught here and reported through the Notifier.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from clubdesk.errors import ClubDeskError, ConflictError
from clubdesk.inflight import InFlight
from clubdesk.messages import PAGE_SIZE, MessagesAPI
from clubdesk.models.events import ChangeType, Table
from clubdesk.models.message import TEMP_ID_PREFIX, DeliveryState, MediaRef, Message, MessageType, Reaction
from clubdesk.notify import Notifier
from clubdesk.transport.changes import ChangeEvent

logger = logging.getLogger(__name__)

RECALL_WINDOW = timedelta(minutes=2)
LEGACY_MATCH_TOLERANCE = timedelta(seconds=5)
_TICK = timedelta(microseconds=1)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _aware(ts: datetime) -> datetime:
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


def _sort_key(msg: Message) -> datetime:
    return _aware(msg.created_at)


class MessageStore:
    def __init__(
        self,
        chat_id: str,
        user_id: str,
        api: MessagesAPI,
        notifier: Optional[Notifier] = None,
        page_size: int = PAGE_SIZE,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.chat_id = chat_id
        self.user_id = user_id
        self._api = api
        self._notifier = notifier or Notifier()
        self._page_size = page_size
        self._clock = clock
        self._messages: list[Message] = []
        self._inflight = InFlight()
        self._last_local: Optional[datetime] = None
        self.has_more = False
        self.loading = False
        self.loading_more = False

    # Reading

    @property
    def messages(self) -> list[Message]:
        return list(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def get(self, message_id: str) -> Optional[Message]:
        idx = self._index_of(message_id)
        return self._messages[idx] if idx is not None else None

    def is_busy(self, *key: str) -> bool:
        return tuple(key) in self._inflight

    def _index_of(self, message_id: str) -> Optional[int]:
        for i, msg in enumerate(self._messages):
            if msg.id == message_id:
                return i
        return None

    def _index_of_temp(self, temp_id: str) -> Optional[int]:
        for i, msg in enumerate(self._messages):
            if msg.temp_id == temp_id:
                return i
        return None

    def _index_of_client_id(self, client_id: str) -> Optional[int]:
        for i, msg in enumerate(self._messages):
            if msg.client_id == client_id:
                return i
        return None

    def _index_of_legacy_match(self, incoming: Message) -> Optional[int]:
        for i, msg in enumerate(self._messages):
            if msg.temp_id is None or msg.failed:
                continue
            if (msg.sender_id == incoming.sender_id
                    and (msg.content or "") == (incoming.content or "")
                    and msg.message_type == incoming.message_type
                    and msg.media_url == incoming.media_url
                    and abs(_aware(msg.created_at) - _aware(incoming.created_at)) < LEGACY_MATCH_TOLERANCE):
                return i
        return None

    def _resort(self) -> None:
        self._messages.sort(key=_sort_key)

    def _replace(self, idx: int, msg: Message) -> Message:
        existing = self._messages[idx]
        if not msg.reactions and existing.reactions:
            msg = msg.model_copy(update={"reactions": existing.reactions})
        self._messages[idx] = msg
        self._resort()
        return msg

    def _local_timestamp(self) -> datetime:
        now = _aware(self._clock())
        if self._last_local is not None and now <= self._last_local:
            now = self._last_local + _TICK
        self._last_local = now
        return now

    # Sending

    def stage(
        self,
        content: str = "",
        message_type: MessageType = MessageType.TEXT,
        media: Optional[MediaRef] = None,
    ) -> Optional[Message]:
        """Append a PENDING record immediately. Returns None when there is nothing to send."""
        text = (content or "").strip()
        if not text and media is None:
            self._notifier.warning("Nothing to send", "Type a message or attach a file.")
            return None
        temp_id = f"{TEMP_ID_PREFIX}{uuid.uuid4().hex}"
        msg = Message(
            id=temp_id,
            chat_id=self.chat_id,
            sender_id=self.user_id,
            content=text or None,
            message_type=message_type,
            media_url=media.url if media else None,
            media_type=media.type if media else None,
            media_size=media.size if media else None,
            created_at=self._local_timestamp(),
            client_id=str(uuid.uuid4()),
            state=DeliveryState.PENDING,
            temp_id=temp_id,
        )
        self._messages.append(msg)
        self._resort()
        return msg

    async def commit(self, staged: Message) -> Message:
        """Issue the insert for a staged record and settle its state."""
        temp_id = staged.temp_id or staged.id
        try:
            row = await self._api.insert(
                self.chat_id, self.user_id, staged.content, staged.message_type,
                media=MediaRef(url=staged.media_url, type=staged.media_type, size=staged.media_size)
                if staged.media_url else None,
                client_id=staged.client_id,
            )
        except ClubDeskError as e:
            logger.warning("Send failed in chat %s: %s", self.chat_id, e)
            idx = self._index_of_temp(temp_id)
            if idx is None:
                return staged
            failed = self._messages[idx].model_copy(update={"state": DeliveryState.FAILED, "error": e.message})
            self._messages[idx] = failed
            self._notifier.error("Message failed", "Message failed to send. Please try again.")
            return failed

        idx = self._index_of_temp(temp_id)
        if idx is None:
            # The realtime echo already replaced the temporary record
            echoed = self.get(row.id) if row else None
            return echoed or staged
        if row is None:
            confirmed = self._messages[idx].model_copy(update={"state": DeliveryState.CONFIRMED, "error": None})
            self._messages[idx] = confirmed
            return confirmed
        if self._index_of(row.id) is not None:
            del self._messages[idx]
            return self.get(row.id)  # type: ignore[return-value]
        return self._replace(idx, row.model_copy(update={"state": DeliveryState.CONFIRMED}))

    async def send(
        self,
        content: str = "",
        message_type: MessageType = MessageType.TEXT,
        media: Optional[MediaRef] = None,
        on_staged: Optional[Callable[[Message], None]] = None,
    ) -> Optional[Message]:
        """Optimistic send. A second identical send while the first is in flight is ignored.

        ``on_staged`` runs right after the PENDING record is appended, before the insert call.
        """
        key = ("send", (content or "").strip(), message_type.value, media.url if media else None)
        with self._inflight.hold(key) as claimed:
            if not claimed:
                logger.debug("Ignoring duplicate send in chat %s", self.chat_id)
                self._notifier.info("Already sending", "This message is still being sent")
                return None
            staged = self.stage(content, message_type, media)
            if staged is None:
                return None
            if on_staged:
                on_staged(staged)
            return await self.commit(staged)

    async def retry(self, temp_id: str) -> Optional[Message]:
        """Manually resend a FAILED message with its original client_id."""
        idx = self._index_of_temp(temp_id)
        if idx is None or not self._messages[idx].failed:
            return None
        with self._inflight.hold(("retry", temp_id)) as claimed:
            if not claimed:
                return None
            staged = self._messages[idx].model_copy(update={"state": DeliveryState.PENDING, "error": None})
            self._messages[idx] = staged
            return await self.commit(staged)

    def discard(self, temp_id: str) -> bool:
        """Remove a local-only FAILED message at the user's request."""
        idx = self._index_of_temp(temp_id)
        if idx is None or not self._messages[idx].failed:
            return False
        del self._messages[idx]
        return True

    # Editing

    def _editable(self, message_id: str) -> Optional[Message]:
        msg = self.get(message_id)
        if msg is None:
            self._notifier.warning("Message not found")
            return None
        if msg.state != DeliveryState.CONFIRMED or msg.is_local:
            self._notifier.warning("Message still sending", "Wait until the message is delivered.")
            return None
        if msg.is_recalled:
            self._notifier.warning("Message recalled", "Recalled messages cannot be changed.")
            return None
        return msg

    async def edit(self, message_id: str, new_content: str) -> bool:
        text = (new_content or "").strip()
        if not text:
            self._notifier.warning("Edit rejected", "Message content cannot be empty")
            return False
        msg = self._editable(message_id)
        if msg is None:
            return False
        if text == (msg.content or ""):
            return True
        with self._inflight.hold(("edit", message_id)) as claimed:
            if not claimed:
                return False
            try:
                updated = await self._api.edit(message_id, text)
            except ConflictError as e:
                self._notifier.error("Edit conflict", e.message)
                return False
            except ClubDeskError as e:
                self._notifier.error("Edit failed", e.message)
                return False
        idx = self._index_of(message_id)
        if idx is not None:
            self._replace(idx, updated.model_copy(update={"state": DeliveryState.CONFIRMED}))
        return True

    async def delete(self, message_id: str) -> bool:
        """Delete after the backend confirms. Local-only failed messages are discarded instead."""
        msg = self.get(message_id)
        if msg is None:
            return False
        if msg.is_local:
            return self.discard(msg.temp_id or msg.id)
        with self._inflight.hold(("delete", message_id)) as claimed:
            if not claimed:
                return False
            try:
                await self._api.delete(message_id)
            except ClubDeskError as e:
                self._notifier.error("Delete failed", e.message)
                return False
        self._remove(message_id)
        return True

    async def recall(self, message_id: str) -> bool:
        """Recall one of the user's own messages within RECALL_WINDOW of sending it."""
        msg = self._editable(message_id)
        if msg is None:
            return False
        if msg.sender_id != self.user_id:
            self._notifier.warning("Recall rejected", "You can only recall your own messages.")
            return False
        if _aware(self._clock()) - _aware(msg.created_at) > RECALL_WINDOW:
            self._notifier.warning("Recall rejected", "Messages can only be recalled within 2 minutes.")
            return False
        with self._inflight.hold(("recall", message_id)) as claimed:
            if not claimed:
                return False
            try:
                await self._api.recall(message_id)
            except ClubDeskError as e:
                self._notifier.error("Recall failed", e.message)
                return False
        self._patch(message_id, is_recalled=True)
        return True

    async def archive(self, message_id: str, archived: bool = True) -> bool:
        msg = self._editable(message_id)
        if msg is None:
            return False
        try:
            await self._api.set_archived(message_id, archived)
        except ClubDeskError as e:
            self._notifier.error("Archive failed", e.message)
            return False
        self._patch(message_id, is_archived=archived)
        return True

    def _patch(self, message_id: str, **fields: object) -> None:
        idx = self._index_of(message_id)
        if idx is not None:
            self._messages[idx] = self._messages[idx].model_copy(update=fields)

    def _remove(self, message_id: str) -> bool:
        idx = self._index_of(message_id)
        if idx is None:
            return False
        del self._messages[idx]
        return True

    # Reactions

    async def toggle_reaction(self, message_id: str, emoji: str) -> bool:
        """Add the user's ``emoji`` reaction, or remove it if already present."""
        msg = self.get(message_id)
        if msg is None or msg.is_local:
            return False
        with self._inflight.hold(("reaction", message_id, emoji)) as claimed:
            if not claimed:
                return False
            existing = msg.reaction_by(self.user_id, emoji)
            try:
                if existing:
                    await self._api.remove_reaction(existing.id)
                else:
                    added = await self._api.add_reaction(message_id, self.user_id, emoji)
            except ClubDeskError as e:
                self._notifier.error("Reaction failed", e.message)
                return False
        if existing:
            self._drop_reaction(message_id, existing.id)
        else:
            self._add_reaction(added)
        return True

    def _add_reaction(self, reaction: Reaction) -> None:
        idx = self._index_of(reaction.message_id)
        if idx is None:
            return
        msg = self._messages[idx]
        if any(r.id == reaction.id for r in msg.reactions) or msg.reaction_by(reaction.user_id, reaction.emoji):
            return
        self._messages[idx] = msg.model_copy(update={"reactions": [*msg.reactions, reaction]})

    def _drop_reaction(self, message_id: Optional[str], reaction_id: str) -> None:
        for idx, msg in enumerate(self._messages):
            if message_id and msg.id != message_id:
                continue
            kept = [r for r in msg.reactions if r.id != reaction_id]
            if len(kept) != len(msg.reactions):
                self._messages[idx] = msg.model_copy(update={"reactions": kept})

    # Server truth

    def reconcile(self, incoming: Message) -> Optional[Message]:
        """Merge one server-confirmed record. Safe to apply the same record repeatedly."""
        if incoming.chat_id != self.chat_id:
            return None
        incoming = incoming.model_copy(update={"state": DeliveryState.CONFIRMED, "temp_id": None, "error": None})
        idx = self._index_of(incoming.id)
        if idx is None and incoming.client_id:
            idx = self._index_of_client_id(incoming.client_id)
        if idx is None and not incoming.client_id:
            idx = self._index_of_legacy_match(incoming)
        if idx is not None:
            return self._replace(idx, incoming)
        self._messages.append(incoming)
        self._resort()
        return incoming

    def _is_loaded(self, incoming: Message) -> bool:
        if self._index_of(incoming.id) is not None:
            return True
        return bool(incoming.client_id) and self._index_of_client_id(incoming.client_id) is not None

    def apply_change(self, event: ChangeEvent) -> None:
        """Apply one realtime change for the messages or message_reactions table."""
        if event.table == Table.MESSAGES:
            if event.type == ChangeType.DELETE:
                if event.row.get("id"):
                    self._remove(str(event.row["id"]))
                return
            incoming = Message.from_row(event.record)
            if event.type == ChangeType.UPDATE and not self._is_loaded(incoming):
                # edits to messages outside the loaded range arrive with their page
                return
            self.reconcile(incoming)
        elif event.table == Table.MESSAGE_REACTIONS:
            if event.type == ChangeType.DELETE:
                if event.row.get("id"):
                    self._drop_reaction(event.row.get("message_id"), str(event.row["id"]))
            elif event.type == ChangeType.INSERT:
                self._add_reaction(Reaction.model_validate(event.record))

    # History

    async def load_initial(self) -> None:
        self.loading = True
        try:
            page = await self._api.fetch_page(self.chat_id, 0, self._page_size)
        except ClubDeskError as e:
            self._notifier.error("Failed to load messages", e.message)
            return
        finally:
            self.loading = False
        for msg in page:
            self.reconcile(msg)
        self.has_more = len(page) == self._page_size

    async def load_older(self) -> int:
        """Fetch the next older page. Returns how many messages were added above."""
        if self.loading_more or not self.has_more:
            return 0
        self.loading_more = True
        try:
            offset = sum(1 for m in self._messages if not m.is_local)
            page = await self._api.fetch_page(self.chat_id, offset, self._page_size)
        except ClubDeskError as e:
            self._notifier.error("Failed to load older messages", e.message)
            return 0
        finally:
            self.loading_more = False
        before = len(self._messages)
        for msg in page:
            self.reconcile(msg)
        self.has_more = len(page) == self._page_size
        return len(self._messages) - before
