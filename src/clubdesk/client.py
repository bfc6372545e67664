"""
ClubDesk / AsyncClubDesk — main SDK clients.

One client holds the backend handle (HTTP plus an optional realtime
connection) and hands it to every API class and view model it creates.
"""

import asyncio
from typing import Any, Optional

import httpx

from clubdesk.approvals import UserApprovalQueue
from clubdesk.auth import Auth
from clubdesk.chat import ChatView
from clubdesk.chats import ChatsAPI
from clubdesk.errors import ConnectionError
from clubdesk.health import HealthAPI
from clubdesk.messages import MessagesAPI
from clubdesk.models.chat import Chat
from clubdesk.models.message import Message
from clubdesk.notify import Notifier
from clubdesk.permissions import PermissionManager, PermissionsAPI
from clubdesk.staff import StaffAPI
from clubdesk.transport.http import DEFAULT_BASE_URL, HttpClient
from clubdesk.transport.realtime import RealtimeManager


class AsyncClubDesk:
    """Async ClubDesk client (primary)."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        api_key: str = "",
        access_token: Optional[str] = None,
        user_id: Optional[str] = None,
        transports: Optional[list[str]] = None,
        ready_timeout: float = 15.0,
        notifier: Optional[Notifier] = None,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url
        self._api_key = api_key
        self._access_token = access_token
        self.user_id = user_id
        self._transports = transports
        self._ready_timeout = ready_timeout
        self.notifier = notifier or Notifier()

        self.http = HttpClient(base_url=base_url, api_key=api_key, token=access_token, transport=http_transport)
        self.auth = Auth(self.http)
        self.chats = ChatsAPI(self.http)
        self.messages = MessagesAPI(self.http)
        self.permissions = PermissionsAPI(self.http)
        self.staff = StaffAPI(self.http)
        self.health = HealthAPI(self.http)

        self._realtime: Optional[RealtimeManager] = None

    @property
    def connected(self) -> bool:
        return self._realtime is not None and self._realtime.connected

    @property
    def realtime(self) -> Optional[RealtimeManager]:
        return self._realtime

    async def sign_in(self, email: str, password: str) -> dict[str, Any]:
        session = await self.auth.sign_in(email, password)
        self._access_token = session["access_token"]
        self.user_id = Auth.user_id(session) or self.user_id
        return session

    async def connect(self) -> None:
        """Open the realtime change feed."""
        token = self.http.token or self._access_token
        if not token or not self.user_id:
            raise ConnectionError("access_token and user_id required. Sign in first.")
        if self.connected:
            return
        self._realtime = RealtimeManager(
            base_url=self._base_url,
            token=token,
            api_key=self._api_key,
            transports=self._transports,
            ready_timeout=self._ready_timeout,
        )
        await self._realtime.connect()

    async def disconnect(self) -> None:
        if self._realtime:
            await self._realtime.disconnect()
            self._realtime = None

    async def close(self) -> None:
        await self.disconnect()
        await self.http.close()

    async def open_chat(self, chat_id: str, follow: bool = True) -> ChatView:
        """Load a chat's newest page; follow its live changes when connected."""
        view = ChatView(chat_id, self._require_user(), self.messages, self.notifier)
        await view.open(self._realtime if follow else None)
        return view

    def permission_manager(self, user_id: str) -> PermissionManager:
        return PermissionManager(self.permissions, user_id, self.notifier)

    def approvals(self) -> UserApprovalQueue:
        return UserApprovalQueue(self.http, self.notifier, self.permissions)

    def _require_user(self) -> str:
        if not self.user_id:
            raise ConnectionError("user_id required. Sign in first.")
        return self.user_id


class ClubDesk:
    """Sync wrapper around AsyncClubDesk. Runs the event loop internally."""

    def __init__(self, **kwargs: Any):
        self._async = AsyncClubDesk(**kwargs)
        self._loop = asyncio.new_event_loop()

    def _run(self, coro: Any) -> Any:
        return self._loop.run_until_complete(coro)

    @property
    def user_id(self) -> Optional[str]:
        return self._async.user_id

    @property
    def notifier(self) -> Notifier:
        return self._async.notifier

    def sign_in(self, email: str, password: str) -> dict[str, Any]:
        return self._run(self._async.sign_in(email, password))

    def list_chats(self, include_archived: bool = False) -> list[Chat]:
        return self._run(self._async.chats.list(self._async._require_user(), include_archived))

    def history(self, chat_id: str, offset: int = 0) -> list[Message]:
        """One page of a chat, oldest first."""
        page = self._run(self._async.messages.fetch_page(chat_id, offset))
        return list(reversed(page))

    def send(self, chat_id: str, content: str) -> Optional[Message]:
        view = ChatView(chat_id, self._async._require_user(), self._async.messages, self._async.notifier)
        return self._run(view.send(content))

    def close(self) -> None:
        self._run(self._async.close())
        self._loop.close()
