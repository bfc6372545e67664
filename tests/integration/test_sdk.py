"""
Integration tests for the ClubDesk SDK against a running backend.

Requires environment variables:
  CLUBDESK_URL          backend base URL
  CLUBDESK_API_KEY      project API key
  CLUBDESK_EMAIL        account email
  CLUBDESK_PASSWORD     account password
  CLUBDESK_CHAT_ID      a chat the account participates in

Run: CLUBDESK_INTEGRATION=1 pytest tests/integration/ -v
"""

import asyncio
import os

import pytest

from clubdesk import AsyncClubDesk
from clubdesk.models.message import DeliveryState

SKIP = not os.environ.get("CLUBDESK_INTEGRATION")
BASE_URL = os.environ.get("CLUBDESK_URL", "http://localhost:54321")
API_KEY = os.environ.get("CLUBDESK_API_KEY", "")
EMAIL = os.environ.get("CLUBDESK_EMAIL", "")
PASSWORD = os.environ.get("CLUBDESK_PASSWORD", "")
CHAT_ID = os.environ.get("CLUBDESK_CHAT_ID", "")

pytestmark = [pytest.mark.integration, pytest.mark.skipif(SKIP, reason="CLUBDESK_INTEGRATION not set")]


async def signed_in_client() -> AsyncClubDesk:
    client = AsyncClubDesk(base_url=BASE_URL, api_key=API_KEY)
    await client.sign_in(EMAIL, PASSWORD)
    return client


class TestConnectionLifecycle:
    @pytest.mark.asyncio
    async def test_connects_and_receives_ready(self):
        client = await signed_in_client()
        try:
            await client.connect()
            assert client.connected
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_rejects_bad_password(self):
        client = AsyncClubDesk(base_url=BASE_URL, api_key=API_KEY)
        try:
            with pytest.raises(Exception):
                await client.sign_in(EMAIL, PASSWORD + "-wrong")
        finally:
            await client.close()


class TestChatRoundTrip:
    @pytest.mark.asyncio
    async def test_send_edit_delete(self):
        client = await signed_in_client()
        try:
            await client.connect()
            view = await client.open_chat(CHAT_ID)

            sent = await view.send("integration test message")
            assert sent.state == DeliveryState.CONFIRMED
            # give the realtime echo a moment; it must not duplicate the message
            await asyncio.sleep(1.0)
            assert sum(1 for m in view.messages if m.id == sent.id) == 1

            assert await view.store.edit(sent.id, "integration test message (edited)")
            assert view.store.get(sent.id).is_edited

            assert await view.delete(sent.id)
            assert view.store.get(sent.id) is None
            await view.close()
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_history_paging(self):
        client = await signed_in_client()
        try:
            view = await client.open_chat(CHAT_ID, follow=False)
            before = len(view.messages)
            if view.store.has_more:
                added = await view.store.load_older()
                assert added > 0
                assert len(view.messages) == before + added
        finally:
            await client.close()
