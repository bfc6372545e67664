"""CLI: clubdesk chat list|history|search|send|forward|create|archive|clear|watch"""

import asyncio
import json
from typing import Optional

import click
from rich.console import Console
from rich.table import Table as RichTable

from clubdesk.models.chat import ChatType
from clubdesk.models.events import Table
from clubdesk.models.message import Message, MessageType

console = Console()


def _get_client():
    from clubdesk.cli.main import _get_client
    return _get_client()


def _run(coro):
    from clubdesk.cli.main import _run
    return _run(coro)


def _render(msg: Message, user_id: Optional[str]) -> str:
    who = "[bold cyan]you[/bold cyan]" if msg.sender_id == user_id else f"[bold]{msg.sender_id[:8]}[/bold]"
    when = msg.created_at.strftime("%H:%M")
    if msg.is_recalled:
        body = "[dim italic]message recalled[/dim italic]"
    elif msg.message_type != MessageType.TEXT:
        body = f"[magenta]<{msg.message_type.value}>[/magenta] {msg.media_url or ''}"
    else:
        body = msg.content or ""
    if msg.is_edited:
        body += " [dim](edited)[/dim]"
    if msg.reactions:
        body += "  " + " ".join(r.emoji for r in msg.reactions)
    return f"[dim]{when}[/dim] {who}: {body}"


@click.group()
def chat():
    """Chats and messages."""


@chat.command("list")
@click.option("--archived", is_flag=True, help="Include archived chats")
@click.option("--json-output", "--json", is_flag=True)
def chat_list(archived: bool, json_output: bool):
    """List your chats."""

    async def _list():
        client = _get_client()
        try:
            chats = await client.chats.list(client.user_id, include_archived=archived)
        finally:
            await client.close()
        if json_output:
            click.echo(json.dumps([c.model_dump(mode="json") for c in chats], indent=2))
            return
        table = RichTable(title=f"Chats ({len(chats)})")
        table.add_column("ID", style="bold")
        table.add_column("Name")
        table.add_column("Type")
        table.add_column("Members", justify="right")
        table.add_column("Updated")
        for c in chats:
            name = c.name + (" [dim](archived)[/dim]" if c.is_archived else "")
            updated = c.updated_at.strftime("%Y-%m-%d %H:%M") if c.updated_at else ""
            table.add_row(c.id, name, c.chat_type.value, str(len(c.chat_participants)), updated)
        console.print(table)

    _run(_list())


@chat.command("history")
@click.argument("chat_id")
@click.option("--page", default=0, type=int, help="0 is the newest page")
def chat_history(chat_id: str, page: int):
    """Show one page of a chat's messages."""

    async def _history():
        client = _get_client()
        try:
            messages = await client.messages.fetch_page(chat_id, offset=page * 50)
        finally:
            await client.close()
        for msg in reversed(messages):
            console.print(_render(msg, client.user_id))

    _run(_history())


@chat.command("search")
@click.argument("query")
@click.option("--chat", "chat_id", default=None, help="Limit the search to one chat")
@click.option("--limit", default=50, type=int)
def chat_search(query: str, chat_id: Optional[str], limit: int):
    """Search messages by content."""

    async def _search():
        client = _get_client()
        try:
            found = await client.messages.search(query, chat_id=chat_id, limit=limit)
        finally:
            await client.close()
        if not found:
            console.print(f"[dim]No messages match \"{query}\".[/dim]")
            return
        for msg in found:
            prefix = "" if chat_id else f"[dim]{msg.chat_id[:8]}[/dim] "
            console.print(prefix + _render(msg, client.user_id))

    _run(_search())


@chat.command("send")
@click.argument("chat_id")
@click.argument("message", required=False, default="")
@click.option("-f", "--file", "file_path", type=click.Path(exists=True, dir_okay=False), default=None)
@click.option("--type", "message_type", type=click.Choice([t.value for t in MessageType]), default=None)
def chat_send(chat_id: str, message: str, file_path: Optional[str], message_type: Optional[str]):
    """Send a message or a file to a chat."""

    async def _send():
        client = _get_client()
        try:
            view = await client.open_chat(chat_id, follow=False)
            if file_path:
                sent = await view.send_file(file_path, MessageType(message_type or MessageType.FILE.value))
            else:
                sent = await view.send(message)
        finally:
            await client.close()
        if sent is not None and not sent.failed:
            console.print(f"[green]Sent[/green] [dim]{sent.id}[/dim]")
        else:
            raise SystemExit(1)

    _run(_send())


@chat.command("forward")
@click.argument("message_id")
@click.argument("chat_ids", nargs=-1, required=True)
def chat_forward(message_id: str, chat_ids: tuple):
    """Forward a message to one or more chats."""

    async def _forward():
        client = _get_client()
        try:
            await client.messages.forward(message_id, list(chat_ids))
        finally:
            await client.close()
        plural = "s" if len(chat_ids) > 1 else ""
        console.print(f"[green]Message forwarded to {len(chat_ids)} chat{plural}.[/green]")

    _run(_forward())


@chat.command("create")
@click.option("--name", default=None)
@click.option("--type", "chat_type", type=click.Choice([t.value for t in ChatType]), default=ChatType.GROUP.value)
@click.option("-p", "--participant", "participants", multiple=True, help="User ID to add (repeatable)")
def chat_create(name: Optional[str], chat_type: str, participants: tuple):
    """Create a chat."""

    async def _create():
        client = _get_client()
        try:
            with console.status("Creating chat..."):
                created = await client.chats.create(client.user_id, list(participants), ChatType(chat_type), name)
        finally:
            await client.close()
        console.print(f"[green]Chat created: {created.id}[/green]")

    _run(_create())


@chat.command("archive")
@click.argument("chat_id")
@click.option("--undo", is_flag=True, help="Unarchive instead")
def chat_archive(chat_id: str, undo: bool):
    """Archive (or unarchive) a chat."""

    async def _archive():
        client = _get_client()
        try:
            if undo:
                await client.chats.unarchive(chat_id)
            else:
                await client.chats.archive(chat_id)
        finally:
            await client.close()
        console.print(f"[green]Chat {chat_id} {'unarchived' if undo else 'archived'}.[/green]")

    _run(_archive())


@chat.command("clear")
@click.argument("chat_id")
@click.confirmation_option(prompt="This permanently deletes every message in the chat. Continue?")
def chat_clear(chat_id: str):
    """Clear a chat's message history."""

    async def _clear():
        client = _get_client()
        try:
            await client.chats.clear_history(chat_id)
        finally:
            await client.close()
        console.print("[green]Chat history cleared successfully.[/green]")

    _run(_clear())


@chat.command("watch")
@click.argument("chat_id")
def chat_watch(chat_id: str):
    """Follow a chat live and send lines typed at the prompt (Ctrl+C to exit)."""

    async def _watch():
        client = _get_client()
        await client.connect()
        view = await client.open_chat(chat_id)
        shown = set()

        def show_new() -> None:
            for msg in view.messages:
                if msg.id not in shown and not msg.is_local:
                    shown.add(msg.id)
                    console.print(_render(msg, client.user_id))

        show_new()
        # registered after the view's own handler, so the store is already updated
        await client.realtime.subscribe(Table.MESSAGES, lambda _e: show_new(), filter=f"chat_id=eq.{chat_id}")
        console.print("[cyan]Type your message (/quit to exit)[/cyan]\n")
        loop = asyncio.get_running_loop()
        try:
            while True:
                line = await loop.run_in_executor(None, input)
                if line.strip().lower() in ("/quit", "/exit"):
                    break
                if line.strip():
                    await view.send(line)
                show_new()
        except (KeyboardInterrupt, EOFError):
            pass
        finally:
            await view.close()
            await client.close()

    _run(_watch())
