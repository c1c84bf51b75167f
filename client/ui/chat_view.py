#!/usr/bin/env python
# Chat screen for one partner: transcript, notices and message input
import asyncio
import logging
from datetime import datetime

from rich.panel import Panel
from rich.text import Text
from rich import box

from client.chat.models import ChatMessage
from client.realtime.channel_client import ChannelClient
from client.realtime.states import ChannelState
from client.ui.console import console, clear_screen

logger = logging.getLogger(__name__)

HELP_TEXT = (
    "Client commands:\n"
    "/exit - Leave the chat\n"
    "/retry - Reconnect after a connection failure\n"
    "/dismiss - Dismiss notices\n"
    "/help - Show this help"
)


def format_time(timestamp: str) -> str:
    try:
        return datetime.fromisoformat(timestamp.replace("Z", "+00:00")).strftime("%H:%M:%S")
    except (ValueError, AttributeError):
        return timestamp or ""


class ChatView:
    """User interface for a two-party property chat"""

    max_display_messages = 30

    def __init__(self, client: ChannelClient):
        self.client = client
        self.exit_requested = False
        self._render_pending = False
        client.transcript.on_change = self.schedule_render

    @property
    def title(self) -> str:
        partner = self.client.partner
        return f"Chat with {partner.name} ({partner.email})"

    def schedule_render(self) -> None:
        """Coalesce transcript changes into one redraw per loop iteration"""
        if self._render_pending:
            return
        self._render_pending = True
        try:
            asyncio.get_running_loop().call_soon(self.render)
        except RuntimeError:
            self.render()

    def _message_line(self, message: ChatMessage) -> Text:
        is_self = message.sender_id == self.client.user.user_id
        line = Text()
        line.append(message.sender, style="blue italic" if is_self else "green")
        line.append(f" ({format_time(message.timestamp)}): ", style="dim")
        line.append(message.text)
        return line

    def render(self) -> None:
        self._render_pending = False
        transcript = self.client.transcript

        clear_screen()
        console.print(Panel(Text(self.title, style="bold cyan"), box=box.ROUNDED, border_style="cyan"))

        if transcript.status:
            console.print(Panel(Text(transcript.status, style="bold red"), border_style="red"))
        elif self.client.state is ChannelState.SUSPENDED:
            console.print("[yellow]Reconnecting...[/yellow]")

        body = Text()
        if transcript.loading:
            body.append("Loading messages...\n", style="dim")
        elif not transcript.messages:
            body.append("No messages yet. Start typing to chat.\n", style="dim")
        else:
            for message in transcript.messages[-self.max_display_messages:]:
                body.append_text(self._message_line(message))
                body.append("\n")
        console.print(Panel(body, title="Messages", box=box.ROUNDED, border_style="blue", padding=(0, 1)))

        for notice in transcript.notices:
            console.print(f"[bold red]![/bold red] {notice}")

        console.print("[bold]Enter your message:[/bold] (type '/help' for commands)")

    async def handle_command(self, command: str) -> None:
        cmd = command.split(maxsplit=1)[0].lower()

        if cmd == '/exit':
            self.exit_requested = True
        elif cmd == '/retry':
            if self.client.state is ChannelState.FAILED:
                await self.client.open()
            else:
                console.print("[yellow]The chat is not in a failed state.[/yellow]")
        elif cmd == '/dismiss':
            self.client.transcript.dismiss()
        elif cmd == '/help':
            console.print(f"[yellow]{HELP_TEXT}[/yellow]")
        else:
            console.print(f"[yellow]Unknown command: {cmd}[/yellow]")

    async def start_chat(self) -> None:
        """Attach to the channel and run the input loop until /exit"""
        self.render()
        opening = asyncio.create_task(self.client.open())

        try:
            while not self.exit_requested:
                # input() blocks, so it runs in a worker thread
                user_input = await asyncio.to_thread(input, "> ")

                if user_input.startswith('/'):
                    await self.handle_command(user_input)
                else:
                    await self.client.send(user_input)
        except (EOFError, KeyboardInterrupt):
            logger.info("Input closed, leaving chat")
        finally:
            await self.client.close()
            if not opening.done():
                opening.cancel()
