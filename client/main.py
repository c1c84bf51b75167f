#!/usr/bin/env python
# Main entry point for the Property Chat client
import asyncio
import logging
from typing import Optional

from client.api.base_service import APIError
from client.auth.auth_service import AuthService
from client.chat.conversation_list import ConversationList
from client.chat.models import ChatEntry
from client.session.state import session_state
from client.ui.chat_view import ChatView
from client.ui.console import (
    console, show_title, show_error, show_success, show_warning,
    prompt_input, confirm_action, create_menu, display_chats, display_loading
)
from client.utils.config import config

logger = logging.getLogger(__name__)


async def handle_authentication(auth_service: AuthService, auto_login: bool = True) -> bool:
    """Handle user authentication flow"""
    if auto_login and await display_loading("Restoring session...", auth_service.try_auto_login()):
        show_success(f"Logged in as {session_state.email}")
        return True

    while True:
        show_title("Login", "Enter your account details to log in")
        email = prompt_input("Email", "Enter your email address:")
        password = prompt_input("Password", "Enter your password:", password=True)

        if await display_loading("Logging in...", auth_service.login(email, password)):
            show_success(f"Successfully logged in as {email}")
            return True

        show_error("Login failed. Please check your credentials and try again.")
        if not confirm_action("Would you like to try again?"):
            return False


async def open_chat(conversations: ConversationList, entry: ChatEntry) -> None:
    client = await conversations.activate(entry.partner)
    await ChatView(client).start_chat()
    await conversations.close_active()


async def contact_advertiser(conversations: ConversationList, email: Optional[str] = None) -> None:
    """Start (or resume) a chat with the advertiser of a property"""
    email = email or prompt_input("Email", "Advertiser email address:")
    try:
        entry = await display_loading("Opening chat...", conversations.initiate_chat(email))
    except APIError as e:
        show_error(e.detail)
        await asyncio.sleep(1)
        return
    await open_chat(conversations, entry)


async def choose_chat(conversations: ConversationList) -> None:
    await display_loading("Loading chats...", conversations.refresh_quietly())
    if not conversations.entries:
        show_warning("No chats yet. Contact an advertiser to start one.")
        await asyncio.sleep(1)
        return

    show_title("Your chats")
    display_chats(conversations.entries)
    choice = prompt_input("Chat", "Select a chat number (0 to go back):", default="0")
    try:
        index = int(choice)
    except ValueError:
        show_warning("Please enter a number.")
        return
    if 1 <= index <= len(conversations.entries):
        await open_chat(conversations, conversations.entries[index - 1])


async def main_loop(args) -> None:
    auth_service = AuthService()
    if not await handle_authentication(auth_service, auto_login=not args.no_auto_login):
        console.print("[yellow]Exiting due to authentication failure.[/yellow]")
        return

    conversations = ConversationList(session_state)

    if args.chat_with:
        await contact_advertiser(conversations, args.chat_with)

    options = [
        ("chats", "My chats"),
        ("contact", "Contact an advertiser"),
        ("logout", "Log out"),
    ]

    while True:
        subtitle = f"Logged in as: {session_state.name or session_state.email}"
        choice = create_menu("Property Chat", options, subtitle)

        if choice == "chats":
            await choose_chat(conversations)
        elif choice == "contact":
            await contact_advertiser(conversations)
        elif choice == "logout":
            await conversations.close_active()
            auth_service.logout()
            if not await handle_authentication(auth_service, auto_login=False):
                return
        else:
            break

    await conversations.close_active()


async def run(argv=None):
    """Run the main application"""
    args = config.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    logger.debug(f"API URL: {config.api_url}, WebSocket URL: {config.ws_url}")

    try:
        await main_loop(args)
    finally:
        console.print("[blue]Goodbye![/blue]")


if __name__ == "__main__":
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        console.print("\n[yellow]Application terminated by user[/yellow]")
