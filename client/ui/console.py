#!/usr/bin/env python
# Console UI utilities
import os
from typing import Awaitable, List, Optional, Tuple
from rich.console import Console
from rich.prompt import Prompt, Confirm, IntPrompt
from rich.panel import Panel
from rich.text import Text
from rich.table import Table

from client.chat.models import ChatEntry

# Initialize Rich console
console = Console()


def clear_screen():
    """Clear the terminal screen"""
    os.system('cls' if os.name == 'nt' else 'clear')


def show_title(title: str, subtitle: Optional[str] = None, style="bold cyan"):
    """Display a title panel"""
    clear_screen()
    console.print(Panel(Text(title, style=style), expand=False))

    if subtitle:
        console.print(f"\n{subtitle}\n")


def create_menu(title: str, options: List[Tuple[str, str]], subtitle: Optional[str] = None):
    """Display a numbered menu and return the selected option key"""
    show_title(title, subtitle)

    for i, (key, description) in enumerate(options, 1):
        console.print(f"[cyan]{i}.[/cyan] {description}")

    console.print(f"[red]0.[/red] Exit")

    while True:
        choice = IntPrompt.ask("Enter your choice", default=0)

        if choice == 0:
            return None
        elif 1 <= choice <= len(options):
            return options[choice-1][0]
        else:
            console.print("[yellow]Invalid choice. Please try again.[/yellow]")


def display_chats(entries: List[ChatEntry]):
    """Display the conversation list as a table"""
    table = Table(title="Your chats")
    table.add_column("#", style="cyan")
    table.add_column("Partner", style="green")
    table.add_column("Email", style="dim")
    table.add_column("Last message")

    for i, entry in enumerate(entries, 1):
        preview = entry.last_message or ""
        if len(preview) > 50:
            preview = preview[:47] + "..."
        table.add_row(str(i), entry.partner.name, entry.partner.email, preview)

    console.print(table)


async def display_loading(message: str, coro: Awaitable):
    """Display a loading spinner while awaiting a coroutine"""
    with console.status(f"[bold green]{message}[/bold green]"):
        result = await coro
    return result


def show_error(message: str):
    """Display an error message"""
    console.print(f"[bold red]Error:[/bold red] {message}")


def show_success(message: str):
    """Display a success message"""
    console.print(f"[bold green]Success:[/bold green] {message}")


def show_warning(message: str):
    """Display a warning message"""
    console.print(f"[bold yellow]Warning:[/bold yellow] {message}")


def prompt_input(field_name: str, description: str, default: str = "", password: bool = False) -> str:
    """Prompt for user input with consistent formatting"""
    console.print(f"[bold]{description}[/bold]")
    return Prompt.ask(field_name, password=password, default=default)


def confirm_action(prompt: str, default: bool = False) -> bool:
    """Ask for confirmation before performing an action"""
    return Confirm.ask(prompt, default=default)
