"""Notification surfaces: rich console toasts and an in-memory recorder."""

from typing import List, Protocol, Tuple
from loguru import logger
from rich.console import Console


class Notifier(Protocol):
    """Fire-and-forget user notifications."""

    def success(self, message: str) -> None: ...

    def warning(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...


class ConsoleNotifier:
    """Print toasts to the terminal and keep a log line for each."""

    def __init__(self, console: Console = None):
        self.console = console or Console()

    def success(self, message: str):
        logger.info("Notify success: {}", message)
        self.console.print(f"[green]✓ {message}[/green]", highlight=False)

    def warning(self, message: str):
        logger.warning("Notify warning: {}", message)
        self.console.print(f"[yellow]! {message}[/yellow]", highlight=False)

    def error(self, message: str):
        logger.error("Notify error: {}", message)
        self.console.print(f"[red]✗ {message}[/red]", highlight=False)


class RecordingNotifier:
    """Keep notifications in memory, in the order they were raised."""

    def __init__(self):
        self.messages: List[Tuple[str, str]] = []

    def success(self, message: str):
        self.messages.append(("success", message))

    def warning(self, message: str):
        self.messages.append(("warning", message))

    def error(self, message: str):
        self.messages.append(("error", message))

    def of_level(self, level: str) -> List[str]:
        return [message for lvl, message in self.messages if lvl == level]
