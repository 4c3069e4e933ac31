import logging
from typing import Any, Sequence

from rich.console import Console
from rich.box import HEAVY, ROUNDED, SIMPLE
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from playgov.domain.interfaces.user_interface import UserInterface

logger = logging.getLogger(__name__)


class ConsoleDisplay(UserInterface):
    """Concrete implementation of UserInterface using the rich library for console output."""

    def __init__(self, console: Console = None):
        """Initializes the rich Console."""
        self.console = console or Console()

    def display_output(self, output: str, **kwargs: Any) -> None:
        """Displays output text inside a rounded panel.

        Args:
            output: The text to display.
            **kwargs: Additional arguments including:
                - title: Panel title (default: "Result")
        """
        title = kwargs.get("title", "Result")
        panel = Panel(
            Text(str(output)),
            title=f"[bold white]{title}[/bold white]",
            title_align="left",
            border_style="blue",
            box=ROUNDED,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_table(
        self,
        title: str,
        columns: Sequence[str],
        rows: Sequence[Sequence[Any]],
        **kwargs: Any,
    ) -> None:
        """Renders rows as a rich Table.

        Args:
            title: Table caption.
            columns: Column headers.
            rows: Cell values; None renders as an empty cell.
        """
        table = Table(title=title, box=ROUNDED, header_style="bold cyan")
        for column in columns:
            table.add_column(column)
        for row in rows:
            table.add_row(*("" if cell is None else str(cell) for cell in row))
        logger.debug(f"display_table called: title={title}, rows={len(rows)}")
        self.console.print(table)

    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message in a distinct style."""
        panel = Panel(
            Text(error_message, style="white"),
            title="[bold red]Error[/bold red]",
            border_style="red",
            box=HEAVY,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_info(self, info_message: str, **kwargs: Any) -> None:
        """Displays an informational message."""
        panel = Panel(
            Text(info_message, style="white"),
            title="[bold blue]Info[/bold blue]",
            border_style="blue",
            box=SIMPLE,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        """Displays a warning message."""
        logger.warning(f"Display warning: {warning_message}")
        panel = Panel(
            Text(warning_message, style="white"),
            title="[bold yellow]Warning[/bold yellow]",
            border_style="yellow",
            box=HEAVY,
            padding=(0, 1)
        )
        self.console.print(panel)
