"""Interface for presenting results to the user.

Defines the contract for displaying output, tables, errors, warnings
and informational messages, allowing different UI implementations
(e.g., console, GUI).
"""

import abc
from typing import Any, Sequence


class UserInterface(abc.ABC):
    """Abstract Base Class for user interaction."""

    @abc.abstractmethod
    def display_output(self, output: str, **kwargs: Any) -> None:
        """Displays standard output to the user.

        Args:
            output: The text to display.
            **kwargs: Additional arguments for formatting (e.g., title).
        """
        pass

    @abc.abstractmethod
    def display_table(
        self,
        title: str,
        columns: Sequence[str],
        rows: Sequence[Sequence[Any]],
        **kwargs: Any,
    ) -> None:
        """Displays tabular data.

        Args:
            title: Table caption.
            columns: Column headers.
            rows: One sequence of cell values per row.
            **kwargs: Additional arguments for formatting.
        """
        pass

    @abc.abstractmethod
    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message to the user."""
        pass

    @abc.abstractmethod
    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        """Displays a warning message to the user."""
        pass

    @abc.abstractmethod
    def display_info(self, info_message: str, **kwargs: Any) -> None:
        """Displays an informational message to the user."""
        pass
