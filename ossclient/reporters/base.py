"""Base reporter interface."""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from ossclient.models import OperationRecord


class Reporter(ABC):
    """Abstract base class for command result reporters."""

    @abstractmethod
    def on_operation_start(self, operation: str, target: str) -> None:
        """Called before a command talks to the service."""
        pass

    @abstractmethod
    def on_progress(self, operation: str, consumed: int, total: Optional[int]) -> None:
        """Called as bytes of an upload or download are transferred."""
        pass

    @abstractmethod
    def on_operation_complete(self, record: "OperationRecord") -> None:
        """Called when a command finishes, successfully or not."""
        pass

    @abstractmethod
    def on_run_complete(self, records: list["OperationRecord"]) -> None:
        """Called when all commands are complete."""
        pass
