from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional


class AnalyticsError(Exception):
    """Base class for errors raised by the card pipeline."""


@dataclass
class ScriptError:
    """Name/message pair describing a failure inside the JavaScript sandbox.

    ``is_error_object`` is False when the script threw a non-Error value
    (``throw "oops"``); ``message`` then holds its string form.
    """

    name: str
    message: str
    is_error_object: bool = True

    def display(self) -> str:
        if self.is_error_object:
            return f"{self.name}: {self.message}"
        return self.message


class ScriptExecutionError(AnalyticsError):
    """A post-processing script failed. Carries the logs emitted before the failure."""

    def __init__(self, error: ScriptError, logs: Optional[List[str]] = None):
        self.error = error
        self.logs: List[str] = list(logs or [])
        super().__init__(error.display())

    @property
    def display_message(self) -> str:
        return self.error.display()


class CardExecutionError(AnalyticsError):
    """A card could not be executed (missing data source, failed query, failed export)."""

    def __init__(self, message: str, logs: Optional[List[str]] = None):
        self.logs: List[str] = list(logs or [])
        super().__init__(message)


class DataSourceNotFoundError(CardExecutionError):
    pass


class DriverError(AnalyticsError):
    pass


class UnsupportedDriverError(DriverError):
    pass


@dataclass
class EvalResult:
    """Tagged outcome of one expression evaluation."""

    ok: bool
    value: object = None
    text: str = ""
    error: Optional[ScriptError] = None
    logs: List[str] = field(default_factory=list)
