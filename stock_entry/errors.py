"""Exception types raised by the stock-entry engine and its host."""
from typing import Any, Optional


class StockEntryError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationUnavailable(StockEntryError):
    """
    Resolution guard: a required context value is missing.
    Expected while the form is incomplete; never shown to the user.
    """

    def __init__(self, missing: list[str]) -> None:
        self.missing = missing
        super().__init__(f"Missing context for field configuration: {', '.join(missing)}")


class RemoteError(StockEntryError):
    """A backend request failed (transport error, non-2xx status or bad body)."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message if status_code is None else f"HTTP {status_code}: {message}")


class SubmissionBlocked(StockEntryError):
    """Submission was aborted before any network call."""

    def __init__(self, issues: list) -> None:
        self.issues = issues
        reasons = "; ".join(i.description for i in issues)
        super().__init__(f"Submission blocked: {reasons}")


class CollectionError(StockEntryError):
    """A line-item collection operation was rejected."""


class ItemNotFound(CollectionError):

    def __init__(self, item_id: str) -> None:
        self.item_id = item_id
        super().__init__(f"No line item with id {item_id!r}")


class CalculationInputError(StockEntryError):
    """Bad input to the measurement conversion helper."""


DEFAULT_ERROR_MESSAGE = "Request failed"


def parse_error_message(data: Any) -> str:
    """
    Turn a backend error body into one readable message.

    Looks at errors.message, message, detail, error in that order.
    Nested field errors are flattened into "path.field: message" lines.
    """
    if not data:
        return DEFAULT_ERROR_MESSAGE
    if isinstance(data, str):
        return data
    if not isinstance(data, dict):
        return str(data)

    errors = data.get("errors")
    if isinstance(errors, dict) and errors.get("message"):
        return _flatten(errors["message"])
    if data.get("message"):
        return _flatten(data["message"])
    if data.get("detail"):
        return str(data["detail"])
    if data.get("error"):
        return str(data["error"])
    return DEFAULT_ERROR_MESSAGE


def _flatten(obj: Any, prefix: str = "") -> str:
    if isinstance(obj, str):
        return obj
    if isinstance(obj, list):
        return ", ".join(str(v) for v in obj)
    if isinstance(obj, dict):
        lines = []
        for key, value in obj.items():
            name = f"{prefix}.{key}" if prefix else str(key)
            if isinstance(value, str):
                lines.append(f"{name}: {value}")
            elif isinstance(value, list):
                lines.append(f"{name}: {', '.join(str(v) for v in value)}")
            elif isinstance(value, dict):
                lines.append(_flatten(value, name))
        return "\n".join(lines)
    return str(obj)
