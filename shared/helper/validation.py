"""Required-field validation shared by the ingestion and query services."""

from typing import Any

from shared.exceptions import ValidationError


def is_missing(value: Any) -> bool:
    """A value is missing when it is None, a blank string or an empty collection."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) == 0
    return False


def require_fields(values: dict[str, Any], message: str = "Missing required fields.") -> None:
    """Check every field and report all missing ones together.

    Args:
        values (dict[str, Any]): Wire field name -> received value, in the order to report.
        message (str): Summary used for the raised error.

    Raises:
        ValidationError: If at least one field is missing; missing_fields names all of them.
    """
    missing = [field for field, value in values.items() if is_missing(value)]
    if missing:
        raise ValidationError(message, missing_fields=missing, required_fields=list(values))
