"""Error taxonomy shared by clients, services and the HTTP layer."""


class BridgeError(Exception):
    """Base class for all errors raised on purpose by the embedding bridge."""


class ValidationError(BridgeError):
    """The caller supplied a request with missing or malformed required fields.

    Attributes:
        message (str): Human-readable summary.
        missing_fields (list[str]): Wire names of every missing field, in check order.
        required_fields (list[str]): Wire names of all fields that were checked.
    """

    def __init__(
        self,
        message: str,
        missing_fields: list[str] | None = None,
        required_fields: list[str] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.missing_fields = list(missing_fields or [])
        self.required_fields = list(required_fields or self.missing_fields)

    def missing_fields_map(self) -> dict[str, bool]:
        """Returns {field: is_missing} for every checked field."""
        return {field: field in self.missing_fields for field in self.required_fields}


class ExternalServiceError(BridgeError):
    """A call to the embedding, index or generation provider failed.

    Attributes:
        summary (str): Stable error summary returned to callers.
        details (str): Underlying provider message, for diagnostics.
        service (str): Which collaborator failed (e.g. "embed", "rag", "llm").
    """

    def __init__(self, summary: str, details: str = "", service: str = "") -> None:
        super().__init__(f"{summary} {details}".strip())
        self.summary = summary
        self.details = details
        self.service = service
