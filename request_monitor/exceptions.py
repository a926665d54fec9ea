"""Errors raised by the request monitor core."""


class StorageError(Exception):
    """Raised when the log store cannot read or write."""


class DescriptorError(ValueError):
    """Raised when an ingestion payload fails schema validation."""

    def __init__(self, errors: list[str]):
        super().__init__("; ".join(errors) or "invalid request descriptor")
        self.errors = errors
