"""Exceptions raised by the statement pipeline."""


class StatementProcessingError(Exception):
    """Base class for statement processing errors."""
    pass


class PasswordRequiredError(StatementProcessingError):
    """The document is encrypted and no known password opens it."""
    pass


class CorruptDocumentError(StatementProcessingError):
    """The document cannot be read as a PDF."""
    pass


class ExtractionAPIError(StatementProcessingError):
    """The extraction API failed on every attempt."""
    pass


class MalformedExtractionResultError(StatementProcessingError):
    """An extraction result could not be parsed into a record."""

    def __init__(self, message: str, document_index=None) -> None:
        super().__init__(message)
        self.document_index = document_index


class ConfigurationError(StatementProcessingError):
    """Required configuration is missing or invalid."""
    pass
