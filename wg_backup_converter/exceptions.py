"""Custom exception types for wg_backup_converter."""


class ConverterError(Exception):
    """Base exception class for all library-specific errors."""

    pass


class MalformedDocumentError(ConverterError):
    """Raised when a backup document is not valid JSON at the top level."""

    pass


class SettingsError(ConverterError):
    """Raised for unreadable or invalid converter settings."""

    pass
