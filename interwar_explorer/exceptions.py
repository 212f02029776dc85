"""Exception types raised by the explorer core."""


class ExplorerError(Exception):
    """Base class for explorer errors."""


class InitializationError(ExplorerError):
    """The engine failed to start or a required source failed to load."""


class MissingTableError(ExplorerError):
    """A required metadata table has not been loaded."""

    def __init__(self, table: str):
        super().__init__(f"Required table not loaded: {table}")
        self.table = table


class SchemaError(ExplorerError):
    """A fact table does not have the expected shape."""


class InvalidSelectionError(ExplorerError, ValueError):
    """Unknown language or administrative level."""
