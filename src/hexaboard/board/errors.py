from __future__ import annotations


class HexaBoardError(Exception):
    """Base class for recoverable board errors surfaced to a single user action."""


class ValidationError(HexaBoardError):
    pass


class AuthError(HexaBoardError):
    pass


class StorageError(HexaBoardError):
    pass


class StorageReadError(StorageError):
    pass


class StorageWriteError(StorageError):
    pass


class MalformedRecordError(ValueError):
    """Stored cell data could not be parsed; callers treat it as 'no record'."""
