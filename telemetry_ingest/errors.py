class IngestError(Exception):
    """Base class for every failure the ingest service reports."""


class ConfigError(IngestError):
    """Missing or invalid configuration; fatal at startup."""


class PoolError(IngestError):
    """No pooled database connection became available in time."""


class CodecError(IngestError):
    """A received message could not be decoded into a log event."""


class StoreError(IngestError):
    """The log transaction failed and was rolled back."""
