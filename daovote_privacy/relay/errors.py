"""Relay wire-format error types."""


class WireFormatError(ValueError):
    """Base error for relay payload encoding problems."""


class SchemaError(WireFormatError):
    """Raised when a submission fails schema validation."""


class EncodingError(WireFormatError):
    """Raised when a proof or scalar cannot be encoded or decoded."""
