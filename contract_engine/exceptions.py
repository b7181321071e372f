"""Custom exceptions for the contract template engine."""


class ContractEngineError(Exception):
    """Base exception for contract engine errors."""

    pass


class UnsupportedFormatError(ContractEngineError):
    """Raised when the uploaded file is neither a flowed nor a fixed-layout document."""

    pass


class CorruptInputError(ContractEngineError):
    """Raised when a supported document cannot be opened or read."""

    pass


class EmptyContentError(ContractEngineError):
    """Raised when no text was extracted and the caller asked for content."""

    pass


class EmissionError(ContractEngineError):
    """Raised when no output document could be produced at all."""

    pass
