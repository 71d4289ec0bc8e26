"""Custom exceptions for the loop feature extractor."""


class LoopFeaturesError(RuntimeError):
    """Base class for domain-specific runtime errors."""


class IRParseError(LoopFeaturesError):
    """Raised when a textual IR module cannot be parsed."""

    def __init__(self, message: str, line_no: int | None = None):
        self.line_no = line_no
        if line_no is not None:
            message = f"line {line_no}: {message}"
        super().__init__(message)


class DatasetUnavailableError(LoopFeaturesError):
    """Raised when the feature dataset cannot be opened or appended to."""


class CounterPersistError(LoopFeaturesError):
    """Raised when the run counter side store cannot be written."""


class ConfigError(LoopFeaturesError):
    """Raised when an extractor config profile is malformed."""
