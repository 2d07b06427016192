"""Custom exceptions for the crosscheck engine."""


class CrossCheckError(Exception):
    """Base exception for crosscheck errors."""
    pass


class ValidationError(CrossCheckError):
    """Raised when input validation fails."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class PayloadSizeError(CrossCheckError):
    """Raised when payload size exceeds limit."""
    def __init__(self, size_mb: float, limit_mb: float):
        super().__init__(f"Payload size ({size_mb:.2f}MB) exceeds limit ({limit_mb}MB)")
        self.size_mb = size_mb
        self.limit_mb = limit_mb


class ConfigurationError(CrossCheckError):
    """Raised when scorer, pipeline or file configuration is invalid."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class StageError(CrossCheckError):
    """Raised by a stage runner when a stage command fails."""
    def __init__(self, stage_id: str, message: str):
        super().__init__(f"Stage '{stage_id}' failed: {message}")
        self.stage_id = stage_id
        self.message = message
