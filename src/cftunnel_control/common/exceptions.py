"""Custom exceptions for the cftunnel control plane."""


class CftunnelError(Exception):
    """Base exception for all control plane errors."""
    pass


class ProcessError(CftunnelError):
    """Raised when the external cftunnel process cannot be run."""
    pass


class BinaryNotFoundError(ProcessError):
    """Raised when the cftunnel binary is not found or not executable."""
    pass


class ConfigurationError(CftunnelError):
    """Raised when configuration is invalid."""
    pass


class ParseError(CftunnelError):
    """Raised when mandatory CLI output cannot be interpreted."""
    pass


class OperationBusyError(CftunnelError):
    """Raised when a lifecycle transition is already in flight for a mode."""

    def __init__(self, mode: str, message: str | None = None):
        self.mode = mode
        super().__init__(message or f"{mode} operation already in progress")
