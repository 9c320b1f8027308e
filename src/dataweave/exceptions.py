"""Exception classes for dataweave."""

from typing import Optional, Sequence


class DataweaveError(Exception):
    """Base exception for all dataweave errors."""

    pass


class NotFoundError(DataweaveError):
    """Raised when a required file or directory does not exist."""

    pass


class ProjectNotFoundError(NotFoundError):
    """Raised when no dataweave project is found in the working directory."""

    pass


class ConfigError(DataweaveError):
    """Raised when the project configuration is invalid."""

    pass


class InvalidArgumentError(DataweaveError, ValueError):
    """Raised on caller misuse, before any file is touched."""

    pass


class ParseAmbiguousError(DataweaveError):
    """Raised when a restricted-dialect file contains content outside the dialect.

    Attributes:
        line_number: 1-based line number of the offending line
        line: The offending line, without its trailing newline
    """

    def __init__(self, message: str, line_number: Optional[int] = None, line: Optional[str] = None):
        self.line_number = line_number
        self.line = line
        if line_number is not None:
            message = f'line {line_number}: {message}: {line!r}'
        super().__init__(message)


class ExternalProcessError(DataweaveError):
    """Raised when an external tool exits non-zero or cannot be launched.

    Attributes:
        tool: Executable name (e.g. 'dbt')
        tool_args: Arguments the tool was invoked with
        returncode: Exit code, or None if the process never started
    """

    def __init__(self, tool: str, args: Sequence[str], returncode: Optional[int], message: Optional[str] = None):
        self.tool = tool
        self.tool_args = list(args)
        self.returncode = returncode
        if message is None:
            message = f'{tool} command failed with exit code {returncode}'
        super().__init__(message)


class ProviderError(DataweaveError):
    """Raised when an AI provider returns an unusable response."""

    pass


class ProviderNotImplementedError(ProviderError, NotImplementedError):
    """Raised by AI providers that are selectable but not implemented."""

    pass
