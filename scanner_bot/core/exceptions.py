"""Exception hierarchy for scanned document filing."""

from pathlib import Path
from typing import Any, Optional


class ScannerBotError(Exception):
    """Base exception for all scanner bot errors."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


class FileProcessingError(ScannerBotError):
    """Base class for errors while waiting on or reading a watched file."""

    def __init__(
        self,
        file_path: Path | str,
        message: str,
        original_error: Optional[Exception] = None,
        details: Optional[dict[str, Any]] = None
    ) -> None:
        self.file_path = Path(file_path)
        self.original_error = original_error

        full_message = f"Processing failed for {self.file_path}: {message}"
        if original_error:
            full_message += f" (Original error: {original_error})"

        super().__init__(full_message, details)


class StabilityTimeoutError(FileProcessingError):
    """Raised when a file never settles within the maximum wait."""

    def __init__(self, file_path: Path | str, waited_seconds: float, last_size: int) -> None:
        message = f"file did not stabilize within {waited_seconds:.0f}s (last size {last_size} bytes)"
        super().__init__(
            file_path,
            message,
            details={"waited_seconds": waited_seconds, "last_size": last_size}
        )
        self.waited_seconds = waited_seconds
        self.last_size = last_size


class FileVanishedError(FileProcessingError):
    """Raised when the file disappears while it is being watched."""

    def __init__(self, file_path: Path | str, original_error: Optional[Exception] = None) -> None:
        super().__init__(file_path, "file disappeared before it stabilized", original_error)


class AnalysisError(ScannerBotError):
    """Base class for failures talking to the vision model."""

    def __init__(
        self,
        file_path: Path | str,
        message: str,
        model_used: Optional[str] = None,
        original_error: Optional[Exception] = None
    ) -> None:
        self.file_path = Path(file_path)
        self.model_used = model_used
        self.original_error = original_error

        full_message = f"Analysis failed for {self.file_path}: {message}"
        if model_used:
            full_message += f" (Model: {model_used})"
        if original_error:
            full_message += f" (Original error: {original_error})"

        details = {"file_path": str(self.file_path)}
        if model_used:
            details["model_used"] = model_used

        super().__init__(full_message, details)


class UploadError(AnalysisError):
    """Raised when the file bytes cannot be uploaded to the model's file store."""

    def __init__(self, file_path: Path | str, original_error: Exception) -> None:
        super().__init__(file_path, "upload failed", original_error=original_error)


class UpstreamProcessingError(AnalysisError):
    """Raised when the uploaded asset settles in a state other than ACTIVE."""

    def __init__(self, file_path: Path | str, state: str, asset_name: Optional[str] = None) -> None:
        message = f"uploaded asset ended in state {state}"
        if asset_name:
            message += f" ({asset_name})"
        super().__init__(file_path, message)
        self.state = state
        self.asset_name = asset_name


class EmptyResponseError(AnalysisError):
    """Raised when the model returns no candidates or no content parts."""

    def __init__(self, file_path: Path | str, model_used: Optional[str] = None) -> None:
        super().__init__(file_path, "model returned an empty response", model_used)


class APIError(AnalysisError):
    """Raised when a model call fails after retries."""

    def __init__(
        self,
        file_path: Path | str,
        api_error: Exception,
        model_used: Optional[str] = None,
        retry_count: int = 0
    ) -> None:
        message = f"API call failed after {retry_count} attempt(s)"
        super().__init__(file_path, message, model_used, api_error)
        self.retry_count = retry_count


class ResponseParseError(ScannerBotError):
    """Raised when the model reply is neither a record nor a list of records."""

    def __init__(self, response_text: str, parsing_error: Optional[Exception] = None) -> None:
        message = f"Model returned unparseable response: {response_text[:100]!r}"
        if parsing_error:
            message += f" ({parsing_error})"
        super().__init__(message, {"response_text": response_text[:500]})
        self.response_text = response_text
        self.parsing_error = parsing_error


class CommitError(ScannerBotError):
    """Raised when a file cannot be written to its destination."""

    def __init__(
        self,
        file_path: Path | str,
        destination: Path | str,
        original_error: Optional[Exception] = None
    ) -> None:
        self.file_path = Path(file_path)
        self.destination = Path(destination)
        self.original_error = original_error

        message = f"Could not write {self.file_path.name} to {self.destination}"
        if original_error:
            message += f" (Original error: {original_error})"

        super().__init__(
            message,
            {"file_path": str(self.file_path), "destination": str(self.destination)}
        )


class ArchiveError(CommitError):
    """Raised when the original cannot be moved into the originals archive."""


class SecurityError(ScannerBotError):
    """Base class for security-related errors."""

    def __init__(
        self,
        message: str,
        security_check: str,
        file_path: Optional[Path | str] = None
    ) -> None:
        self.security_check = security_check
        self.file_path = Path(file_path) if file_path else None

        full_message = f"Security check failed ({security_check}): {message}"
        details = {"security_check": security_check}
        if file_path:
            details["file_path"] = str(file_path)

        super().__init__(full_message, details)


class PathTraversalError(SecurityError):
    """Raised when a generated destination would escape the destination root."""

    def __init__(self, attempted_path: str) -> None:
        message = f"Path traversal attempt detected: {attempted_path}"
        super().__init__(message, "path_traversal", attempted_path)
        self.attempted_path = attempted_path


class ConfigurationError(ScannerBotError):
    """Raised when configuration is invalid or missing."""

    def __init__(self, setting_name: str, issue: str) -> None:
        message = f"Configuration error for '{setting_name}': {issue}"
        super().__init__(message, {"setting_name": setting_name, "issue": issue})
        self.setting_name = setting_name
        self.issue = issue


__all__ = [
    "ScannerBotError",
    "FileProcessingError",
    "StabilityTimeoutError",
    "FileVanishedError",
    "AnalysisError",
    "UploadError",
    "UpstreamProcessingError",
    "EmptyResponseError",
    "APIError",
    "ResponseParseError",
    "CommitError",
    "ArchiveError",
    "SecurityError",
    "PathTraversalError",
    "ConfigurationError",
]
