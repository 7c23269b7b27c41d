from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

__all__ = [
    "MultivoiceError",
    "InvalidArgumentError",
    "InputFileNotFoundError",
    "UnsupportedProviderError",
    "ProviderError",
    "MergeError",
    "EngineFailureError",
    "EngineUnavailableError",
    "MergeCancelledError",
]


class MultivoiceError(Exception):
    """Base exception for every error raised by this package."""


class InvalidArgumentError(MultivoiceError, ValueError):
    """Raised before any I/O when required arguments are missing or malformed."""


class InputFileNotFoundError(MultivoiceError, FileNotFoundError):
    """An input path does not exist or cannot be read."""

    def __init__(self, path: Union[str, Path]) -> None:
        super().__init__(f"Input file not found: {path}")
        self.path = str(path)


class UnsupportedProviderError(MultivoiceError, ValueError):
    def __init__(self, kind: str, provider: str, supported) -> None:
        super().__init__(
            f"{kind} provider {provider!r} is not supported. "
            f"Supported providers: {', '.join(sorted(supported))}"
        )
        self.provider = provider


class ProviderError(MultivoiceError):
    """A vendor API call failed or returned an unusable response."""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class MergeError(MultivoiceError):
    """Base class for failures of the audio merge pipeline after validation."""


class EngineFailureError(MergeError):
    """The media engine exited abnormally. ``stderr`` is the engine's own text."""

    def __init__(
        self,
        stderr: str,
        returncode: Optional[int] = None,
        *,
        reason: Optional[str] = None,
    ) -> None:
        message = reason or stderr.strip() or f"ffmpeg exited with status {returncode}"
        super().__init__(f"Failed to merge audio files: {message}")
        self.stderr = stderr
        self.returncode = returncode


class EngineUnavailableError(MergeError):
    """The media engine executable could not be located or started."""


class MergeCancelledError(MergeError):
    """The merge was cancelled or timed out and the engine was terminated."""
