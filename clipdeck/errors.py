"""Exception taxonomy for clipdeck operations.

Every failure an operation can produce is a :class:`ClipdeckError`.  The
message is human-readable; ``diagnostics`` carries FFmpeg/FFprobe stderr
verbatim when there is any, so users can spot missing codecs, bad parameters
or unsupported containers.
"""

from typing import Optional


class ClipdeckError(Exception):
    """Base class for all operation failures."""

    def __init__(self, message: str, diagnostics: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.diagnostics = diagnostics

    def __str__(self) -> str:
        if self.diagnostics:
            return f"{self.message}\n{self.diagnostics}"
        return self.message


class InvalidParameters(ClipdeckError, ValueError):
    """A request is missing a field or carries an out-of-range value.

    Always raised before any subprocess is spawned.
    """


class UnsupportedOperation(InvalidParameters):
    """The request kind (or a sub-option such as a filter name) is unknown."""


class ProbeError(ClipdeckError):
    """FFprobe is missing, exited non-zero or produced unusable output."""


class SpawnError(ClipdeckError):
    """The executable could not be launched at all."""


class SubprocessFailure(ClipdeckError):
    """FFmpeg exited with a non-zero status."""

    def __init__(self, message: str, exit_code: int, diagnostics: Optional[str] = None):
        super().__init__(message, diagnostics)
        self.exit_code = exit_code


class FinalizeError(ClipdeckError):
    """Transcoding succeeded but the staged file could not be moved into place."""

    def __init__(self, message: str, staging_path: Optional[str] = None):
        super().__init__(message)
        self.staging_path = staging_path
