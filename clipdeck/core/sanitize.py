"""Path and text sanitization utilities for clipdeck.

Provides validation for file paths used in subprocess calls and
escaping for text parameters embedded in FFMPEG filter strings.
"""

from pathlib import Path

from ..errors import InvalidParameters

AUDIO_EXTENSIONS = {'.mp3', '.wav', '.aac', '.flac', '.m4a', '.ogg', '.wma', '.opus'}


def is_audio_path(path: str | Path) -> bool:
    """True when the extension names an audio-only container."""
    return Path(path).suffix.lower() in AUDIO_EXTENSIONS


def validate_input_path(path: str, must_exist: bool = True) -> str:
    """Validate and resolve a media input path.

    Args:
        path: The path string to validate.
        must_exist: If True, raises InvalidParameters when the file doesn't exist.

    Returns:
        The resolved, absolute path string.

    Raises:
        InvalidParameters: If the path is empty, names a directory, or doesn't
                           exist (when must_exist is True).
    """
    if not path or not str(path).strip():
        raise InvalidParameters("Input path cannot be empty")

    resolved = Path(path).resolve()

    if must_exist:
        if not resolved.exists():
            raise InvalidParameters(f"File not found: {resolved}")
        if not resolved.is_file():
            raise InvalidParameters(f"Path is not a file: {resolved}")

    return str(resolved)


def validate_output_path(path: str) -> str:
    """Validate an output file path.

    The file does not need to exist but it must have an extension (FFmpeg
    picks the muxer from it) and its directory must exist.

    Raises:
        InvalidParameters: If the path is empty, has no extension, or its
                           parent directory is missing.
    """
    if not path or not str(path).strip():
        raise InvalidParameters("Output path cannot be empty")

    resolved = Path(path).resolve()
    if not resolved.suffix:
        raise InvalidParameters(f"Output file path must have an extension: {path}")
    if not resolved.parent.is_dir():
        raise InvalidParameters(f"Output directory not found: {resolved.parent}")

    return str(resolved)


# Characters the filtergraph parser treats as syntax when it splits filters
_GRAPH_SPECIAL = ("\\", "'", "[", "]", ",", ";")


def escape_filter_value(value: str) -> str:
    """Escape one filter option value for a ``-vf`` / ``-filter_complex`` string.

    FFmpeg unescapes a filter's arguments twice: once when the filtergraph
    is split into filters, then once more when ``key=value:key=value`` is
    split into options.  The value is single-quoted for the option level
    (a quote inside becomes ``'\\''``) and the result is backslash-escaped
    for the graph level.
    """
    quoted = "'" + value.replace("'", "'\\''") + "'"
    for ch in _GRAPH_SPECIAL:
        quoted = quoted.replace(ch, "\\" + ch)
    return quoted


def sanitize_text_param(text: str) -> str:
    """Escape overlay text for drawtext's ``text=`` option.

    drawtext itself reads ``\\`` as an escape and ``%`` as the start of an
    expansion such as ``%{pts}``, so both are escaped before the option
    and graph levels handled by :func:`escape_filter_value`.

    Args:
        text: The raw text string.

    Returns:
        The complete option value, quotes included.
    """
    # Backslashes first, before adding more
    text = text.replace("\\", "\\\\").replace("%", "\\%")
    return escape_filter_value(text)


def concat_list_entry(path: str) -> str:
    """Format one ``file '...'`` line for the concat demuxer."""
    normalized = str(path).replace("\\", "/").replace("'", "'\\''")
    return f"file '{normalized}'"
