"""Strip ANSI color escape sequences from process output.

Workaround for tools that ignore ``--no-color`` (or were invoked without it).
Only SGR sequences (``ESC [ <params> m``) are removed; anything else,
including malformed or unterminated sequences, is passed through unchanged.
"""

from __future__ import annotations

import re

__all__ = [
    "strip_color_codes",
    "StreamSanitizer",
]

_COLOR_CODE = re.compile(rb"\x1b\[[0-9;]*m")

# Tail of a buffer that a following chunk could turn into a color code.
# Several partial codes in a row can collapse into one once the inner ones
# complete, so the whole run is held.
_PARTIAL_COLOR_CODE = re.compile(rb"(?:\x1b(?:\[[0-9;]*)?)+\Z")

# Longest partial sequence held back before giving up on it
_MAX_PENDING = 64


def strip_color_codes(data: bytes) -> bytes:
    """Remove ANSI color codes from ``data``.

    Removal repeats until nothing matches, so pieces joined by removing an
    inner sequence (``ESC ESC[0m [0m``) are removed too and the result is
    stable under a second pass.

    Args:
        data: Raw process output

    Returns:
        Output without color codes
    """
    count = 1
    while count:
        data, count = _COLOR_CODE.subn(b"", data)
    return data


class StreamSanitizer:
    """Incremental ``strip_color_codes`` for chunked output.

    A color code can be split across two reads from a pipe. ``feed()`` holds
    back a trailing partial sequence until the next chunk shows whether it
    completes; ``flush()`` releases it at end of stream.

    Example:
        sanitizer = StreamSanitizer()
        for chunk in chunks:
            emit(sanitizer.feed(chunk))
        emit(sanitizer.flush())
    """

    def __init__(self) -> None:
        self._pending = b""

    @property
    def pending(self) -> bytes:
        """Bytes currently held back."""
        return self._pending

    def feed(self, chunk: bytes) -> bytes:
        """Sanitize a chunk, returning the bytes that are safe to surface."""
        cleaned = strip_color_codes(self._pending + chunk)
        match = _PARTIAL_COLOR_CODE.search(cleaned)
        if match and len(cleaned) - match.start() <= _MAX_PENDING:
            self._pending = cleaned[match.start():]
            return cleaned[:match.start()]
        self._pending = b""
        return cleaned

    def flush(self) -> bytes:
        """Release held-back bytes; an incomplete sequence is returned as-is."""
        pending, self._pending = self._pending, b""
        return pending
