"""Capture a readable stack trace of the calling thread."""

from __future__ import annotations

import traceback


def generate_stacktrace() -> str:
    """Return the current call stack, innermost frame first, one frame per line."""
    frames = traceback.extract_stack()[:-1]
    return "".join(
        f"{frame.filename}:{frame.lineno} {frame.name}\n" for frame in reversed(frames)
    )