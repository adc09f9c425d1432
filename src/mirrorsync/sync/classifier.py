"""Exit code classification for the mirroring tool.

robocopy packs independent conditions into the bits of its exit code:

    1   one or more files were copied
    2   extra files or directories were found in the destination
    4   mismatched files or directories were detected
    8   some files or directories could not be copied
    16  fatal error, nothing was copied

Anything below 8 means the destination now mirrors the source.
"""

from __future__ import annotations

from mirrorsync.core.types import Verdict

FAILURE_THRESHOLD = 8

_FLAG_DESCRIPTIONS = (
    (1, "files copied"),
    (2, "extra files detected"),
    (4, "mismatches detected"),
    (8, "copy errors"),
    (16, "fatal error"),
)


def classify(exit_code: int) -> Verdict:
    """Map a raw exit code to a verdict.

    Negative codes (child killed by a signal) are failures.
    """
    if exit_code == 0:
        return Verdict.SUCCESS
    if 0 < exit_code < FAILURE_THRESHOLD:
        return Verdict.SUCCESS_WITH_WARNINGS
    return Verdict.FAILURE


def describe(exit_code: int) -> str:
    """Get a short human readable description of an exit code."""
    if exit_code == 0:
        return "no changes"
    if exit_code < 0:
        return f"terminated by signal {-exit_code}"
    flags = [text for bit, text in _FLAG_DESCRIPTIONS if exit_code & bit]
    return ", ".join(flags) if flags else f"unknown exit code {exit_code}"
