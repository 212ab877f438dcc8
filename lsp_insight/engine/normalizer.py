"""
Text Normalizer - Strips control markers from model output before it is
displayed or stored.
"""

import re

# [PHASE_UPDATE: 2] plus whatever whitespace follows it
PHASE_MARKER_PATTERN = re.compile(r"\[PHASE_UPDATE:\s*(\d+)\]")
_PHASE_MARKER_STRIP = re.compile(r"\[PHASE_UPDATE:\s*\d+\]\s*")

# Other technical tags: [END_SESSION], [INTERNAL_NOTE: ...], [NOTE: ...].
# Plain capitals such as [X] or [OK] are left alone.
_ANNOTATION_STRIP = re.compile(
    r"\[(?:[A-Z][A-Z0-9]*_[A-Z0-9_]*(?::[^\]\n]*)?|[A-Z][A-Z0-9_]+:[^\]\n]*)\][ \t]*"
)

_BLANK_RUN = re.compile(r"\n(?:[ \t]*\n){2,}")


def _strip_markers(text: str) -> str:
    # Removing one tag can splice its neighbours into a new one
    while True:
        stripped = _ANNOTATION_STRIP.sub("", _PHASE_MARKER_STRIP.sub("", text))
        if stripped == text:
            return text
        text = stripped


def clean(raw_text: str) -> str:
    """
    Produce display text from raw model output.

    Removes phase markers and other bracketed technical annotations,
    collapses runs of blank lines into a single blank line and trims the
    result. Idempotent.

    Args:
        raw_text: Accumulated model output, markers included

    Returns:
        Cleaned text
    """
    if not raw_text:
        return ""
    text = raw_text.replace("\r\n", "\n")
    text = _strip_markers(text)
    text = _BLANK_RUN.sub("\n\n", text)
    return text.strip()
