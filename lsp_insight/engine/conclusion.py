"""
Conclusion Detector - Spots session-closing phrases in cleaned model text.
"""

from typing import List

from .classifier import fold

# Accent-free, lower-case
CLOSING_PHRASES: List[str] = [
    "con esto concluimos",
    "sesion concluida",
    "resumen final",
    "proceso completado",
    "hemos completado el proceso",
    "damos por cerrada la sesion",
]


def is_concluded(cleaned_text: str) -> bool:
    """True if the text contains any closing phrase."""
    if not cleaned_text:
        return False
    folded = fold(cleaned_text)
    return any(phrase in folded for phrase in CLOSING_PHRASES)
