"""
Phase Classifier - Proposes the phase a model turn transitions into.

Tier 1 reads the explicit [PHASE_UPDATE: n] marker the system prompt asks the
model to emit. Tier 2 is a compatibility fallback for turns without a marker
and only accepts near-verbatim transition phrases: single methodology words
("protocolo", "evaluación") appear in every phase of a conversation.
"""

import logging
import unicodedata
from dataclasses import dataclass
from typing import Dict, List, Optional

from ..models.phase import LspPhase
from .normalizer import PHASE_MARKER_PATTERN

logger = logging.getLogger(__name__)

SOURCE_MARKER = "marker"
SOURCE_HEURISTIC = "heuristic"


# Accent-free, lower-case transition phrases
TRANSITION_PHRASES: Dict[LspPhase, List[str]] = {
    LspPhase.IDENTIFICATION: [
        "bienvenido a tu sesion",
        "bienvenida a tu sesion",
        "te doy la bienvenida",
        "soy tu asistente",
        "soy tu facilitador",
        "iniciamos la fase de identificacion",
    ],
    LspPhase.PROTOCOL_DEVELOPMENT: [
        "protocolo estructurado",
        "disenemos tu protocolo",
        "disenemos el protocolo",
        "pasemos al diseno del protocolo",
        "iniciamos la fase de desarrollo de protocolos",
    ],
    LspPhase.IMPLEMENTATION: [
        "comencemos a construir",
        "empecemos a construir",
        "empieza a construir ahora",
        "es momento de construir",
        "toma tus bricks y construye",
        "iniciamos la fase de implementacion",
    ],
    LspPhase.INSIGHT_DISCOVERY: [
        "comparte tu modelo",
        "cuentame la historia de tu modelo",
        "exploremos los insights",
        "iniciamos la fase de descubrimiento",
    ],
    LspPhase.STRATEGY_DEVELOPMENT: [
        "convirtamos estos insights en acciones",
        "desarrollemos estrategias",
        "disenemos tu plan de accion",
        "iniciamos la fase de desarrollo de estrategias",
    ],
    LspPhase.EVALUATION: [
        "evaluemos el proceso",
        "reflexionemos sobre el proceso completo",
        "hagamos una evaluacion final",
        "iniciamos la fase de evaluacion",
    ],
}

# Text that talks about a phase instead of entering it
REFERENCE_PHRASES: List[str] = [
    "en esta fase",
    "en la fase",
    "en las fases",
    "durante la fase",
    "se refiere a",
    "refiere a",
    "explica",
    "menciona",
]


@dataclass(frozen=True)
class Classification:
    """A proposed phase and which tier produced it."""
    phase: LspPhase
    source: str


def fold(text: str) -> str:
    """Lower-case text and drop diacritics so "Diseñemos" matches "disenemos"."""
    decomposed = unicodedata.normalize("NFKD", text.lower())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def find_marker(raw_text: str) -> Optional[LspPhase]:
    """
    Return the phase of the last valid [PHASE_UPDATE: n] marker.

    Out-of-range values are ignored. When several valid markers disagree the
    last one wins, since the model may correct itself mid-turn.
    """
    phases = []
    for match in PHASE_MARKER_PATTERN.finditer(raw_text):
        phase = LspPhase.from_value(int(match.group(1)))
        if phase is None:
            logger.debug(f"Ignoring out-of-range phase marker: {match.group(0)}")
            continue
        phases.append(phase)

    if not phases:
        return None
    if len(set(phases)) > 1:
        logger.debug(
            f"Conflicting phase markers {[int(p) for p in phases]}, using last ({int(phases[-1])})"
        )
    return phases[-1]


def is_reference(folded_text: str) -> bool:
    """True when the text describes a phase rather than transitioning into one."""
    return any(phrase in folded_text for phrase in REFERENCE_PHRASES)


def match_heuristics(raw_text: str, current_phase: LspPhase) -> Optional[LspPhase]:
    """Tier-2 fallback: match transition phrases, suppressing phase references."""
    folded = fold(raw_text)

    matched = [
        phase for phase, phrases in TRANSITION_PHRASES.items()
        if any(phrase in folded for phrase in phrases)
    ]
    if not matched:
        return None

    if is_reference(folded):
        logger.debug(f"Heuristic match {[int(p) for p in matched]} suppressed: text references a phase")
        return None

    next_phase = LspPhase.from_value(current_phase + 1)
    if next_phase in matched:
        return next_phase
    return max(matched)


def detect(raw_text: str, current_phase: LspPhase) -> Optional[Classification]:
    """
    Run both tiers on raw (uncleaned) model text.

    Args:
        raw_text: Accumulated model output for one turn
        current_phase: Session phase before this turn

    Returns:
        Classification, or None when neither tier matched
    """
    if not raw_text:
        return None

    marker_phase = find_marker(raw_text)
    if marker_phase is not None:
        return Classification(marker_phase, SOURCE_MARKER)

    heuristic_phase = match_heuristics(raw_text, current_phase)
    if heuristic_phase is not None:
        return Classification(heuristic_phase, SOURCE_HEURISTIC)

    return None


def classify(raw_text: str, current_phase: LspPhase) -> Optional[LspPhase]:
    """Candidate phase for a turn, or None."""
    result = detect(raw_text, current_phase)
    return result.phase if result else None
