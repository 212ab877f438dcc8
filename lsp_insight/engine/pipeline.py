"""
Phase Update Pipeline - Runs once per completed model turn.

Classification sees the raw text, before the normalizer strips the marker.
Conclusion detection sees the cleaned text. A conclusion forces the terminal
phase from any phase, bypassing the guard's single-step rule.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from ..models.phase import LspPhase, TERMINAL_PHASE
from .classifier import Classification, detect
from .conclusion import is_concluded
from .guard import TransitionDecision, admit
from .normalizer import clean

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TurnOutcome:
    """What a completed turn does to the session."""
    content: str
    previous_phase: LspPhase
    phase: LspPhase
    decision: TransitionDecision
    classification: Optional[Classification] = None
    concluded: bool = False

    @property
    def phase_changed(self) -> bool:
        return self.phase != self.previous_phase

    @property
    def candidate(self) -> Optional[LspPhase]:
        return self.classification.phase if self.classification else None


def process_turn(raw_text: str, current_phase: LspPhase) -> TurnOutcome:
    """
    Derive display content and the next phase from one turn's raw text.

    Args:
        raw_text: Fully accumulated model output
        current_phase: Session phase before the turn

    Returns:
        TurnOutcome; callers persist `content` and, if `phase_changed`, `phase`
    """
    current_phase = LspPhase(current_phase)

    classification = detect(raw_text, current_phase)
    decision = admit(classification.phase if classification else None, current_phase)
    new_phase = decision.phase

    content = clean(raw_text)

    concluded = is_concluded(content)
    if concluded and new_phase != TERMINAL_PHASE:
        logger.info(
            f"Closing phrase detected, forcing phase {int(TERMINAL_PHASE)} "
            f"(was {int(current_phase)})"
        )
        new_phase = TERMINAL_PHASE
    elif decision.admitted:
        logger.info(
            f"Phase transition admitted: {int(current_phase)} -> {int(new_phase)} "
            f"(source={classification.source})"
        )

    return TurnOutcome(
        content=content,
        previous_phase=current_phase,
        phase=new_phase,
        decision=decision,
        classification=classification,
        concluded=concluded,
    )
