"""
Transition Guard - Validates a proposed phase change before it is committed.

The classifier works on free-form generated text, so this guard is what keeps
a session's phase monotonic: phases only ever advance one step at a time.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..models.phase import LspPhase

logger = logging.getLogger(__name__)


class GuardReason(str, Enum):
    ADMITTED = "admitted"
    NO_CANDIDATE = "no_candidate"
    SAME_PHASE = "same_phase"
    REGRESSION = "regression"
    SKIP = "skip"


@dataclass(frozen=True)
class TransitionDecision:
    """Outcome of a guard check. `phase` is the phase the session ends up in."""
    admitted: bool
    phase: LspPhase
    reason: GuardReason
    candidate: Optional[LspPhase] = None


def admit(candidate: Optional[LspPhase], current_phase: LspPhase) -> TransitionDecision:
    """
    Check a candidate phase against the current one.

    Rules, in order: no candidate, same phase, regression and skipping ahead
    are rejected; a single step forward is admitted.

    Args:
        candidate: Phase proposed by the classifier, or None
        current_phase: Phase the session is in

    Returns:
        TransitionDecision
    """
    current_phase = LspPhase(current_phase)

    if candidate is None:
        reason = GuardReason.NO_CANDIDATE
    elif candidate == current_phase:
        reason = GuardReason.SAME_PHASE
    elif candidate < current_phase:
        reason = GuardReason.REGRESSION
    elif candidate > current_phase + 1:
        reason = GuardReason.SKIP
    else:
        return TransitionDecision(True, LspPhase(candidate), GuardReason.ADMITTED, LspPhase(candidate))

    if candidate is not None:
        logger.debug(
            f"Transition rejected: candidate={int(candidate)}, current={int(current_phase)}, "
            f"reason={reason.value}"
        )
    return TransitionDecision(False, current_phase, reason, candidate)
