"""Engine module - phase tracking for facilitation sessions."""

from .normalizer import clean
from .classifier import Classification, classify, detect
from .guard import GuardReason, TransitionDecision, admit
from .conclusion import is_concluded
from .pipeline import TurnOutcome, process_turn

__all__ = [
    'clean',
    'Classification',
    'classify',
    'detect',
    'GuardReason',
    'TransitionDecision',
    'admit',
    'is_concluded',
    'TurnOutcome',
    'process_turn',
]
