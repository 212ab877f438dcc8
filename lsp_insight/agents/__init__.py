"""Agents module - the LSP facilitator."""

from .facilitator import (
    FacilitatorAgent,
    TurnResult,
    IMAGE_ONLY_PLACEHOLDER,
    init_facilitator,
    get_facilitator,
)

__all__ = [
    'FacilitatorAgent',
    'TurnResult',
    'IMAGE_ONLY_PLACEHOLDER',
    'init_facilitator',
    'get_facilitator',
]
