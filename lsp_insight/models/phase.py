"""
Phase Model - The six ordered stages of an LSP facilitation session.
"""

from enum import IntEnum
from typing import Dict, Optional


class LspPhase(IntEnum):
    """Facilitation phases, in the order a session must visit them."""
    IDENTIFICATION = 1
    PROTOCOL_DEVELOPMENT = 2
    IMPLEMENTATION = 3
    INSIGHT_DISCOVERY = 4
    STRATEGY_DEVELOPMENT = 5
    EVALUATION = 6

    @classmethod
    def from_value(cls, value: int) -> Optional["LspPhase"]:
        """Return the phase for an integer, or None when out of range."""
        try:
            return cls(value)
        except ValueError:
            return None

    @property
    def title(self) -> str:
        return PHASE_DESCRIPTIONS[self]["title"]

    @property
    def description(self) -> str:
        return PHASE_DESCRIPTIONS[self]["description"]


INITIAL_PHASE = LspPhase.IDENTIFICATION
TERMINAL_PHASE = LspPhase.EVALUATION


PHASE_DESCRIPTIONS: Dict[LspPhase, Dict[str, str]] = {
    LspPhase.IDENTIFICATION: {
        "title": "Fase 1: Identificación",
        "description": "Definimos el desafío.",
    },
    LspPhase.PROTOCOL_DEVELOPMENT: {
        "title": "Fase 2: Protocolo",
        "description": "Diseñamos la construcción.",
    },
    LspPhase.IMPLEMENTATION: {
        "title": "Fase 3: Implementación",
        "description": "Construimos y compartimos.",
    },
    LspPhase.INSIGHT_DISCOVERY: {
        "title": "Fase 4: Insights",
        "description": "Descubrimos significados.",
    },
    LspPhase.STRATEGY_DEVELOPMENT: {
        "title": "Fase 5: Estrategia",
        "description": "Convertimos insights en acción.",
    },
    LspPhase.EVALUATION: {
        "title": "Fase 6: Evaluación",
        "description": "Reflexionamos y consolidamos.",
    },
}
