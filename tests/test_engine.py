"""
Unit tests for the phase engine.
Tests the normalizer, classifier, transition guard, conclusion detector
and the turn pipeline.
"""

import logging

import pytest

from lsp_insight.engine import (
    GuardReason,
    admit,
    classify,
    clean,
    detect,
    is_concluded,
    process_turn,
)
from lsp_insight.engine.classifier import SOURCE_HEURISTIC, SOURCE_MARKER, fold
from lsp_insight.models.phase import LspPhase


class TestNormalizer:
    """Tests for clean()."""

    def test_strips_phase_marker(self):
        assert clean("[PHASE_UPDATE: 2]\nDiseñemos tu protocolo") == "Diseñemos tu protocolo"

    def test_strips_marker_without_space(self):
        assert clean("Hola [PHASE_UPDATE:3] mundo") == "Hola mundo"

    def test_strips_marker_mid_text(self):
        text = "Primera parte.\n[PHASE_UPDATE: 4]\nSegunda parte."
        assert clean(text) == "Primera parte.\nSegunda parte."

    def test_strips_technical_annotations(self):
        assert clean("[END_SESSION] Gracias por participar") == "Gracias por participar"
        assert clean("Texto [INTERNAL_NOTE: revisar] final") == "Texto final"
        assert clean("[NOTE: algo interno]Visible") == "Visible"

    def test_preserves_ordinary_brackets(self):
        text = "- [X] Modelo construido\n- [ ] Historia contada\n[enlace](https://example.com)"
        assert clean(text) == text

    def test_preserves_short_capitals(self):
        assert clean("Todo [OK] por ahora") == "Todo [OK] por ahora"

    def test_recombined_markers_are_removed(self):
        # Removing the inner marker splices the outer one back together
        assert clean("[PHASE_[PHASE_UPDATE: 1]UPDATE: 2]Hola") == "Hola"

    def test_collapses_blank_runs(self):
        assert clean("Uno\n\n\n\nDos") == "Uno\n\nDos"
        assert clean("Uno\n  \n\t\n\nDos") == "Uno\n\nDos"

    def test_keeps_single_blank_line(self):
        assert clean("Uno\n\nDos") == "Uno\n\nDos"

    def test_normalizes_crlf(self):
        assert clean("Uno\r\n\r\n\r\nDos") == "Uno\n\nDos"

    def test_trims(self):
        assert clean("   \n Hola \n\n ") == "Hola"

    def test_empty(self):
        assert clean("") == ""
        assert clean("[PHASE_UPDATE: 1]") == ""

    @pytest.mark.parametrize("text", [
        "[PHASE_UPDATE: 2]\nDiseñemos tu protocolo...\n\n\n\nSiguiente",
        "  [END_SESSION]  \n\n\n [NOTE: x] texto ",
        "[PHASE_[PHASE_UPDATE: 1]UPDATE: 2]Hola\r\n\r\n\r\nAdiós",
        "- [X] hecho\n\n \n\n- [ ] pendiente",
        "Texto sin marcas.",
    ])
    def test_idempotent(self, text):
        once = clean(text)
        assert clean(once) == once


class TestClassifier:
    """Tests for the two-tier classifier."""

    def test_marker(self):
        assert classify("[PHASE_UPDATE: 2]\nHola", LspPhase.IDENTIFICATION) == LspPhase.PROTOCOL_DEVELOPMENT

    def test_marker_without_space(self):
        assert classify("[PHASE_UPDATE:3]", LspPhase.PROTOCOL_DEVELOPMENT) == LspPhase.IMPLEMENTATION

    def test_last_marker_wins(self):
        text = "[PHASE_UPDATE: 2] perdón, corrijo [PHASE_UPDATE: 3]"
        assert classify(text, LspPhase.PROTOCOL_DEVELOPMENT) == LspPhase.IMPLEMENTATION

    def test_conflicting_markers_logged_at_debug(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="lsp_insight.engine.classifier"):
            classify("[PHASE_UPDATE: 2] [PHASE_UPDATE: 3]", LspPhase.IDENTIFICATION)
        assert any("Conflicting phase markers" in r.message for r in caplog.records)
        assert all(r.levelno == logging.DEBUG for r in caplog.records)

    def test_out_of_range_marker_ignored(self):
        assert classify("[PHASE_UPDATE: 7]", LspPhase.IDENTIFICATION) is None
        assert classify("[PHASE_UPDATE: 0]", LspPhase.IDENTIFICATION) is None

    def test_out_of_range_marker_does_not_override_valid(self):
        text = "[PHASE_UPDATE: 3] ... [PHASE_UPDATE: 9]"
        assert classify(text, LspPhase.PROTOCOL_DEVELOPMENT) == LspPhase.IMPLEMENTATION

    def test_marker_takes_precedence_over_heuristics(self):
        # "comencemos a construir" would match phase 3 on its own
        text = "[PHASE_UPDATE: 2]\nAntes de que comencemos a construir, diseñemos tu protocolo."
        result = detect(text, LspPhase.IDENTIFICATION)
        assert result.phase == LspPhase.PROTOCOL_DEVELOPMENT
        assert result.source == SOURCE_MARKER

    def test_heuristic_transition(self):
        result = detect("¡Muy bien! Comencemos a construir tu primer modelo.", LspPhase.PROTOCOL_DEVELOPMENT)
        assert result.phase == LspPhase.IMPLEMENTATION
        assert result.source == SOURCE_HEURISTIC

    def test_heuristic_ignores_accents_and_case(self):
        assert classify("DISEÑEMOS TU PROTOCOLO juntos", LspPhase.IDENTIFICATION) == LspPhase.PROTOCOL_DEVELOPMENT

    def test_heuristic_prefers_next_phase(self):
        text = "Comparte tu modelo y luego comencemos a construir el siguiente."
        assert classify(text, LspPhase.PROTOCOL_DEVELOPMENT) == LspPhase.IMPLEMENTATION

    def test_heuristic_falls_back_to_highest(self):
        text = "Comparte tu modelo y luego comencemos a construir el siguiente."
        assert classify(text, LspPhase.IDENTIFICATION) == LspPhase.INSIGHT_DISCOVERY

    def test_single_keyword_is_not_a_transition(self):
        assert classify("Hablemos del protocolo y la evaluación.", LspPhase.IDENTIFICATION) is None

    def test_reference_phrase_suppression(self):
        assert classify("en la fase 3 se suele explicar la construcción", LspPhase.PROTOCOL_DEVELOPMENT) is None

    def test_reference_phrase_suppresses_matching_text(self):
        text = "En la fase de implementación el facilitador dice: comencemos a construir."
        assert classify(text, LspPhase.PROTOCOL_DEVELOPMENT) is None

    def test_reference_phrase_does_not_suppress_marker(self):
        text = "[PHASE_UPDATE: 3]\nEn la fase de implementación construimos."
        assert classify(text, LspPhase.PROTOCOL_DEVELOPMENT) == LspPhase.IMPLEMENTATION

    def test_no_candidate(self):
        assert classify("¿Cómo te llamas?", LspPhase.IDENTIFICATION) is None
        assert classify("", LspPhase.IDENTIFICATION) is None

    def test_fold(self):
        assert fold("Sesión CONCLUIDA") == "sesion concluida"


class TestTransitionGuard:
    """Tests for admit()."""

    def test_admits_adjacent_step(self):
        decision = admit(LspPhase.IMPLEMENTATION, LspPhase.PROTOCOL_DEVELOPMENT)
        assert decision.admitted
        assert decision.phase == LspPhase.IMPLEMENTATION
        assert decision.reason == GuardReason.ADMITTED

    def test_rejects_regression(self):
        decision = admit(LspPhase.PROTOCOL_DEVELOPMENT, LspPhase.INSIGHT_DISCOVERY)
        assert not decision.admitted
        assert decision.phase == LspPhase.INSIGHT_DISCOVERY
        assert decision.reason == GuardReason.REGRESSION

    def test_rejects_skip(self):
        decision = admit(LspPhase.STRATEGY_DEVELOPMENT, LspPhase.PROTOCOL_DEVELOPMENT)
        assert not decision.admitted
        assert decision.phase == LspPhase.PROTOCOL_DEVELOPMENT
        assert decision.reason == GuardReason.SKIP

    def test_rejects_same_phase(self):
        decision = admit(LspPhase.IDENTIFICATION, LspPhase.IDENTIFICATION)
        assert not decision.admitted
        assert decision.reason == GuardReason.SAME_PHASE

    def test_rejects_no_candidate(self):
        decision = admit(None, LspPhase.IMPLEMENTATION)
        assert not decision.admitted
        assert decision.phase == LspPhase.IMPLEMENTATION
        assert decision.reason == GuardReason.NO_CANDIDATE

    def test_rejection_logged_at_debug(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="lsp_insight.engine.guard"):
            admit(LspPhase.IDENTIFICATION, LspPhase.EVALUATION)
        assert len(caplog.records) == 1
        assert caplog.records[0].levelno == logging.DEBUG

    @pytest.mark.parametrize("current", list(LspPhase))
    @pytest.mark.parametrize("candidate", list(LspPhase))
    def test_admitted_phase_is_at_most_one_step_ahead(self, candidate, current):
        decision = admit(candidate, current)
        assert current <= decision.phase <= current + 1
        assert decision.admitted == (candidate == current + 1)


class TestConclusionDetector:
    """Tests for is_concluded()."""

    def test_closing_phrase(self):
        assert is_concluded("Gracias por tu trabajo. Con esto concluimos la sesión.")

    def test_closing_phrase_with_accents(self):
        assert is_concluded("Sesión concluida.")

    def test_no_closing_phrase(self):
        assert not is_concluded("Sigamos construyendo.")
        assert not is_concluded("")


class TestPipeline:
    """Tests for process_turn()."""

    def test_same_phase_marker_scenario(self):
        outcome = process_turn("[PHASE_UPDATE: 1]\n¡Hola! Soy tu asistente...", LspPhase.IDENTIFICATION)
        assert outcome.candidate == LspPhase.IDENTIFICATION
        assert outcome.decision.reason == GuardReason.SAME_PHASE
        assert outcome.phase == LspPhase.IDENTIFICATION
        assert not outcome.phase_changed
        assert outcome.content == "¡Hola! Soy tu asistente..."

    def test_adjacent_marker_scenario(self):
        outcome = process_turn("[PHASE_UPDATE: 2]\nDiseñemos tu protocolo...", LspPhase.IDENTIFICATION)
        assert outcome.candidate == LspPhase.PROTOCOL_DEVELOPMENT
        assert outcome.decision.admitted
        assert outcome.phase == LspPhase.PROTOCOL_DEVELOPMENT
        assert outcome.phase_changed
        assert "[" not in outcome.content
        assert outcome.content == "Diseñemos tu protocolo..."

    def test_conclusion_forces_terminal_phase(self):
        outcome = process_turn("Gracias. Con esto concluimos.", LspPhase.PROTOCOL_DEVELOPMENT)
        assert outcome.concluded
        assert outcome.phase == LspPhase.EVALUATION
        assert not outcome.decision.admitted

    def test_conclusion_in_terminal_phase(self):
        outcome = process_turn("Resumen final de la sesión.", LspPhase.EVALUATION)
        assert outcome.concluded
        assert outcome.phase == LspPhase.EVALUATION
        assert not outcome.phase_changed

    def test_rejected_marker_is_final(self):
        # Marker skips ahead; the heuristic would suggest the adjacent phase
        text = "[PHASE_UPDATE: 5]\nComencemos a construir."
        outcome = process_turn(text, LspPhase.PROTOCOL_DEVELOPMENT)
        assert outcome.candidate == LspPhase.STRATEGY_DEVELOPMENT
        assert outcome.decision.reason == GuardReason.SKIP
        assert outcome.phase == LspPhase.PROTOCOL_DEVELOPMENT

    def test_conclusion_checked_on_cleaned_text(self):
        outcome = process_turn("[CON_ESTO_CONCLUIMOS] Seguimos con la fase.", LspPhase.IMPLEMENTATION)
        assert not outcome.concluded
        assert outcome.phase == LspPhase.IMPLEMENTATION

    def test_monotonic_over_a_session(self):
        turns = [
            "[PHASE_UPDATE: 1]\nBienvenido.",
            "[PHASE_UPDATE: 2]\nDiseñemos tu protocolo.",
            "[PHASE_UPDATE: 1]\nVolvamos atrás.",
            "[PHASE_UPDATE: 4]\nSaltemos.",
            "Comencemos a construir.",
            "[PHASE_UPDATE: 3]\nSigue construyendo.",
            "[PHASE_UPDATE: 4]\nComparte tu modelo.",
            "[PHASE_UPDATE: 5]\nDesarrollemos estrategias.",
            "[PHASE_UPDATE: 6]\nEvaluemos el proceso.",
            "[PHASE_UPDATE: 2]\nOtra vez.",
        ]
        phase = LspPhase.IDENTIFICATION
        history = [phase]
        for text in turns:
            phase = process_turn(text, phase).phase
            history.append(phase)

        for before, after in zip(history, history[1:]):
            assert 0 <= after - before <= 1
        assert history[-1] == LspPhase.EVALUATION
        assert history == [1, 1, 2, 2, 2, 3, 3, 4, 5, 6, 6]
