"""LSP Insight System - phase tracking for LEGO Serious Play facilitation."""

__version__ = "1.0.0"
