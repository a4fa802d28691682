"""Inactivity decay: calculation, warnings and the once-per-day application."""

from src.modules.decay.service import (
    DecayCheckResult,
    DecayService,
    DecaySeverity,
    DecayWarning,
)

__all__ = ["DecayService", "DecayCheckResult", "DecayWarning", "DecaySeverity"]
