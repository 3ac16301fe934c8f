"""
RelaxSketch - Configuration Module
==================================

Zentrale Konfiguration für alle globalen Einstellungen.
"""

from .tolerances import Tolerances, solver_step, solver_iterations, trim_proximity
from .feature_flags import is_enabled, set_flag, get_all_flags, FEATURE_FLAGS
