"""
RelaxSketch - Feature Flags
===========================

Feature Flags ermöglichen inkrementelle Rollouts und einfaches Rollback.
Neue Features werden mit Flag=False eingeführt und nach Validierung aktiviert.

Diese Datei enthält nur aktive Debug-Flags und Verhaltens-Schalter des Sketch-Kerns.
"""

from typing import Dict

# Feature Flag Registry
# =====================

FEATURE_FLAGS: Dict[str, bool] = {
    # Debug-Modi
    "sketch_debug": False,  # Topologie/Profil Debug ([TOPOLOGY], [PROFILE])
    "solver_residual_logging": True,  # Warnung wenn Residuum nach allen Pässen zu hoch

    # Operationen
    "auto_intersection_kdtree": True,  # Deduplizierung der Auto-Schnittpunkte via scipy cKDTree
}


def is_enabled(flag: str) -> bool:
    """
    Prüft ob ein Feature-Flag aktiviert ist.

    Args:
        flag: Name des Feature-Flags

    Returns:
        True wenn aktiviert, False wenn nicht aktiviert oder unbekannt
    """
    return FEATURE_FLAGS.get(flag, False)


def set_flag(flag: str, value: bool) -> None:
    """
    Setzt ein Feature-Flag zur Laufzeit.
    Nützlich für Tests und Debugging.

    Args:
        flag: Name des Feature-Flags
        value: Neuer Wert
    """
    FEATURE_FLAGS[flag] = value


def get_all_flags() -> Dict[str, bool]:
    """Gibt alle Feature-Flags zurück."""
    return FEATURE_FLAGS.copy()
