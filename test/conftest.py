import pytest
from loguru import logger

from config.feature_flags import set_flag
from relaxsketch.session import SketchSession
from relaxsketch.sketch import Sketch


def pytest_configure(config):
    """Registriert die Test-Marker."""
    config.addinivalue_line("markers", "solver: Relaxations-Solver")
    config.addinivalue_line("markers", "topology: Zyklus-Extraktion und Verschachtelung")
    config.addinivalue_line("markers", "operations: Fillet, Trim, Schnittpunkte")
    config.addinivalue_line("markers", "session: Sketch-Zustand, Auswahl, History")


# Global Feature Flag Defaults - Single Source of Truth for Test Isolation
# ========================================================================
# WICHTIG: Jeder Test muss mit sauberen Feature-Flags starten.
# Diese Defaults müssen mit config/feature_flags.py synchron gehalten werden.
FEATURE_FLAG_DEFAULTS = {
    # Debug-Modi
    "sketch_debug": False,
    "solver_residual_logging": True,

    # Operationen
    "auto_intersection_kdtree": True,
}


@pytest.fixture(autouse=True)
def _global_feature_flag_isolation():
    """
    Globale Feature-Flag-Isolation.

    Stellt sicher, dass jeder Test mit sauberen, deterministischen
    Feature-Flags startet.
    """
    for key, value in FEATURE_FLAG_DEFAULTS.items():
        set_flag(key, value)

    yield

    for key, value in FEATURE_FLAG_DEFAULTS.items():
        set_flag(key, value)


@pytest.fixture
def loguru_messages():
    """Sammelt loguru-Nachrichten (loguru schreibt nicht in caplog)."""
    messages = []
    handler_id = logger.add(lambda msg: messages.append(msg.record["message"]), level="DEBUG")
    yield messages
    logger.remove(handler_id)


@pytest.fixture
def sketch():
    return Sketch("test")


@pytest.fixture
def session():
    return SketchSession(Sketch("session"))
