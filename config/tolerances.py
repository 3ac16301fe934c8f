"""
RelaxSketch - Zentralisierte Toleranz-Konfiguration
===================================================

Alle numerischen Toleranzen des Sketch-Kerns an einem Ort.

Toleranz-Philosophie:
- Solver: feste Schrittweite + feste Pass-Anzahl (Relaxation, kein Newton)
- Operationen: 1 Einheit Fangradius (Trim, Intersection-Deduplizierung)
- Topologie: Flächen unter 0.001 gelten als entartet

Verwendung:
    from config.tolerances import Tolerances

    # Direkt als Klassenvariablen
    step = Tolerances.SOLVER_STEP

    # Oder via Convenience-Funktionen
    from config.tolerances import solver_step
    step = solver_step()
"""


class Tolerances:
    """
    Zentrale Toleranz-Konstanten für RelaxSketch.

    Kategorien:
    - SOLVER_*: Relaxations-Solver
    - TRIM_* / INTERSECTION_* / PARALLEL_*: Abgeleitete Operationen
    - FILLET_*: Fillet-Konstruktion
    - LOOP_* / ARC_* / CIRCLE_*: Topologie und Profil-Sampling
    - REVOLVE_*: Profil-Export für den Kernel
    """

    # =========================================================================
    # Relaxations-Solver
    # =========================================================================

    # Relaxationsfaktor pro Korrekturschritt
    # 0.5 = jeder freie Punkt übernimmt die Hälfte des Residuums
    SOLVER_STEP = 0.5

    # Feste Anzahl Pässe über die Constraint-Liste
    SOLVER_ITERATIONS = 20

    # Unterhalb dieses Abstands ist DISTANCE entartet (keine Richtung)
    SOLVER_DEGENERATE_DISTANCE = 0.001

    # Summiertes Rest-Residuum, ab dem eine Warnung geloggt wird
    SOLVER_RESIDUAL_WARN = 0.5

    # =========================================================================
    # Abgeleitete Operationen
    # =========================================================================

    # Punkt liegt "auf" einem Kreis (Trim: Kreis -> Bogen)
    TRIM_PROXIMITY = 1.0

    # Neue Schnittpunkte näher als das werden verworfen
    INTERSECTION_DEDUP = 1.0

    # Auto-Intersection: Parameter strikt in (eps, 1 - eps)
    INTERSECTION_INTERIOR_EPS = 0.001

    # Determinante darunter = parallel
    PARALLEL_DET = 1e-9

    # Diskriminante / Sehnenhöhe darunter = Berührpunkt (nur eine Lösung)
    TANGENT_EPS = 1e-9

    # =========================================================================
    # Fillet
    # =========================================================================

    FILLET_DEFAULT_RADIUS = 20.0

    # Tangentenabstand maximal 40% der kürzeren Linie
    FILLET_MAX_FRACTION = 0.4

    # =========================================================================
    # Topologie / Profile
    # =========================================================================

    LOOP_MIN_AREA = 0.001

    # Sicherheitsgrenze für den Zyklus-Walk
    LOOP_MAX_STEPS = 1000

    # Unterteilungen pro Bogen bzw. Vollkreis beim Polygon-Sampling
    ARC_SAMPLES = 12
    CIRCLE_SAMPLES = 64

    # Profil gilt als "auf" der Rotationsachse
    REVOLVE_AXIS_EPS = 1e-6

    # =========================================================================
    # Mathematische Epsilon-Werte (Numerische Stabilität)
    # =========================================================================

    # Vermeidet Division durch Null
    EPSILON_MATH = 1e-9


# =============================================================================
# Convenience-Funktionen
# =============================================================================

def solver_step() -> float:
    """Gibt den Standard-Relaxationsfaktor zurück."""
    return Tolerances.SOLVER_STEP


def solver_iterations() -> int:
    """Gibt die Standard-Passanzahl des Solvers zurück."""
    return Tolerances.SOLVER_ITERATIONS


def trim_proximity() -> float:
    """Gibt den Fangradius für Trim/Intersection zurück."""
    return Tolerances.TRIM_PROXIMITY


# =============================================================================
# Toleranz-Validierung (für Debugging)
# =============================================================================

def validate_tolerances():
    """
    Validiert dass alle Toleranzen sinnvolle Werte haben.
    Nützlich für Tests und Debugging.
    """
    issues = []

    # Schrittweite > 1 überschießt, <= 0 bewegt nichts
    if not (0.0 < Tolerances.SOLVER_STEP <= 1.0):
        issues.append(f"SOLVER_STEP außerhalb sinnvoller Grenzen: {Tolerances.SOLVER_STEP}")

    if Tolerances.SOLVER_ITERATIONS < 1:
        issues.append(f"SOLVER_ITERATIONS muss >= 1 sein: {Tolerances.SOLVER_ITERATIONS}")

    if not (0.0 < Tolerances.INTERSECTION_INTERIOR_EPS < 0.5):
        issues.append(
            f"INTERSECTION_INTERIOR_EPS außerhalb sinnvoller Grenzen: {Tolerances.INTERSECTION_INTERIOR_EPS}"
        )

    if not (0.0 < Tolerances.FILLET_MAX_FRACTION < 0.5):
        issues.append(f"FILLET_MAX_FRACTION außerhalb sinnvoller Grenzen: {Tolerances.FILLET_MAX_FRACTION}")

    return issues


# Automatische Validierung beim Import (nur Warnung, kein Fehler)
_validation_issues = validate_tolerances()
if _validation_issues:
    from loguru import logger
    for issue in _validation_issues:
        logger.warning(f"Toleranz-Validierung: {issue}")
