"""
RelaxSketch - Aktions-Katalog
=============================

Welche Constraints und abgeleiteten Operationen zur aktuellen Auswahl
passen. Der Katalog entscheidet nur über die Form der Auswahl
(Anzahl Punkte/Linien/Kreise) plus ein paar topologische Prüfungen
(gemeinsame Ecke, Punkt auf Linie).
"""

from enum import Enum, auto
from typing import List, Optional, Set, TYPE_CHECKING
import math

from config.tolerances import Tolerances
from .coincidence import coincident_cluster
from .constraints import ConstraintType

if TYPE_CHECKING:
    from .sketch import Sketch


class SketchAction(Enum):
    """Constraint-Typen plus abgeleitete Operationen"""
    COINCIDENT = auto()
    HORIZONTAL = auto()
    VERTICAL = auto()
    DISTANCE = auto()
    ANGLE = auto()
    RADIUS = auto()
    TANGENT = auto()
    FIXED = auto()
    PARALLEL = auto()
    MIDPOINT = auto()
    EQUAL_LENGTH = auto()
    FILLET = auto()
    TRIM = auto()
    INTERSECT = auto()

    @property
    def constraint_type(self) -> Optional[ConstraintType]:
        """Zugehöriger Constraint-Typ oder None für Operationen"""
        return ConstraintType.__members__.get(self.name)


def corner_lines(sketch: 'Sketch', point_id: str) -> List[str]:
    """Ids der Linien, die den Koinzidenz-Cluster eines Punkts berühren (dedupliziert)"""
    cluster = coincident_cluster(point_id, sketch.constraints)
    return [l.id for l in sketch.lines_at(cluster)]


def _point_on_line(sketch: 'Sketch', point_id: str, line_id: str) -> bool:
    """Endpunkt der Linie oder per COINCIDENT(punkt, linie) auf ihr"""
    line = sketch.get_line(line_id)
    if line is None:
        return False
    if point_id in line.point_ids():
        return True
    return any(c.type == ConstraintType.COINCIDENT and point_id in c.points and line_id in c.lines
               for c in sketch.constraints)


def _near_circle(sketch: 'Sketch', point_ids: List[str]) -> bool:
    for circle in sketch.circles:
        center = sketch.coords(circle.center)
        if center is None:
            continue
        near = True
        for pid in point_ids:
            p = sketch.coords(pid)
            if p is None or abs(math.hypot(p[0] - center[0], p[1] - center[1]) - circle.radius) \
                    >= Tolerances.TRIM_PROXIMITY:
                near = False
                break
        if near:
            return True
    return False


def can_trim_points(sketch: 'Sketch', a: str, b: str) -> bool:
    """Zwei Punkte liegen auf derselben Linie (Ende oder koinzident) oder auf einem Kreis"""
    for line in sketch.lines:
        # Endpunkt oder COINCIDENT(punkt, linie), beide Punkte auf derselben Linie
        if _point_on_line(sketch, a, line.id) and _point_on_line(sketch, b, line.id):
            return True
    return _near_circle(sketch, [a, b])


def share_corner(sketch: 'Sketch', l1_id: str, l2_id: str) -> bool:
    """Zwei Linien treffen sich direkt oder über einen Koinzidenz-Cluster"""
    l1, l2 = sketch.get_line(l1_id), sketch.get_line(l2_id)
    if l1 is None or l2 is None:
        return False
    if set(l1.point_ids()) & set(l2.point_ids()):
        return True
    find = sketch.canonical_map()
    return bool({find(p) for p in l1.point_ids()} & {find(p) for p in l2.point_ids()})


def available_actions(sketch: 'Sketch') -> List[SketchAction]:
    """
    Katalog der möglichen Aktionen für die aktuelle Auswahl.

    Bögen zählen als Kreise. Eine Auswahl ohne passende Form liefert
    eine leere Liste.
    """
    pts = list(sketch.selected_point_ids)
    lines = list(sketch.selected_line_ids)
    circles = list(sketch.selected_circle_ids)
    np_, nl, nc = len(pts), len(lines), len(circles)

    A = SketchAction
    actions: List[SketchAction] = []

    if np_ == 1 and nl == 0 and nc == 0:
        if len(corner_lines(sketch, pts[0])) == 2:
            actions.append(A.FILLET)
        actions.append(A.FIXED)

    elif np_ == 2 and nl == 0 and nc == 0:
        actions += [A.COINCIDENT, A.HORIZONTAL, A.VERTICAL, A.DISTANCE]
        if can_trim_points(sketch, pts[0], pts[1]):
            actions.append(A.TRIM)

    elif np_ == 0 and nl == 1 and nc == 0:
        actions += [A.HORIZONTAL, A.VERTICAL, A.DISTANCE, A.ANGLE]

    elif np_ == 0 and nl == 2 and nc == 0:
        actions += [A.PARALLEL, A.EQUAL_LENGTH, A.ANGLE]
        if share_corner(sketch, lines[0], lines[1]):
            actions.append(A.FILLET)

    elif np_ == 0 and nl == 0 and nc == 1:
        actions += [A.RADIUS, A.FIXED]

    elif np_ == 0 and nl == 0 and nc == 2:
        actions += [A.TANGENT, A.COINCIDENT, A.DISTANCE]

    elif np_ == 0 and nl == 1 and nc == 1:
        actions += [A.TANGENT, A.DISTANCE, A.COINCIDENT]

    elif np_ == 1 and nl == 0 and nc == 1:
        actions += [A.TANGENT, A.COINCIDENT]

    elif np_ == 1 and nl == 1 and nc == 0:
        actions += [A.COINCIDENT, A.MIDPOINT]

    elif np_ == 2 and nl == 1 and nc == 0:
        if all(_point_on_line(sketch, pid, lines[0]) for pid in pts):
            actions.append(A.TRIM)

    if np_ == 0 and nl + nc == 2:
        actions.append(A.INTERSECT)

    return actions


def fillet_vertex(sketch: 'Sketch') -> Optional[str]:
    """
    Eckpunkt für FILLET aus der Auswahl.

    Ein ausgewählter Punkt ist selbst die Ecke; bei zwei Linien der
    gemeinsame Endpunkt (direkt oder über den Cluster).
    """
    if len(sketch.selected_point_ids) == 1:
        return sketch.selected_point_ids[0]
    if len(sketch.selected_line_ids) != 2:
        return None

    l1 = sketch.get_line(sketch.selected_line_ids[0])
    l2 = sketch.get_line(sketch.selected_line_ids[1])
    if l1 is None or l2 is None:
        return None
    for pid in l1.point_ids():
        if pid in l2.point_ids():
            return pid

    find = sketch.canonical_map()
    roots2: Set[str] = {find(p) for p in l2.point_ids()}
    for pid in l1.point_ids():
        if find(pid) in roots2:
            return pid
    return None
