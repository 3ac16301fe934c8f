"""
RelaxSketch - Constraint-System
Geometrische und dimensionale Constraints zwischen Sketch-Elementen
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple
from enum import Enum, auto
import math

from .geometry import new_id, point_line_distance


class ConstraintType(Enum):
    """Alle unterstützten Constraint-Typen"""
    COINCIDENT = auto()     # Punkte zusammen / Punkt auf Linie / Punkt auf Kreis
    HORIZONTAL = auto()     # Zwei Punkte (oder eine Linie) horizontal
    VERTICAL = auto()       # Zwei Punkte (oder eine Linie) vertikal
    DISTANCE = auto()       # Abstand (Punkte, Linienlänge, Kreis-Abstände)
    ANGLE = auto()          # Winkel in Grad (zwei Linien oder Linie zur X-Achse)
    RADIUS = auto()         # Radius eines Kreises/Bogens (exakt, nicht relaxiert)
    TANGENT = auto()        # Tangential (Linie/Kreis, Punkt/Kreis, Kreis/Kreis)
    FIXED = auto()          # Punkt fixiert (Anker für den Solver)
    PARALLEL = auto()       # Zwei Linien parallel
    MIDPOINT = auto()       # Punkt auf Linienmitte
    EQUAL_LENGTH = auto()   # Zwei Linien gleich lang


# Typen deren Wert vom Benutzer kommt
VALUE_TYPES = {ConstraintType.DISTANCE, ConstraintType.ANGLE, ConstraintType.RADIUS}


@dataclass
class Constraint:
    """
    Ein Constraint referenziert Elemente nur über Ids.

    Bögen werden über ``circles`` referenziert (gemeinsamer Namensraum).
    """
    type: ConstraintType
    points: List[str] = field(default_factory=list)
    lines: List[str] = field(default_factory=list)
    circles: List[str] = field(default_factory=list)
    value: Optional[float] = None
    id: str = field(default_factory=lambda: new_id("c"))

    def references(self, entity_id: str) -> bool:
        return entity_id in self.points or entity_id in self.lines or entity_id in self.circles

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type.name,
            "points": list(self.points),
            "lines": list(self.lines),
            "circles": list(self.circles),
            "value": self.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Constraint':
        return cls(
            type=ConstraintType[data["type"]],
            points=list(data.get("points", [])),
            lines=list(data.get("lines", [])),
            circles=list(data.get("circles", [])),
            value=data.get("value"),
            id=data["id"],
        )

    def __repr__(self):
        refs = self.points + self.lines + self.circles
        val = f"={self.value}" if self.value is not None else ""
        return f"{self.type.name}({', '.join(refs)}){val}"


# === Constraint-Factories ===

def make_coincident(*point_ids: str) -> Constraint:
    """Punkte fallen zusammen (Cluster)"""
    return Constraint(ConstraintType.COINCIDENT, points=list(point_ids))


def make_point_on_line(point_id: str, line_id: str) -> Constraint:
    """Punkt liegt auf (unendlicher) Linie"""
    return Constraint(ConstraintType.COINCIDENT, points=[point_id], lines=[line_id])


def make_point_on_circle(point_id: str, circle_id: str) -> Constraint:
    """Punkt liegt auf Kreis oder Bogen"""
    return Constraint(ConstraintType.COINCIDENT, points=[point_id], circles=[circle_id])


def make_horizontal(p1: str, p2: str) -> Constraint:
    return Constraint(ConstraintType.HORIZONTAL, points=[p1, p2])


def make_vertical(p1: str, p2: str) -> Constraint:
    return Constraint(ConstraintType.VERTICAL, points=[p1, p2])


def make_distance(p1: str, p2: str, distance: float) -> Constraint:
    return Constraint(ConstraintType.DISTANCE, points=[p1, p2], value=distance)


def make_radius(circle_id: str, radius: float) -> Constraint:
    return Constraint(ConstraintType.RADIUS, circles=[circle_id], value=radius)


def make_tangent(line_id: str, circle_id: str) -> Constraint:
    """Linie tangential an Kreis/Bogen"""
    return Constraint(ConstraintType.TANGENT, lines=[line_id], circles=[circle_id])


def make_fixed(point_id: str) -> Constraint:
    return Constraint(ConstraintType.FIXED, points=[point_id])


def make_parallel(l1: str, l2: str) -> Constraint:
    return Constraint(ConstraintType.PARALLEL, lines=[l1, l2])


def make_equal_length(l1: str, l2: str) -> Constraint:
    return Constraint(ConstraintType.EQUAL_LENGTH, lines=[l1, l2])


def make_angle(l1: str, l2: Optional[str], degrees: float) -> Constraint:
    """Winkel von l1 nach l2 (oder von der X-Achse nach l1 wenn l2 None)"""
    lines = [l1] if l2 is None else [l1, l2]
    return Constraint(ConstraintType.ANGLE, lines=lines, value=degrees)


def make_midpoint(point_id: str, line_id: str) -> Constraint:
    return Constraint(ConstraintType.MIDPOINT, points=[point_id], lines=[line_id])


# === Winkel-Hilfen ===

def wrap_angle(angle: float) -> float:
    """Normalisiert auf (-pi, pi]"""
    while angle <= -math.pi:
        angle += 2 * math.pi
    while angle > math.pi:
        angle -= 2 * math.pi
    return angle


def wrap_half_turn(angle: float) -> float:
    """Normalisiert auf (-pi/2, pi/2] (Richtung ohne Orientierung)"""
    while angle <= -math.pi / 2:
        angle += math.pi
    while angle > math.pi / 2:
        angle -= math.pi
    return angle


# === Residuen (für Konvergenz-Diagnose) ===

Coord = Tuple[float, float]


def constraint_error(c: Constraint,
                     coord: Callable[[str], Optional[Coord]],
                     line_ends: Dict[str, Tuple[str, str]],
                     circle_geo: Dict[str, Tuple[str, float]]) -> float:
    """
    Betrag der Verletzung eines Constraints (0 = erfüllt).

    Args:
        coord: Punkt-Id -> (x, y) oder None
        line_ends: Linien-Id -> (p1, p2)
        circle_geo: Kreis/Bogen-Id -> (center, radius)

    Unauflösbare Referenzen zählen als erfüllt; das Aufräumen verwaister
    Constraints ist Aufgabe des Sketches.
    """
    t = c.type

    def line_coords(line_id: str):
        ends = line_ends.get(line_id)
        if ends is None:
            return None
        a, b = coord(ends[0]), coord(ends[1])
        if a is None or b is None:
            return None
        return a, b

    def circle(cid: str):
        geo = circle_geo.get(cid)
        if geo is None:
            return None
        center = coord(geo[0])
        if center is None:
            return None
        return center, geo[1]

    pts = [coord(pid) for pid in c.points]
    if any(p is None for p in pts):
        return 0.0

    if t in (ConstraintType.HORIZONTAL, ConstraintType.VERTICAL):
        pair = _pair_from(pts, c.lines, line_coords)
        if pair is None:
            return 0.0
        a, b = pair
        axis = 1 if t == ConstraintType.HORIZONTAL else 0
        return abs(b[axis] - a[axis])

    if t == ConstraintType.DISTANCE:
        if c.value is None:
            return 0.0
        if len(pts) >= 2:
            return abs(math.hypot(pts[1][0] - pts[0][0], pts[1][1] - pts[0][1]) - c.value)
        if len(c.circles) == 2:
            c1, c2 = circle(c.circles[0]), circle(c.circles[1])
            if c1 is None or c2 is None:
                return 0.0
            d = math.hypot(c2[0][0] - c1[0][0], c2[0][1] - c1[0][1])
            return abs(d - (c.value + c1[1] + c2[1]))
        if len(c.lines) == 1 and len(c.circles) == 1:
            ln, ci = line_coords(c.lines[0]), circle(c.circles[0])
            if ln is None or ci is None:
                return 0.0
            return abs(point_line_distance(ci[0], ln[0], ln[1]) - (c.value + ci[1]))
        if len(c.lines) == 1:
            ln = line_coords(c.lines[0])
            if ln is None:
                return 0.0
            return abs(math.hypot(ln[1][0] - ln[0][0], ln[1][1] - ln[0][1]) - c.value)
        return 0.0

    if t == ConstraintType.RADIUS:
        if c.value is None:
            return 0.0
        errs = [abs(circle_geo[cid][1] - c.value) for cid in c.circles if cid in circle_geo]
        return max(errs) if errs else 0.0

    if t == ConstraintType.COINCIDENT:
        if len(pts) >= 2:
            cx = sum(p[0] for p in pts) / len(pts)
            cy = sum(p[1] for p in pts) / len(pts)
            return max(math.hypot(p[0] - cx, p[1] - cy) for p in pts) * 2
        if len(pts) == 1 and c.lines:
            ln = line_coords(c.lines[0])
            return point_line_distance(pts[0], ln[0], ln[1]) if ln else 0.0
        if len(pts) == 1 and c.circles:
            ci = circle(c.circles[0])
            if ci is None:
                return 0.0
            return abs(math.hypot(pts[0][0] - ci[0][0], pts[0][1] - ci[0][1]) - ci[1])
        if len(c.circles) == 2:
            c1, c2 = circle(c.circles[0]), circle(c.circles[1])
            if c1 is None or c2 is None:
                return 0.0
            return math.hypot(c2[0][0] - c1[0][0], c2[0][1] - c1[0][1])
        if len(c.lines) == 1 and len(c.circles) == 1:
            ln, ci = line_coords(c.lines[0]), circle(c.circles[0])
            if ln is None or ci is None:
                return 0.0
            return point_line_distance(ci[0], ln[0], ln[1])
        return 0.0

    if t == ConstraintType.TANGENT:
        if c.lines and c.circles:
            ln, ci = line_coords(c.lines[0]), circle(c.circles[0])
            if ln is None or ci is None:
                return 0.0
            return abs(point_line_distance(ci[0], ln[0], ln[1]) - ci[1])
        if pts and c.circles:
            ci = circle(c.circles[0])
            if ci is None:
                return 0.0
            return abs(math.hypot(pts[0][0] - ci[0][0], pts[0][1] - ci[0][1]) - ci[1])
        if len(c.circles) == 2:
            c1, c2 = circle(c.circles[0]), circle(c.circles[1])
            if c1 is None or c2 is None:
                return 0.0
            d = math.hypot(c2[0][0] - c1[0][0], c2[0][1] - c1[0][1])
            return min(abs(d - (c1[1] + c2[1])), abs(d - abs(c1[1] - c2[1])))
        return 0.0

    if t == ConstraintType.MIDPOINT:
        if not pts or not c.lines:
            return 0.0
        ln = line_coords(c.lines[0])
        if ln is None:
            return 0.0
        mx = (ln[0][0] + ln[1][0]) / 2
        my = (ln[0][1] + ln[1][1]) / 2
        return math.hypot(pts[0][0] - mx, pts[0][1] - my)

    if t == ConstraintType.EQUAL_LENGTH:
        if len(c.lines) < 2:
            return 0.0
        l1, l2 = line_coords(c.lines[0]), line_coords(c.lines[1])
        if l1 is None or l2 is None:
            return 0.0
        len1 = math.hypot(l1[1][0] - l1[0][0], l1[1][1] - l1[0][1])
        len2 = math.hypot(l2[1][0] - l2[0][0], l2[1][1] - l2[0][1])
        return abs(len1 - len2)

    if t in (ConstraintType.PARALLEL, ConstraintType.ANGLE):
        lines = [line_coords(lid) for lid in c.lines]
        if not lines or any(ln is None for ln in lines):
            return 0.0
        angles = [math.atan2(ln[1][1] - ln[0][1], ln[1][0] - ln[0][0]) for ln in lines]
        if t == ConstraintType.PARALLEL:
            if len(angles) < 2:
                return 0.0
            return abs(wrap_half_turn(angles[1] - angles[0]))
        if c.value is None:
            return 0.0
        current = angles[1] - angles[0] if len(angles) >= 2 else angles[0]
        return abs(wrap_angle(math.radians(c.value) - current))

    # FIXED: wird vom Solver erzwungen
    return 0.0


def _pair_from(pts, line_ids, line_coords):
    """Punktpaar aus Punktliste oder erster Linie"""
    if len(pts) >= 2:
        return pts[0], pts[1]
    if line_ids:
        return line_coords(line_ids[0])
    return None


def is_constraint_satisfied(c: Constraint, coord, line_ends, circle_geo,
                            tolerance: float = 1e-3) -> bool:
    """Prüft ob ein Constraint innerhalb der Toleranz erfüllt ist"""
    return constraint_error(c, coord, line_ends, circle_geo) <= tolerance

