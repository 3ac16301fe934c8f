"""
RelaxSketch - Geometrie-Primitives
Punkte, Linien, Kreise, Bögen als id-referenzierte Datensätze
plus geschlossene Schnittpunkt-Formeln
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
from enum import Enum, auto
import math
import uuid

from config.tolerances import Tolerances


def new_id(prefix: str) -> str:
    """Prozess-eindeutige Id mit Typ-Präfix (z.B. ``p_3f2a9c1d``)"""
    return f"{prefix}_{uuid.uuid4().hex[:8]}"


class CurveKind(Enum):
    """Kurven-Typen (Tagged Union über Linie/Kreis/Bogen)"""
    LINE = auto()
    CIRCLE = auto()
    ARC = auto()


@dataclass
class Point:
    """2D-Punkt - Grundbaustein aller Geometrie"""
    x: float = 0.0
    y: float = 0.0
    id: str = field(default_factory=lambda: new_id("p"))
    fixed: bool = False

    def __post_init__(self):
        # Solver liefert NumPy-Skalare, gespeichert werden native Floats
        self.x = float(self.x)
        self.y = float(self.y)

    def distance_to(self, other: 'Point') -> float:
        return math.hypot(self.x - other.x, self.y - other.y)

    def as_tuple(self) -> Tuple[float, float]:
        return (self.x, self.y)

    def to_dict(self) -> dict:
        """Serialisiert zu Dictionary für JSON."""
        return {"id": self.id, "x": self.x, "y": self.y, "fixed": self.fixed}

    @classmethod
    def from_dict(cls, data: dict) -> 'Point':
        return cls(x=data["x"], y=data["y"], id=data["id"], fixed=data.get("fixed", False))

    def __repr__(self):
        return f"P({self.x:.2f}, {self.y:.2f})"


@dataclass
class Line:
    """Liniensegment zwischen zwei Punkt-Ids"""
    p1: str
    p2: str
    id: str = field(default_factory=lambda: new_id("l"))
    construction: bool = False

    kind = CurveKind.LINE

    def point_ids(self) -> Tuple[str, str]:
        return (self.p1, self.p2)

    def other_end(self, point_id: str) -> Optional[str]:
        """Gegenüberliegender Endpunkt oder None wenn point_id kein Endpunkt ist"""
        if point_id == self.p1:
            return self.p2
        if point_id == self.p2:
            return self.p1
        return None

    def to_dict(self) -> dict:
        return {"id": self.id, "p1": self.p1, "p2": self.p2, "construction": self.construction}

    @classmethod
    def from_dict(cls, data: dict) -> 'Line':
        return cls(p1=data["p1"], p2=data["p2"], id=data["id"],
                   construction=data.get("construction", False))


@dataclass
class Circle:
    """Vollkreis um einen Mittelpunkt"""
    center: str
    radius: float
    id: str = field(default_factory=lambda: new_id("c_geo"))
    construction: bool = False

    kind = CurveKind.CIRCLE

    def __post_init__(self):
        self.radius = float(self.radius)

    def to_dict(self) -> dict:
        return {"id": self.id, "center": self.center, "radius": self.radius,
                "construction": self.construction}

    @classmethod
    def from_dict(cls, data: dict) -> 'Circle':
        return cls(center=data["center"], radius=data["radius"], id=data["id"],
                   construction=data.get("construction", False))


@dataclass
class Arc:
    """
    Kreisbogen von p1 nach p2 um center.

    Die Endpunkte liegen bei Erstellung auf dem Radius; der Solver hält sie
    nur über COINCIDENT(punkt, bogen) dort. Gezeichnet wird immer der
    kürzere Weg (siehe topology.arc_sweep).
    """
    center: str
    radius: float
    p1: str
    p2: str
    id: str = field(default_factory=lambda: new_id("a"))
    construction: bool = False

    kind = CurveKind.ARC

    def __post_init__(self):
        self.radius = float(self.radius)

    def point_ids(self) -> Tuple[str, str]:
        return (self.p1, self.p2)

    def to_dict(self) -> dict:
        return {"id": self.id, "center": self.center, "radius": self.radius,
                "p1": self.p1, "p2": self.p2, "construction": self.construction}

    @classmethod
    def from_dict(cls, data: dict) -> 'Arc':
        return cls(center=data["center"], radius=data["radius"], p1=data["p1"], p2=data["p2"],
                   id=data["id"], construction=data.get("construction", False))


def index_points(points: List[Point]) -> Dict[str, Point]:
    """Id -> Punkt Lookup"""
    return {p.id: p for p in points}


# === Schnittpunkt-Berechnung (geschlossene Formeln) ===

def line_line_intersection(a1: Tuple[float, float], a2: Tuple[float, float],
                           b1: Tuple[float, float], b2: Tuple[float, float]
                           ) -> Optional[Tuple[float, float]]:
    """
    Schnittpunkt zweier unendlicher Geraden a1-a2 und b1-b2.

    Returns:
        (x, y) oder None wenn parallel (|det| < PARALLEL_DET)
    """
    det = (a2[0] - a1[0]) * (b2[1] - b1[1]) - (b2[0] - b1[0]) * (a2[1] - a1[1])
    if abs(det) < Tolerances.PARALLEL_DET:
        return None

    t = ((b2[1] - b1[1]) * (b2[0] - a1[0]) + (b1[0] - b2[0]) * (b2[1] - a1[1])) / det
    return (a1[0] + t * (a2[0] - a1[0]), a1[1] + t * (a2[1] - a1[1]))


def segment_intersection_params(a1: Tuple[float, float], a2: Tuple[float, float],
                                b1: Tuple[float, float], b2: Tuple[float, float]
                                ) -> Optional[Tuple[float, float]]:
    """
    Parameter (lambda, gamma) des Schnittpunkts auf Segment a bzw. b.

    Exakt parallele Segmente (det == 0) liefern None. Die Parameter sind
    nicht auf [0, 1] beschränkt, das prüft der Aufrufer.
    """
    det = (a2[0] - a1[0]) * (b2[1] - b1[1]) - (b2[0] - b1[0]) * (a2[1] - a1[1])
    if det == 0:
        return None

    lam = ((b2[1] - b1[1]) * (b2[0] - a1[0]) + (b1[0] - b2[0]) * (b2[1] - a1[1])) / det
    gamma = ((a1[1] - a2[1]) * (b2[0] - a1[0]) + (a2[0] - a1[0]) * (b2[1] - a1[1])) / det
    return (lam, gamma)


def line_circle_intersection(p1: Tuple[float, float], p2: Tuple[float, float],
                             center: Tuple[float, float], radius: float
                             ) -> List[Tuple[float, float]]:
    """
    Schnittpunkte der unendlichen Geraden p1-p2 mit einem Kreis.

    0 Punkte wenn die Gerade vorbeigeht, 1 bei Berührung (Diskriminante ~0),
    sonst 2.
    """
    dx = p2[0] - p1[0]
    dy = p2[1] - p1[1]
    a = dx * dx + dy * dy
    if a < Tolerances.EPSILON_MATH:
        return []

    fx = p1[0] - center[0]
    fy = p1[1] - center[1]
    b = 2 * (fx * dx + fy * dy)
    c = fx * fx + fy * fy - radius * radius

    delta = b * b - 4 * a * c
    if delta < 0:
        return []

    root = math.sqrt(delta)
    t1 = (-b - root) / (2 * a)
    result = [(p1[0] + t1 * dx, p1[1] + t1 * dy)]
    if delta > Tolerances.TANGENT_EPS:
        t2 = (-b + root) / (2 * a)
        result.append((p1[0] + t2 * dx, p1[1] + t2 * dy))
    return result


def circle_circle_intersection(c1: Tuple[float, float], r1: float,
                               c2: Tuple[float, float], r2: float
                               ) -> List[Tuple[float, float]]:
    """
    Schnittpunkte zweier Kreise über die Potenzgerade.

    Leer wenn disjunkt, ineinander liegend oder konzentrisch (d == 0).
    """
    dx = c2[0] - c1[0]
    dy = c2[1] - c1[1]
    d = math.hypot(dx, dy)

    if d > r1 + r2 or d < abs(r1 - r2) or d == 0:
        return []

    a = (r1 * r1 - r2 * r2 + d * d) / (2 * d)
    h = math.sqrt(max(0.0, r1 * r1 - a * a))

    mx = c1[0] + a * dx / d
    my = c1[1] + a * dy / d

    result = [(mx + h * dy / d, my - h * dx / d)]
    if h > Tolerances.TANGENT_EPS:
        result.append((mx - h * dy / d, my + h * dx / d))
    return result


def project_on_line(point: Tuple[float, float], a: Tuple[float, float],
                    b: Tuple[float, float]) -> Optional[Tuple[float, float]]:
    """Lotfußpunkt auf der unendlichen Geraden a-b (None bei Nulllänge)"""
    dx = b[0] - a[0]
    dy = b[1] - a[1]
    l2 = dx * dx + dy * dy
    if l2 < Tolerances.EPSILON_MATH:
        return None
    t = ((point[0] - a[0]) * dx + (point[1] - a[1]) * dy) / l2
    return (a[0] + t * dx, a[1] + t * dy)


def point_line_distance(point: Tuple[float, float], a: Tuple[float, float],
                        b: Tuple[float, float]) -> float:
    """Abstand Punkt zur unendlichen Geraden a-b"""
    foot = project_on_line(point, a, b)
    if foot is None:
        return math.hypot(point[0] - a[0], point[1] - a[1])
    return math.hypot(point[0] - foot[0], point[1] - foot[1])
