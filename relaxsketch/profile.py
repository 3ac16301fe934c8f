"""
RelaxSketch - Profil-Schnittstelle zum Kernel
=============================================

Übersetzt die geschlossenen Schleifen eines Sketches in Flächen
(Außenkontur + Löcher) aus Linien-, Bogen- und Kreis-Segmenten und baut
daraus Extrude-/Revolve-Anfragen. Der Sketch wird nie verändert.

Bögen werden als Drei-Punkt-Bogen übergeben (Start, Mitte, Ende), damit
der Kernel keine Winkelkonvention erraten muss.
"""

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple, TYPE_CHECKING
import math

from loguru import logger

from config.tolerances import Tolerances
from .geometry import CurveKind
from .topology import CoordLookup, LoopShape, arc_midpoint, arc_sweep

if TYPE_CHECKING:
    from .sketch import Sketch

Coord = Tuple[float, float]


class ProfileError(Exception):
    """Profil kann nicht an den Kernel übergeben werden"""
    pass


@dataclass
class ProfileSegment:
    """Segment einer Profil-Schleife"""
    kind: CurveKind
    start: Coord
    end: Coord
    center: Optional[Coord] = None
    radius: Optional[float] = None
    clockwise: bool = False
    mid: Optional[Coord] = None


@dataclass
class ProfileLoop:
    segments: List[ProfileSegment]
    area: float
    samples: List[Coord] = field(default_factory=list, repr=False)


@dataclass
class ProfileFace:
    """Außenkontur mit Löchern"""
    outer: ProfileLoop
    holes: List[ProfileLoop] = field(default_factory=list)

    @property
    def area(self) -> float:
        return self.outer.area - sum(h.area for h in self.holes)


@dataclass
class ExtrudeRequest:
    faces: List[ProfileFace]
    depth: float


@dataclass
class RevolveRequest:
    """
    Rotation um eine Sketch-Linie.

    ``lathe_points`` enthält pro Fläche die Außenkontur als
    (Radius, Höhe) relativ zur Achse.
    """
    faces: List[ProfileFace]
    axis_start: Coord
    axis_end: Coord
    angle: float
    lathe_points: List[List[Coord]] = field(default_factory=list)


def _segments(shape: LoopShape, coords: CoordLookup) -> List[ProfileSegment]:
    loop = shape.loop
    if loop.circle is not None:
        cx, cy = coords.of(loop.circle.center)
        r = loop.circle.radius
        return [ProfileSegment(CurveKind.CIRCLE, (cx + r, cy), (cx + r, cy),
                               center=(cx, cy), radius=r)]

    segments = []
    for edge in loop.edges:
        start, end = coords(edge.start), coords(edge.end)
        if edge.kind == CurveKind.ARC and edge.arc is not None:
            center = coords.of(edge.arc.center)
            _, sweep = arc_sweep(center, start, end)
            segments.append(ProfileSegment(
                CurveKind.ARC, start, end,
                center=center,
                radius=edge.arc.radius,
                clockwise=sweep < 0,
                mid=arc_midpoint(center, edge.arc.radius, start, end),
            ))
        else:
            segments.append(ProfileSegment(CurveKind.LINE, start, end))
    return segments


def _profile_loop(shape: LoopShape, coords: CoordLookup) -> ProfileLoop:
    return ProfileLoop(_segments(shape, coords), shape.area, list(shape.samples))


def build_faces(sketch: 'Sketch', allowed_ids: Optional[Iterable[str]] = None,
                axis_line_id: Optional[str] = None) -> List[ProfileFace]:
    """
    Flächen aus den geschlossenen Schleifen des Sketches.

    Raises:
        ProfileError: Keine geschlossene Schleife vorhanden
    """
    find = sketch.canonical_map()
    coords = CoordLookup(sketch.points, find)
    regions = sketch.profile_regions(allowed_ids=allowed_ids, axis_line_id=axis_line_id)
    if not regions:
        logger.warning("[PROFILE] Kein geschlossenes Profil gefunden")
        raise ProfileError("Kein geschlossenes Profil gefunden")

    return [
        ProfileFace(_profile_loop(r.outer, coords), [_profile_loop(h, coords) for h in r.holes])
        for r in regions
    ]


def extrude_request(sketch: 'Sketch', depth: float,
                    allowed_ids: Optional[Iterable[str]] = None) -> ExtrudeRequest:
    """Extrusion aller (oder der erlaubten) Flächen um depth"""
    if depth == 0 or math.isnan(depth):
        raise ProfileError("Extrusionstiefe darf nicht 0 sein")
    return ExtrudeRequest(build_faces(sketch, allowed_ids=allowed_ids), float(depth))


def revolve_request(sketch: 'Sketch', axis_line_id: str, angle: float = 360.0,
                    allowed_ids: Optional[Iterable[str]] = None) -> RevolveRequest:
    """
    Rotation um eine Sketch-Linie.

    Die Achse selbst gehört nie zum Profil. Profile, die auf beiden
    Seiten der Achse liegen, werden abgelehnt.

    Raises:
        ProfileError: Achse fehlt, hat Länge 0, ungültiger Winkel oder
            das Profil kreuzt die Achse
    """
    axis = sketch.get_line(axis_line_id)
    if axis is None:
        raise ProfileError(f"Rotationsachse {axis_line_id} existiert nicht")
    if not 0 < angle <= 360:
        raise ProfileError(f"Ungültiger Rotationswinkel: {angle}")

    a = sketch.coords(axis.p1)
    b = sketch.coords(axis.p2)
    if a is None or b is None:
        raise ProfileError("Rotationsachse hat keine gültigen Endpunkte")

    dx, dy = b[0] - a[0], b[1] - a[1]
    length = math.hypot(dx, dy)
    if length < Tolerances.REVOLVE_AXIS_EPS:
        raise ProfileError("Rotationsachse hat Länge 0")
    ux, uy = dx / length, dy / length

    faces = build_faces(sketch, allowed_ids=allowed_ids, axis_line_id=axis_line_id)

    lathe: List[List[Coord]] = []
    eps = Tolerances.REVOLVE_AXIS_EPS
    for face in faces:
        points = []
        left = right = False
        for px, py in face.outer.samples:
            rx, ry = px - a[0], py - a[1]
            side = ux * ry - uy * rx
            height = ux * rx + uy * ry
            left = left or side > eps
            right = right or side < -eps
            points.append((abs(side), height))
        if left and right:
            logger.warning(f"[PROFILE] Profil kreuzt die Rotationsachse {axis_line_id}")
            raise ProfileError("Profil kreuzt die Rotationsachse")
        lathe.append(points)

    return RevolveRequest(faces, a, b, float(angle), lathe)
