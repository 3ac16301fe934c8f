"""
RelaxSketch - Fillet Operation
==============================

Ersetzt die Ecke zwischen zwei Linien durch einen tangentialen Bogen.

Verwendung:
    from relaxsketch.operations import FilletOperation

    op = FilletOperation(sketch)
    result = op.execute(corner_point_id, radius=20.0)
    if result.success:
        sketch.solve()

Passt der Radius nicht (Tangentenabstand > 40% einer Linienlänge), wird
er verkleinert und das Ergebnis als WARNING gemeldet.
"""

import math
from dataclasses import dataclass
from typing import List, Tuple, TYPE_CHECKING
from loguru import logger

from config.tolerances import Tolerances
from ..coincidence import coincident_cluster
from ..constraints import (
    Constraint, make_point_on_circle, make_radius, make_tangent,
)
from ..geometry import Arc, Line, Point, new_id
from .base import SketchOperation, OperationResult

if TYPE_CHECKING:
    from relaxsketch.sketch import Sketch


@dataclass
class FilletGeometry:
    """Berechnete Fillet-Geometrie an einer Ecke."""
    radius: float
    tangent1: Tuple[float, float]
    tangent2: Tuple[float, float]
    center: Tuple[float, float]
    reduced: bool = False


def compute_fillet(vertex: Tuple[float, float], far1: Tuple[float, float],
                   far2: Tuple[float, float], radius: float) -> FilletGeometry:
    """
    Tangentenpunkte und Mittelpunkt für einen Fillet.

    Args:
        vertex: Eckpunkt
        far1, far2: Gegenüberliegende Endpunkte der beiden Linien
        radius: Gewünschter Radius

    Raises:
        ValueError: Linie mit Länge 0 oder kollineare Ecke
    """
    v1 = (far1[0] - vertex[0], far1[1] - vertex[1])
    v2 = (far2[0] - vertex[0], far2[1] - vertex[1])
    len1 = math.hypot(*v1)
    len2 = math.hypot(*v2)
    if len1 < Tolerances.EPSILON_MATH or len2 < Tolerances.EPSILON_MATH:
        raise ValueError("Linie mit Länge 0 an der Ecke")

    n1 = (v1[0] / len1, v1[1] / len1)
    n2 = (v2[0] / len2, v2[1] / len2)
    dot = max(-1.0, min(1.0, n1[0] * n2[0] + n1[1] * n2[1]))
    angle = math.acos(dot)
    half = angle / 2

    # Gestreckte (180°) oder zurücklaufende (0°) Ecke hat keinen Fillet
    if math.sin(half) < Tolerances.EPSILON_MATH or abs(math.tan(half)) < Tolerances.EPSILON_MATH \
            or math.pi - angle < 1e-6:
        raise ValueError("Kollineare Linien")

    dist = radius / math.tan(half)
    reduced = False
    limit = Tolerances.FILLET_MAX_FRACTION
    if dist > len1 * limit or dist > len2 * limit:
        dist = min(len1, len2) * limit
        radius = dist * math.tan(half)
        reduced = True

    t1 = (vertex[0] + n1[0] * dist, vertex[1] + n1[1] * dist)
    t2 = (vertex[0] + n2[0] * dist, vertex[1] + n2[1] * dist)

    bx, by = n1[0] + n2[0], n1[1] + n2[1]
    b_len = math.hypot(bx, by)
    to_center = radius / math.sin(half)
    center = (vertex[0] + bx / b_len * to_center, vertex[1] + by / b_len * to_center)

    return FilletGeometry(radius, t1, t2, center, reduced)


class FilletOperation(SketchOperation):
    """
    Fillet an einem Eckpunkt.

    Die Ecke darf ein Koinzidenz-Cluster sein; genau zwei Linien müssen
    ihn berühren. Constraints am Cluster werden auf die Tangentenpunkte
    umgehängt, wenn sie auch den jeweiligen Fernpunkt nennen, sonst
    verworfen.
    """

    def execute(self, point_id: str,
                radius: float = Tolerances.FILLET_DEFAULT_RADIUS) -> OperationResult:
        try:
            return self._finish(self._fillet(point_id, radius))
        except Exception as e:
            logger.error(f"[FILLET] Fehler: {e}")
            return self._finish(OperationResult.error(f"Fillet fehlgeschlagen: {e}"))

    def _fillet(self, point_id: str, radius: float) -> OperationResult:
        sketch: 'Sketch' = self.sketch

        vertex = sketch.get_point(point_id)
        if vertex is None:
            return OperationResult.no_target(f"Punkt {point_id} existiert nicht")

        cluster = coincident_cluster(point_id, sketch.constraints)
        in_cluster = set(cluster)
        lines = sketch.lines_at(cluster)
        if len(lines) != 2:
            logger.debug(f"[FILLET] {len(lines)} Linien an der Ecke, benötigt: 2")
            return OperationResult.no_target("Fillet benötigt genau 2 Linien an der Ecke")

        l1, l2 = lines
        far1_id = l1.p2 if l1.p1 in in_cluster else l1.p1
        far2_id = l2.p2 if l2.p1 in in_cluster else l2.p1
        far1, far2 = sketch.get_point(far1_id), sketch.get_point(far2_id)
        if far1 is None or far2 is None:
            return OperationResult.no_target("Linienenden fehlen")
        if far1_id in in_cluster or far2_id in in_cluster:
            return OperationResult.error("Linie liegt vollständig in der Ecke")

        try:
            geo = compute_fillet(vertex.as_tuple(), far1.as_tuple(), far2.as_tuple(), radius)
        except ValueError as e:
            logger.debug(f"[FILLET] Entartete Ecke: {e}")
            return OperationResult.error(f"Entartete Ecke: {e}")

        t1 = Point(*geo.tangent1, id=new_id("p_fil"))
        t2 = Point(*geo.tangent2, id=new_id("p_fil"))
        center = Point(*geo.center, id=new_id("p_fil_c"))
        arc = Arc(center.id, geo.radius, t1.id, t2.id, id=new_id("a_fil"))

        # Linien verkürzen: Fernpunkt -> Tangentenpunkt
        new_l1 = Line(far1_id, t1.id, id=l1.id, construction=l1.construction)
        new_l2 = Line(far2_id, t2.id, id=l2.id, construction=l2.construction)
        sketch.lines = [l for l in sketch.lines if l.id not in (l1.id, l2.id)] + [new_l1, new_l2]

        # Cluster-Punkte, die noch Kreise/Bögen tragen, bleiben erhalten
        held = {c.center for c in sketch.circles}
        for a in sketch.arcs:
            held.update((a.center, a.p1, a.p2))
        removed = [pid for pid in cluster if pid not in held]
        dropped = set(removed)

        sketch.constraints = self._rewire(sketch.constraints, dropped,
                                          far1_id, t1.id, far2_id, t2.id)
        sketch.constraints.extend([
            make_tangent(new_l1.id, arc.id),
            make_tangent(new_l2.id, arc.id),
            make_point_on_circle(t1.id, arc.id),
            make_point_on_circle(t2.id, arc.id),
            make_radius(arc.id, geo.radius),
        ])

        sketch.points = [p for p in sketch.points if p.id not in dropped] + [t1, t2, center]
        sketch.arcs.append(arc)

        created = [t1.id, t2.id, center.id, arc.id]
        logger.info(f"[FILLET] Ecke {point_id}: R={geo.radius:.2f} zwischen {l1.id} und {l2.id}")

        if geo.reduced:
            return OperationResult.warning(
                f"Radius auf {geo.radius:.2f} reduziert", data=geo,
                created=created, removed=removed)
        return OperationResult.ok(f"Fillet R={geo.radius:.2f}", data=geo,
                                  created=created, removed=removed)

    @staticmethod
    def _rewire(constraints: List[Constraint], cluster: set,
                far1: str, t1: str, far2: str, t2: str) -> List[Constraint]:
        result = []
        for c in constraints:
            if not any(pid in cluster for pid in c.points):
                result.append(c)
            elif far1 in c.points:
                c.points = [t1 if pid in cluster else pid for pid in c.points]
                result.append(c)
            elif far2 in c.points:
                c.points = [t2 if pid in cluster else pid for pid in c.points]
                result.append(c)
        return result
