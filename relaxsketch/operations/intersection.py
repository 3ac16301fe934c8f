"""
RelaxSketch - Intersection Operations
=====================================

IntersectionOperation: Schnittpunkte zweier ausgewählter Kurven
(Linie/Kreis/Bogen, Linien als unendliche Geraden, Bögen als Vollkreise).

AutoIntersectionOperation: Alle echten Kreuzungen zwischen Liniensegmenten,
ohne Duplikate zu bestehenden Punkten (KD-Tree über scipy).

Jeder neue Punkt wird per COINCIDENT an beide Ursprungskurven gebunden.
"""

import math
from typing import List, Optional, Tuple, TYPE_CHECKING

import numpy as np
from loguru import logger
from scipy.spatial import cKDTree

from config.feature_flags import is_enabled
from config.tolerances import Tolerances
from ..constraints import Constraint, make_point_on_circle, make_point_on_line
from ..geometry import (
    CurveKind, Point, circle_circle_intersection, line_circle_intersection,
    line_line_intersection, new_id, segment_intersection_params,
)
from .base import SketchOperation, OperationResult

if TYPE_CHECKING:
    from relaxsketch.sketch import Sketch

Coord = Tuple[float, float]


def _bind(point_id: str, curve_id: str, kind: CurveKind) -> Constraint:
    if kind == CurveKind.LINE:
        return make_point_on_line(point_id, curve_id)
    return make_point_on_circle(point_id, curve_id)


class IntersectionOperation(SketchOperation):
    """Schnittpunkte zweier Kurven als neue, gebundene Punkte"""

    def execute(self, curve_id_1: str, curve_id_2: str) -> OperationResult:
        try:
            return self._finish(self._intersect(curve_id_1, curve_id_2))
        except Exception as e:
            logger.error(f"[INTERSECT] Fehler: {e}")
            return self._finish(OperationResult.error(f"Schnittpunkt-Berechnung fehlgeschlagen: {e}"))

    def compute(self, curve_id_1: str, curve_id_2: str) -> List[Coord]:
        """Schnittpunkt-Koordinaten ohne Mutation (leer bei Entartung)"""
        sketch: 'Sketch' = self.sketch
        k1, k2 = sketch.curve_kind(curve_id_1), sketch.curve_kind(curve_id_2)
        if k1 is None or k2 is None:
            return []

        if k1 == CurveKind.LINE and k2 == CurveKind.LINE:
            a = self._line_coords(curve_id_1)
            b = self._line_coords(curve_id_2)
            if a is None or b is None:
                return []
            hit = line_line_intersection(a[0], a[1], b[0], b[1])
            return [hit] if hit is not None else []

        if k1 == CurveKind.LINE or k2 == CurveKind.LINE:
            line_id, round_id = (curve_id_1, curve_id_2) if k1 == CurveKind.LINE \
                else (curve_id_2, curve_id_1)
            ends = self._line_coords(line_id)
            rnd = self._round_coords(round_id)
            if ends is None or rnd is None:
                return []
            return line_circle_intersection(ends[0], ends[1], rnd[0], rnd[1])

        r1 = self._round_coords(curve_id_1)
        r2 = self._round_coords(curve_id_2)
        if r1 is None or r2 is None:
            return []
        return circle_circle_intersection(r1[0], r1[1], r2[0], r2[1])

    def _line_coords(self, line_id: str) -> Optional[Tuple[Coord, Coord]]:
        line = self.sketch.get_line(line_id)
        if line is None:
            return None
        a, b = self.sketch.coords(line.p1), self.sketch.coords(line.p2)
        if a is None or b is None:
            return None
        return a, b

    def _round_coords(self, round_id: str) -> Optional[Tuple[Coord, float]]:
        rnd = self.sketch.get_round(round_id)
        if rnd is None:
            return None
        center = self.sketch.coords(rnd.center)
        if center is None:
            return None
        return center, rnd.radius

    def _intersect(self, curve_id_1: str, curve_id_2: str) -> OperationResult:
        sketch: 'Sketch' = self.sketch
        k1, k2 = sketch.curve_kind(curve_id_1), sketch.curve_kind(curve_id_2)
        if k1 is None or k2 is None:
            return OperationResult.no_target("Kurve existiert nicht")

        hits = self.compute(curve_id_1, curve_id_2)
        if not hits:
            logger.debug(f"[INTERSECT] Keine Schnittpunkte zwischen {curve_id_1} und {curve_id_2}")
            return OperationResult.no_intersections()

        created = []
        for x, y in hits:
            pt = Point(x, y, id=new_id("p_int"))
            sketch.points.append(pt)
            sketch.constraints.append(_bind(pt.id, curve_id_1, k1))
            sketch.constraints.append(_bind(pt.id, curve_id_2, k2))
            created.append(pt.id)

        # Neue Punkte werden die Auswahl
        sketch.selected_point_ids = list(created)
        sketch.selected_line_ids = []
        sketch.selected_circle_ids = []

        logger.info(f"[INTERSECT] {len(created)} Schnittpunkt(e) {curve_id_1} x {curve_id_2}")
        return OperationResult.ok(f"{len(created)} Schnittpunkt(e)", data=hits, created=created)


class AutoIntersectionOperation(SketchOperation):
    """
    Setzt Punkte an alle inneren Kreuzungen von Liniensegmenten.

    Nur Linien-Paare; Schnittparameter müssen auf beiden Segmenten
    strikt in (eps, 1 - eps) liegen. Kandidaten näher als
    INTERSECTION_DEDUP an einem bestehenden oder neuen Punkt entfallen.
    """

    def execute(self) -> OperationResult:
        try:
            return self._finish(self._auto())
        except Exception as e:
            logger.error(f"[INTERSECT] Auto-Intersection Fehler: {e}")
            return self._finish(OperationResult.error(f"Auto-Intersection fehlgeschlagen: {e}"))

    def _existing_near(self, tree: Optional[cKDTree], existing: List[Coord], pos: Coord) -> bool:
        dedup = Tolerances.INTERSECTION_DEDUP
        if tree is not None:
            dist, _ = tree.query(pos)
            return dist < dedup
        return any(math.hypot(p[0] - pos[0], p[1] - pos[1]) < dedup for p in existing)

    def _auto(self) -> OperationResult:
        sketch: 'Sketch' = self.sketch
        eps = Tolerances.INTERSECTION_INTERIOR_EPS
        dedup = Tolerances.INTERSECTION_DEDUP

        existing = [p.as_tuple() for p in sketch.points]
        tree = None
        if existing and is_enabled("auto_intersection_kdtree"):
            tree = cKDTree(np.asarray(existing, dtype=float))

        new_points: List[Point] = []
        new_constraints: List[Constraint] = []
        lines = sketch.lines

        for i, l1 in enumerate(lines):
            for l2 in lines[i + 1:]:
                p1, p2 = sketch.coords(l1.p1), sketch.coords(l1.p2)
                p3, p4 = sketch.coords(l2.p1), sketch.coords(l2.p2)
                if p1 is None or p2 is None or p3 is None or p4 is None:
                    continue

                params = segment_intersection_params(p1, p2, p3, p4)
                if params is None:
                    continue
                lam, gamma = params
                if not (eps < lam < 1 - eps and eps < gamma < 1 - eps):
                    continue

                pos = (p1[0] + lam * (p2[0] - p1[0]), p1[1] + lam * (p2[1] - p1[1]))
                if self._existing_near(tree, existing, pos):
                    continue
                if any(math.hypot(p.x - pos[0], p.y - pos[1]) < dedup for p in new_points):
                    continue

                pt = Point(pos[0], pos[1], id=new_id("p_int"))
                c1 = make_point_on_line(pt.id, l1.id)
                c1.id = new_id("c_int_1")
                c2 = make_point_on_line(pt.id, l2.id)
                c2.id = new_id("c_int_2")
                new_points.append(pt)
                new_constraints.extend([c1, c2])

        if not new_points:
            return OperationResult.no_intersections("Keine neuen Kreuzungen")

        sketch.points.extend(new_points)
        sketch.constraints.extend(new_constraints)
        logger.info(f"[INTERSECT] Auto: {len(new_points)} neue Kreuzungspunkte")
        return OperationResult.ok(f"{len(new_points)} Kreuzungspunkt(e)",
                                  created=[p.id for p in new_points])
