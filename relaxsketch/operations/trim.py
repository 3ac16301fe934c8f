"""
RelaxSketch - Trim/Split Operation
==================================

Kürzt, löscht oder teilt eine Linie zwischen zwei Punkten bzw. wandelt
einen Kreis in einen Bogen.

Fälle:
    - Beide Punkte auf einem Kreis (Toleranz TRIM_PROXIMITY):
      Kreis -> Bogen mit gleicher Id von Punkt 1 nach Punkt 2
    - Beide Punkte Endpunkte der Linie: Linie löschen
    - Ein Endpunkt, ein Punkt auf der Linie: Linie bis dorthin kürzen
    - Beide Punkte auf der Linie: mittleres Stück herausschneiden
"""

import math
from typing import Optional, TYPE_CHECKING
from loguru import logger

from config.tolerances import Tolerances
from ..constraints import ConstraintType
from ..geometry import Arc, Circle, Line, new_id
from .base import SketchOperation, OperationResult

if TYPE_CHECKING:
    from relaxsketch.sketch import Sketch


class TrimOperation(SketchOperation):
    """Trim/Split zwischen zwei Punkt-Ids"""

    def execute(self, id1: str, id2: str) -> OperationResult:
        try:
            return self._finish(self._trim(id1, id2))
        except Exception as e:
            logger.error(f"[TRIM] Fehler: {e}")
            return self._finish(OperationResult.error(f"Trim fehlgeschlagen: {e}"))

    def can_execute(self, id1: str, id2: str) -> bool:
        return self._circle_for(id1, id2) is not None or self.find_target_line(id1, id2) is not None

    # === Suche ===

    def _on_line(self, point_id: str, line_id: str) -> bool:
        return any(c.type == ConstraintType.COINCIDENT and point_id in c.points and line_id in c.lines
                   for c in self.sketch.constraints)

    def _circle_for(self, id1: str, id2: str) -> Optional[Circle]:
        sketch: 'Sketch' = self.sketch
        p1, p2 = sketch.get_point(id1), sketch.get_point(id2)
        if p1 is None or p2 is None:
            return None
        for circle in sketch.circles:
            center = sketch.get_point(circle.center)
            if center is None:
                continue
            d1 = center.distance_to(p1)
            d2 = center.distance_to(p2)
            if abs(d1 - circle.radius) < Tolerances.TRIM_PROXIMITY \
                    and abs(d2 - circle.radius) < Tolerances.TRIM_PROXIMITY:
                return circle
        return None

    def find_target_line(self, id1: str, id2: str) -> Optional[Line]:
        """
        Ziel-Linie: ausgewählte Linie, sonst Linie mit beiden Punkten als
        Enden, sonst Linie mit einem Punkt als Ende und dem anderen darauf,
        sonst Linie, auf der beide Punkte per Koinzidenz liegen.
        """
        sketch: 'Sketch' = self.sketch
        if len(sketch.selected_line_ids) == 1:
            line = sketch.get_line(sketch.selected_line_ids[0])
            if line is not None:
                return line

        for line in sketch.lines:
            if {line.p1, line.p2} == {id1, id2}:
                return line

        for end, other in ((id1, id2), (id2, id1)):
            for line in sketch.lines:
                if end in line.point_ids() and self._on_line(other, line.id):
                    return line

        for line in sketch.lines:
            if self._on_line(id1, line.id) and self._on_line(id2, line.id):
                return line
        return None

    # === Ausführung ===

    def _trim(self, id1: str, id2: str) -> OperationResult:
        sketch: 'Sketch' = self.sketch

        circle = self._circle_for(id1, id2)
        if circle is not None:
            arc = Arc(circle.center, circle.radius, id1, id2, id=circle.id,
                      construction=circle.construction)
            sketch.circles = [c for c in sketch.circles if c.id != circle.id]
            sketch.arcs.append(arc)
            logger.info(f"[TRIM] Kreis {circle.id} -> Bogen")
            return OperationResult.ok("Kreis in Bogen umgewandelt", data=arc)

        line = self.find_target_line(id1, id2)
        if line is None:
            return OperationResult.no_target("Keine Linie zwischen den Punkten")

        end1 = id1 in line.point_ids()
        end2 = id2 in line.point_ids()
        on1 = end1 or self._on_line(id1, line.id)
        on2 = end2 or self._on_line(id2, line.id)
        if not (on1 and on2):
            return OperationResult.no_target("Punkte liegen nicht auf der Linie")

        if end1 and end2:
            removed = sketch.delete_line(line.id)
            logger.info(f"[TRIM] Linie {line.id} gelöscht ({removed} Constraints entfernt)")
            return OperationResult.ok("Linie gelöscht", removed=[line.id])

        if end1 or end2:
            end_pt, trim_pt = (id1, id2) if end1 else (id2, id1)
            keep_pt = line.other_end(end_pt)
            line.p1, line.p2 = keep_pt, trim_pt
            sketch.constraints = [
                c for c in sketch.constraints
                if not (c.type == ConstraintType.COINCIDENT
                        and trim_pt in c.points and line.id in c.lines)
            ]
            logger.info(f"[TRIM] Linie {line.id} gekürzt bis {trim_pt}")
            return OperationResult.ok("Linie gekürzt", data=line)

        return self._split(line, id1, id2)

    def _split(self, line: Line, id1: str, id2: str) -> OperationResult:
        sketch: 'Sketch' = self.sketch
        start = sketch.get_point(line.p1)
        pt1, pt2 = sketch.get_point(id1), sketch.get_point(id2)
        if start is None or pt1 is None or pt2 is None:
            return OperationResult.error("Punkte der Linie fehlen")

        d1 = math.hypot(pt1.x - start.x, pt1.y - start.y)
        d2 = math.hypot(pt2.x - start.x, pt2.y - start.y)
        first, second = (id1, id2) if d1 < d2 else (id2, id1)

        line_a = Line(line.p1, first, id=new_id("l"), construction=line.construction)
        line_b = Line(second, line.p2, id=new_id("l"), construction=line.construction)

        sketch.lines = [l for l in sketch.lines if l.id != line.id] + [line_a, line_b]
        sketch.constraints = [c for c in sketch.constraints if line.id not in c.lines]

        logger.info(f"[TRIM] Linie {line.id} geteilt in {line_a.id} und {line_b.id}")
        return OperationResult.ok("Linie geteilt", created=[line_a.id, line_b.id],
                                  removed=[line.id])
