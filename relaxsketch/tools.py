"""
RelaxSketch - Zeichenwerkzeuge
==============================

Klick-Zustandsautomaten für die Zeichenwerkzeuge. Der Controller
sammelt Klicks (mit optionaler Fang-Punkt-Id) und ruft nach dem letzten
Klick die passende add_*-Methode des Ziels auf (Sketch oder
SketchSession).

    POINT      1 Klick
    LINE       2 Klicks (Start, Ende)
    RECTANGLE  2 Klicks (gegenüberliegende Ecken)
    CIRCLE     2 Klicks (Mittelpunkt, Randpunkt)
    ARC        3 Klicks (Mittelpunkt, Start, Ende)
"""

from dataclasses import dataclass
from typing import Any, List, Optional
import math

from loguru import logger

from .sketch import SketchTool


_CLICKS = {
    SketchTool.POINT: 1,
    SketchTool.LINE: 2,
    SketchTool.RECTANGLE: 2,
    SketchTool.CIRCLE: 2,
    SketchTool.ARC: 3,
}


@dataclass
class Click:
    x: float
    y: float
    snap_id: Optional[str] = None


class ToolController:
    """Sammelt Klicks des aktiven Werkzeugs und erzeugt Geometrie"""

    def __init__(self, target: Any, tool: SketchTool = SketchTool.SELECT):
        self.target = target
        self.tool = tool
        self._clicks: List[Click] = []

    @property
    def pending(self) -> List[Click]:
        """Bisher gesammelte Klicks des laufenden Werkzeugs"""
        return list(self._clicks)

    def set_tool(self, tool: SketchTool) -> None:
        """Werkzeugwechsel verwirft angefangene Eingaben"""
        self.tool = tool
        self._clicks = []

    def cancel(self) -> None:
        self._clicks = []

    def click(self, x: float, y: float, snap_id: Optional[str] = None) -> Optional[Any]:
        """
        Verarbeitet einen Klick.

        Returns:
            Erzeugte Entity (bzw. Linienliste beim Rechteck) nach dem
            letzten Klick, sonst None
        """
        needed = _CLICKS.get(self.tool)
        if needed is None:
            return None

        self._clicks.append(Click(x, y, snap_id))
        if len(self._clicks) < needed:
            return None

        clicks, self._clicks = self._clicks, []
        return self._create(clicks)

    def _create(self, clicks: List[Click]) -> Optional[Any]:
        t = self.target
        a = clicks[0]

        if self.tool == SketchTool.POINT:
            return t.add_point(a.x, a.y)

        b = clicks[1]
        if self.tool == SketchTool.LINE:
            return t.add_line(a.x, a.y, b.x, b.y, p1_snap_id=a.snap_id, p2_snap_id=b.snap_id)

        if self.tool == SketchTool.RECTANGLE:
            if a.x == b.x or a.y == b.y:
                logger.debug("Rechteck ohne Fläche ignoriert")
                return None
            return t.add_rectangle(a.x, a.y, b.x, b.y, snap_id=a.snap_id)

        if self.tool == SketchTool.CIRCLE:
            radius = math.hypot(b.x - a.x, b.y - a.y)
            if radius <= 0:
                return None
            return t.add_circle(a.x, a.y, radius, center_snap_id=a.snap_id)

        if self.tool == SketchTool.ARC:
            c = clicks[2]
            return t.add_arc(a.x, a.y, b.x, b.y, c.x, c.y,
                             center_snap_id=a.snap_id, start_snap_id=b.snap_id,
                             end_snap_id=c.snap_id)
        return None
