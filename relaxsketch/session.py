"""
RelaxSketch - Sketch Session
============================

Einstiegspunkt für Benutzeraktionen. Jede mutierende Aktion läuft als:

    Snapshot ziehen -> Sketch mutieren -> Snapshot übernehmen -> genau ein Solve

Abgelehnte Aktionen (falsche Auswahl, kein Ziel) hinterlassen weder eine
Mutation noch einen History-Eintrag; Redo-Kette und ältester Snapshot
bleiben erhalten. Scheitert eine Operation mit
ERROR, wird der Snapshot zurückgespielt (Rollback).

Verwendung:
    session = SketchSession()
    session.add_line(0, 0, 10, 0)
    session.select(lines=[...])
    session.apply_constraint(ConstraintType.HORIZONTAL)
    session.undo()
"""

from typing import Iterable, List, Optional

from loguru import logger

from config.tolerances import Tolerances
from .actions import SketchAction, available_actions, fillet_vertex
from .constraints import Constraint, ConstraintType
from .geometry import Arc, Circle, Line, Point
from .history import SketchHistory
from .operations import (
    AutoIntersectionOperation, FilletOperation, IntersectionOperation,
    OperationResult, ResultStatus, SketchOperation, TrimOperation,
)
from .profile import ExtrudeRequest, ProfileFace, RevolveRequest, build_faces, \
    extrude_request, revolve_request
from .sketch import SelectionMode, Sketch, SketchTool


class SketchSession:
    """Sketch plus Undo/Redo; serialisiert alle Mutationen"""

    def __init__(self, sketch: Optional[Sketch] = None, history_limit: Optional[int] = None):
        self.sketch = sketch if sketch is not None else Sketch()
        self.history = SketchHistory(limit=history_limit)

    # === Geometrie ===

    def add_point(self, x: float, y: float, fixed: bool = False) -> Point:
        self.history.save(self.sketch)
        point = self.sketch.add_point(x, y, fixed=fixed)
        self.sketch.solve()
        return point

    def add_line(self, x1: float, y1: float, x2: float, y2: float,
                 p1_snap_id: Optional[str] = None, p2_snap_id: Optional[str] = None,
                 construction: bool = False) -> Line:
        self.history.save(self.sketch)
        line = self.sketch.add_line(x1, y1, x2, y2, p1_snap_id, p2_snap_id, construction)
        self.sketch.solve()
        return line

    def add_circle(self, cx: float, cy: float, radius: float,
                   center_snap_id: Optional[str] = None, construction: bool = False) -> Circle:
        self.history.save(self.sketch)
        circle = self.sketch.add_circle(cx, cy, radius, center_snap_id, construction)
        self.sketch.solve()
        return circle

    def add_rectangle(self, x1: float, y1: float, x2: float, y2: float,
                      snap_id: Optional[str] = None, construction: bool = False) -> List[Line]:
        self.history.save(self.sketch)
        lines = self.sketch.add_rectangle(x1, y1, x2, y2, snap_id, construction)
        self.sketch.solve()
        return lines

    def add_arc(self, cx: float, cy: float, sx: float, sy: float, ex: float, ey: float,
                center_snap_id: Optional[str] = None, start_snap_id: Optional[str] = None,
                end_snap_id: Optional[str] = None, construction: bool = False) -> Arc:
        self.history.save(self.sketch)
        arc = self.sketch.add_arc(cx, cy, sx, sy, ex, ey,
                                  center_snap_id, start_snap_id, end_snap_id, construction)
        self.sketch.solve()
        return arc

    # === Auswahl (kein History-Eintrag) ===

    def select(self, points: Iterable[str] = (), lines: Iterable[str] = (),
               circles: Iterable[str] = (), constraints: Iterable[str] = (),
               mode: SelectionMode = SelectionMode.TOGGLE) -> None:
        self.sketch.select(points, lines, circles, constraints, mode)

    def clear_selection(self) -> None:
        self.sketch.clear_selection()

    def set_tool(self, tool: SketchTool) -> None:
        self.sketch.tool = tool

    def available_actions(self) -> List[SketchAction]:
        return available_actions(self.sketch)

    # === Constraints ===

    def apply_constraint(self, c_type: ConstraintType, value: Optional[float] = None) -> Constraint:
        """
        Constraint aus der Auswahl.

        Raises:
            SelectionError: Auswahl passt nicht (History bleibt unverändert)
        """
        snapshot = self.history.snapshot(self.sketch)
        constraint = self.sketch.apply_constraint(c_type, value)
        self.history.commit(snapshot)
        self.sketch.solve()
        return constraint

    def remove_constraint(self, constraint_id: str) -> bool:
        snapshot = self.history.snapshot(self.sketch)
        if not self.sketch.remove_constraint(constraint_id):
            return False
        self.history.commit(snapshot)
        self.sketch.solve()
        return True

    def perform(self, action: SketchAction, value: Optional[float] = None):
        """
        Führt eine Katalog-Aktion auf der aktuellen Auswahl aus.

        Constraint-Aktionen liefern den Constraint, Operationen ihr
        OperationResult.
        """
        if action == SketchAction.FILLET:
            radius = Tolerances.FILLET_DEFAULT_RADIUS if value is None else value
            return self.fillet(radius=radius)
        if action == SketchAction.TRIM:
            return self.trim()
        if action == SketchAction.INTERSECT:
            return self.intersect()
        return self.apply_constraint(action.constraint_type, value)

    # === Bearbeiten ===

    def delete_selected(self) -> bool:
        snapshot = self.history.snapshot(self.sketch)
        if not self.sketch.delete_selected():
            return False
        self.history.commit(snapshot)
        self.sketch.solve()
        return True

    def toggle_construction(self) -> None:
        self.history.save(self.sketch)
        self.sketch.toggle_construction()
        self.sketch.solve()

    def move_point(self, point_id: str, x: float, y: float) -> bool:
        """Drag eines Punkts (Solve passiert im Sketch mit verankertem Punkt)"""
        snapshot = self.history.snapshot(self.sketch)
        if not self.sketch.move_point(point_id, x, y):
            return False
        self.history.commit(snapshot)
        return True

    def set_circle_radius(self, circle_id: str, radius: float) -> bool:
        snapshot = self.history.snapshot(self.sketch)
        if not self.sketch.set_circle_radius(circle_id, radius):
            return False
        self.history.commit(snapshot)
        return True

    # === Abgeleitete Operationen ===

    def _run(self, operation: SketchOperation, *args, **kwargs) -> OperationResult:
        snapshot = self.history.snapshot(self.sketch)
        result = operation.execute(*args, **kwargs)

        if result.status == ResultStatus.ERROR:
            # Rollback auf den Zustand vor der Operation
            self.sketch = snapshot
            logger.debug(f"Rollback nach fehlgeschlagener Operation: {result.message}")
            return result
        if not result.success:
            return result

        self.history.commit(snapshot)
        self.sketch.solve()
        return result

    def fillet(self, point_id: Optional[str] = None,
               radius: float = Tolerances.FILLET_DEFAULT_RADIUS) -> OperationResult:
        """Fillet an einer Ecke (Standard: Ecke aus der Auswahl)"""
        vertex = point_id if point_id is not None else fillet_vertex(self.sketch)
        if vertex is None:
            return OperationResult.no_target("Keine Ecke ausgewählt")
        result = self._run(FilletOperation(self.sketch), vertex, radius)
        if result.success:
            self.sketch.clear_selection()
        return result

    def trim(self, id1: Optional[str] = None, id2: Optional[str] = None) -> OperationResult:
        """Trim/Split zwischen zwei Punkten (Standard: die zwei ausgewählten Punkte)"""
        if id1 is None or id2 is None:
            if len(self.sketch.selected_point_ids) != 2:
                return OperationResult.no_target("Zwei Punkte auswählen")
            id1, id2 = self.sketch.selected_point_ids
        result = self._run(TrimOperation(self.sketch), id1, id2)
        if result.success:
            self.sketch.clear_selection()
        return result

    def intersect(self, curve_id_1: Optional[str] = None,
                  curve_id_2: Optional[str] = None) -> OperationResult:
        """Schnittpunkte zweier Kurven (Standard: die zwei ausgewählten Kurven)"""
        if curve_id_1 is None or curve_id_2 is None:
            curves = [*self.sketch.selected_line_ids, *self.sketch.selected_circle_ids]
            if len(curves) != 2:
                return OperationResult.no_target("Zwei Kurven auswählen")
            curve_id_1, curve_id_2 = curves
        return self._run(IntersectionOperation(self.sketch), curve_id_1, curve_id_2)

    def auto_intersect(self) -> OperationResult:
        return self._run(AutoIntersectionOperation(self.sketch))

    # === Undo / Redo ===

    def undo(self) -> bool:
        restored = self.history.undo(self.sketch)
        if restored is None:
            return False
        self.sketch = restored
        return True

    def redo(self) -> bool:
        restored = self.history.redo(self.sketch)
        if restored is None:
            return False
        self.sketch = restored
        return True

    # === Profile (lesend) ===

    def faces(self, allowed_ids: Optional[Iterable[str]] = None) -> List[ProfileFace]:
        return build_faces(self.sketch, allowed_ids=allowed_ids)

    def extrude(self, depth: float, allowed_ids: Optional[Iterable[str]] = None) -> ExtrudeRequest:
        return extrude_request(self.sketch, depth, allowed_ids=allowed_ids)

    def revolve(self, axis_line_id: str, angle: float = 360.0) -> RevolveRequest:
        return revolve_request(self.sketch, axis_line_id, angle=angle)
