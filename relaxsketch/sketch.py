"""
RelaxSketch - Sketch Object
Fasst Geometrie, Constraints, Auswahl und aktives Werkzeug zusammen
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union
from enum import Enum, auto
import math
import uuid

from loguru import logger

from .actions import SketchAction, available_actions
from .coincidence import UnionFind, build_canonical_map
from .constraints import (
    Constraint, ConstraintType,
    make_coincident, make_horizontal, make_vertical, make_point_on_circle,
)
from .geometry import Arc, Circle, CurveKind, Line, Point
from .solver import RelaxationSolver, SolverResult
from .topology import CoordLookup, Loop, ProfileRegion, extract_loops, nest_loops


class SketchTool(Enum):
    """Aktives Zeichenwerkzeug"""
    SELECT = auto()
    POINT = auto()
    LINE = auto()
    RECTANGLE = auto()
    CIRCLE = auto()
    ARC = auto()


class SelectionMode(Enum):
    """Wie eine neue Auswahl mit der bestehenden kombiniert wird"""
    TOGGLE = auto()   # Enthaltene Ids abwählen, neue hinzufügen
    UNION = auto()    # Nur hinzufügen


class SelectionError(Exception):
    """Auswahl passt nicht zur angeforderten Aktion (keine Mutation erfolgt)"""
    pass


# Bei diesen Typen werden ausgewählte Linien über ihre Endpunkte referenziert
_LINE_EXPANDING_TYPES = (
    ConstraintType.HORIZONTAL, ConstraintType.VERTICAL,
    ConstraintType.DISTANCE, ConstraintType.ANGLE,
)


@dataclass
class Sketch:
    """
    2D-Sketch mit Geometrie, Constraints und Editor-Zustand

    Die gesamte Instanz ist die Einheit für Undo/Redo-Snapshots.
    Entities referenzieren sich nur über Ids; jede Referenz muss auf ein
    existierendes Objekt zeigen (Löschen kaskadiert).
    """

    name: str = "Sketch"
    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])

    # Geometrie
    points: List[Point] = field(default_factory=list)
    lines: List[Line] = field(default_factory=list)
    circles: List[Circle] = field(default_factory=list)
    arcs: List[Arc] = field(default_factory=list)

    # Constraints
    constraints: List[Constraint] = field(default_factory=list)

    # Auswahl (Bögen teilen sich die Kreis-Auswahl)
    selected_point_ids: List[str] = field(default_factory=list)
    selected_line_ids: List[str] = field(default_factory=list)
    selected_circle_ids: List[str] = field(default_factory=list)
    selected_constraint_ids: List[str] = field(default_factory=list)

    tool: SketchTool = SketchTool.SELECT

    # Solver
    _solver: RelaxationSolver = field(default_factory=RelaxationSolver, repr=False, compare=False)
    last_solve: Optional[SolverResult] = field(default=None, repr=False, compare=False)

    # === Lookups ===

    def get_point(self, point_id: str) -> Optional[Point]:
        return next((p for p in self.points if p.id == point_id), None)

    def get_line(self, line_id: str) -> Optional[Line]:
        return next((l for l in self.lines if l.id == line_id), None)

    def get_circle(self, circle_id: str) -> Optional[Circle]:
        return next((c for c in self.circles if c.id == circle_id), None)

    def get_arc(self, arc_id: str) -> Optional[Arc]:
        return next((a for a in self.arcs if a.id == arc_id), None)

    def get_round(self, circle_id: str) -> Optional[Union[Circle, Arc]]:
        """Kreis oder Bogen (gemeinsamer Namensraum in Constraints)"""
        return self.get_circle(circle_id) or self.get_arc(circle_id)

    def curve_kind(self, entity_id: str) -> Optional[CurveKind]:
        if self.get_line(entity_id) is not None:
            return CurveKind.LINE
        if self.get_circle(entity_id) is not None:
            return CurveKind.CIRCLE
        if self.get_arc(entity_id) is not None:
            return CurveKind.ARC
        return None

    def coords(self, point_id: str) -> Optional[Tuple[float, float]]:
        p = self.get_point(point_id)
        return p.as_tuple() if p is not None else None

    def lines_at(self, point_ids: Iterable[str]) -> List[Line]:
        """Alle Linien mit mindestens einem Endpunkt in point_ids"""
        ids = set(point_ids)
        return [l for l in self.lines if l.p1 in ids or l.p2 in ids]

    # === Geometrie-Erstellung ===

    def add_point(self, x: float, y: float, fixed: bool = False) -> Point:
        """Fügt einen freien Punkt hinzu"""
        point = Point(x, y, fixed=fixed)
        self.points.append(point)
        return point

    def add_line(self, x1: float, y1: float, x2: float, y2: float,
                 p1_snap_id: Optional[str] = None, p2_snap_id: Optional[str] = None,
                 construction: bool = False) -> Line:
        """
        Fügt eine Linie hinzu.

        Gefangene Punkte (snap ids) werden direkt als Endpunkte verwendet,
        sonst entstehen neue Punkte.
        """
        id1 = p1_snap_id if p1_snap_id and self.get_point(p1_snap_id) else self.add_point(x1, y1).id
        id2 = p2_snap_id if p2_snap_id and self.get_point(p2_snap_id) else self.add_point(x2, y2).id
        return self.add_line_between(id1, id2, construction=construction)

    def add_line_between(self, p1_id: str, p2_id: str, construction: bool = False) -> Line:
        """Fügt eine Linie zwischen existierenden Punkten hinzu"""
        line = Line(p1_id, p2_id, construction=construction)
        self.lines.append(line)
        return line

    def add_circle(self, cx: float, cy: float, radius: float,
                   center_snap_id: Optional[str] = None,
                   construction: bool = False) -> Circle:
        """Fügt einen Kreis hinzu; ein gefangener Punkt wird koinzident verknüpft"""
        center = self.add_point(cx, cy)
        circle = Circle(center.id, radius, construction=construction)
        self.circles.append(circle)
        self._attach_snap(center.id, center_snap_id)
        return circle

    def add_rectangle(self, x1: float, y1: float, x2: float, y2: float,
                      snap_id: Optional[str] = None,
                      construction: bool = False) -> List[Line]:
        """Rechteck aus vier Linien mit H/V/H/V-Constraints"""
        corners = [
            self.add_point(x1, y1),
            self.add_point(x2, y1),
            self.add_point(x2, y2),
            self.add_point(x1, y2),
        ]
        ids = [p.id for p in corners]
        lines = [self.add_line_between(ids[i], ids[(i + 1) % 4], construction=construction)
                 for i in range(4)]

        self.constraints.extend([
            make_horizontal(ids[0], ids[1]),
            make_vertical(ids[1], ids[2]),
            make_horizontal(ids[2], ids[3]),
            make_vertical(ids[3], ids[0]),
        ])
        self._attach_snap(ids[0], snap_id)
        return lines

    def add_arc(self, cx: float, cy: float, sx: float, sy: float, ex: float, ey: float,
                center_snap_id: Optional[str] = None,
                start_snap_id: Optional[str] = None,
                end_snap_id: Optional[str] = None,
                construction: bool = False) -> Arc:
        """
        Bogen aus Mittelpunkt, Start und Ende.

        Der Radius ergibt sich aus Mittelpunkt-Start. Start und Ende werden
        per COINCIDENT(punkt, bogen) auf dem Bogen gehalten.
        """
        center = self.add_point(cx, cy)
        start = self.add_point(sx, sy)
        end = self.add_point(ex, ey)
        radius = math.hypot(sx - cx, sy - cy)

        arc = Arc(center.id, radius, start.id, end.id, id=f"a_{center.id}",
                  construction=construction)
        self.arcs.append(arc)

        self.constraints.append(make_point_on_circle(start.id, arc.id))
        self.constraints.append(make_point_on_circle(end.id, arc.id))
        self._attach_snap(center.id, center_snap_id)
        self._attach_snap(start.id, start_snap_id)
        self._attach_snap(end.id, end_snap_id)
        return arc

    def _attach_snap(self, point_id: str, snap_id: Optional[str]) -> None:
        if snap_id and snap_id != point_id and self.get_point(snap_id) is not None:
            self.constraints.append(make_coincident(point_id, snap_id))

    # === Constraint-Erstellung ===

    def add_constraint(self, c_type: ConstraintType,
                       points: Sequence[str] = (), lines: Sequence[str] = (),
                       circles: Sequence[str] = (), value: Optional[float] = None) -> Constraint:
        """Fügt einen Constraint mit expliziten Referenzen hinzu"""
        c = Constraint(c_type, points=list(points), lines=list(lines),
                       circles=list(circles), value=value)
        self.constraints.append(c)
        return c

    def apply_constraint(self, c_type: ConstraintType, value: Optional[float] = None) -> Constraint:
        """
        Erstellt einen Constraint aus der aktuellen Auswahl.

        Für H/V/Distanz/Winkel werden ausgewählte Linien zusätzlich über
        ihre Endpunkte referenziert (nicht bei Linie+Kreis, dort zählt der
        Mittelpunkt-Abstand). Danach wird die Auswahl geleert.

        Raises:
            SelectionError: Auswahl erlaubt diesen Constraint nicht
        """
        action = SketchAction[c_type.name]
        if action not in available_actions(self):
            raise SelectionError(f"{c_type.name} ist für die aktuelle Auswahl nicht möglich")
        if c_type in (ConstraintType.DISTANCE, ConstraintType.ANGLE, ConstraintType.RADIUS) \
                and value is None:
            raise SelectionError(f"{c_type.name} benötigt einen Wert")

        point_ids = list(self.selected_point_ids)
        line_ids = list(self.selected_line_ids)
        circle_ids = list(self.selected_circle_ids)

        if line_ids and not circle_ids and c_type in _LINE_EXPANDING_TYPES:
            for lid in line_ids:
                line = self.get_line(lid)
                if line is None:
                    continue
                for pid in line.point_ids():
                    if pid not in point_ids:
                        point_ids.append(pid)

        c = self.add_constraint(c_type, point_ids, line_ids, circle_ids, value)
        self.clear_selection()
        return c

    def initial_value(self, c_type: ConstraintType) -> float:
        """Vorschlagswert für wertbehaftete Constraints aus der Auswahl"""
        pids = list(self.selected_point_ids)
        for lid in self.selected_line_ids:
            line = self.get_line(lid)
            if line is not None:
                pids.extend(pid for pid in line.point_ids() if pid not in pids)
        rounds = [self.get_round(cid) for cid in self.selected_circle_ids]
        rounds = [r for r in rounds if r is not None]

        if c_type == ConstraintType.DISTANCE:
            if len(pids) >= 2:
                a, b = self.coords(pids[0]), self.coords(pids[1])
                if a and b:
                    return float(round(math.hypot(b[0] - a[0], b[1] - a[1])))
            elif len(rounds) == 2:
                a, b = self.coords(rounds[0].center), self.coords(rounds[1].center)
                if a and b:
                    return float(round(math.hypot(b[0] - a[0], b[1] - a[1])
                                       - rounds[0].radius - rounds[1].radius))
        elif c_type == ConstraintType.RADIUS and rounds:
            return float(round(rounds[0].radius))
        return 0.0

    def remove_constraint(self, constraint_id: str) -> bool:
        before = len(self.constraints)
        self.constraints = [c for c in self.constraints if c.id != constraint_id]
        return len(self.constraints) != before

    # === Auswahl ===

    def select(self, points: Iterable[str] = (), lines: Iterable[str] = (),
               circles: Iterable[str] = (), constraints: Iterable[str] = (),
               mode: SelectionMode = SelectionMode.TOGGLE) -> None:
        """Kombiniert eine neue Auswahl mit der bestehenden"""
        points, lines, circles, constraints = list(points), list(lines), list(circles), list(constraints)

        def merge(current: List[str], incoming: List[str]) -> List[str]:
            result = list(current)
            for eid in incoming:
                if eid in result:
                    if mode == SelectionMode.TOGGLE:
                        result.remove(eid)
                else:
                    result.append(eid)
            return result

        self.selected_point_ids = merge(self.selected_point_ids, points)
        self.selected_line_ids = merge(self.selected_line_ids, lines)
        self.selected_circle_ids = merge(self.selected_circle_ids, circles)

        # Geometrie-Auswahl ersetzt eine Constraint-Auswahl
        if points or lines or circles:
            self.selected_constraint_ids = []
        self.selected_constraint_ids = merge(self.selected_constraint_ids, constraints)

    def clear_selection(self) -> None:
        self.selected_point_ids = []
        self.selected_line_ids = []
        self.selected_circle_ids = []
        self.selected_constraint_ids = []

    def has_selection(self) -> bool:
        return bool(self.selected_point_ids or self.selected_line_ids
                    or self.selected_circle_ids or self.selected_constraint_ids)

    # === Löschen / Bearbeiten ===

    def delete_selected(self) -> bool:
        """
        Löscht die Auswahl mit Kaskade.

        Linien/Kreise/Bögen ohne existierende Punkte fallen weg, ebenso
        jeder Constraint, der auf eine gelöschte Entity verweist.
        """
        if not self.has_selection():
            return False

        sel_points = set(self.selected_point_ids)
        sel_lines = set(self.selected_line_ids)
        sel_circles = set(self.selected_circle_ids)
        sel_constraints = set(self.selected_constraint_ids)

        self.points = [p for p in self.points if p.id not in sel_points]
        self.lines = [l for l in self.lines if l.id not in sel_lines]
        self.circles = [c for c in self.circles if c.id not in sel_circles]
        self.arcs = [a for a in self.arcs if a.id not in sel_circles]
        self.constraints = [c for c in self.constraints if c.id not in sel_constraints]
        self.clear_selection()

        removed = self.cleanup_dangling()
        logger.debug(f"Auswahl gelöscht: {len(sel_points)} Punkte, {len(sel_lines)} Linien, "
                     f"{len(sel_circles)} Kreise/Bögen, Kaskade: {removed}")
        return True

    def delete_line(self, line_id: str) -> int:
        """Entfernt eine Linie und alle Constraints, die sie referenzieren"""
        self.lines = [l for l in self.lines if l.id != line_id]
        before = len(self.constraints)
        self.constraints = [c for c in self.constraints if line_id not in c.lines]
        return before - len(self.constraints)

    def delete_points(self, point_ids: Iterable[str]) -> None:
        """Entfernt Punkte und kaskadiert abhängige Geometrie/Constraints"""
        ids = set(point_ids)
        self.points = [p for p in self.points if p.id not in ids]
        self.cleanup_dangling()

    def cleanup_dangling(self) -> int:
        """
        Entfernt Geometrie mit fehlenden Punkten und Constraints mit
        fehlenden Referenzen.

        Returns:
            Anzahl entfernter Entities
        """
        point_ids = {p.id for p in self.points}
        n_before = len(self.lines) + len(self.circles) + len(self.arcs) + len(self.constraints)

        self.lines = [l for l in self.lines if l.p1 in point_ids and l.p2 in point_ids]
        self.circles = [c for c in self.circles if c.center in point_ids]
        self.arcs = [a for a in self.arcs
                     if a.center in point_ids and a.p1 in point_ids and a.p2 in point_ids]

        line_ids = {l.id for l in self.lines}
        round_ids = {c.id for c in self.circles} | {a.id for a in self.arcs}
        self.constraints = [
            c for c in self.constraints
            if all(pid in point_ids for pid in c.points)
            and all(lid in line_ids for lid in c.lines)
            and all(cid in round_ids for cid in c.circles)
        ]

        n_after = len(self.lines) + len(self.circles) + len(self.arcs) + len(self.constraints)
        return n_before - n_after

    def toggle_construction(self) -> None:
        """Schaltet das Konstruktions-Flag der ausgewählten Linien/Kreise/Bögen um"""
        lines = set(self.selected_line_ids)
        circles = set(self.selected_circle_ids)
        for line in self.lines:
            if line.id in lines:
                line.construction = not line.construction
        for circle in self.circles:
            if circle.id in circles:
                circle.construction = not circle.construction
        for arc in self.arcs:
            if arc.id in circles:
                arc.construction = not arc.construction

    def move_point(self, point_id: str, x: float, y: float) -> bool:
        """
        Zieht einen Punkt (Drag).

        Fixierte Punkte lassen sich nicht ziehen. Der gezogene Punkt wird
        für diesen einen Solve verankert und behält danach sein Flag.
        """
        point = self.get_point(point_id)
        if point is None or point.fixed:
            return False

        point.x, point.y = float(x), float(y)
        point.fixed = True
        try:
            self.solve()
        finally:
            moved = self.get_point(point_id)
            if moved is not None:
                moved.fixed = False
        return True

    def set_circle_radius(self, circle_id: str, radius: float) -> bool:
        """Radius-Drag; abgelehnt wenn ein RADIUS-Constraint den Kreis bestimmt"""
        target = self.get_round(circle_id)
        if target is None:
            return False
        if any(c.type == ConstraintType.RADIUS and circle_id in c.circles for c in self.constraints):
            return False
        target.radius = float(radius)
        self.solve()
        return True

    # === Constraint-Solver ===

    def solve(self) -> SolverResult:
        """Relaxiert alle Constraints; Bögen laufen für die Radien als Kreise mit"""
        rounds: List[Union[Circle, Arc]] = [*self.circles, *self.arcs]
        result = self._solver.solve(self.points, self.constraints, self.lines, rounds)

        self.points = result.points
        solved = {c.id: c.radius for c in result.circles}
        for circle in self.circles:
            circle.radius = solved.get(circle.id, circle.radius)
        for arc in self.arcs:
            arc.radius = solved.get(arc.id, arc.radius)

        self.last_solve = result
        return result

    def canonical_map(self) -> UnionFind:
        """Frische Koinzidenz-Abbildung (nie gecacht)"""
        return build_canonical_map(self.points, self.constraints)

    # === Profil-Erkennung ===

    def closed_loops(self, allowed_ids: Optional[Iterable[str]] = None,
                     axis_line_id: Optional[str] = None) -> List[Loop]:
        find = self.canonical_map()
        return extract_loops(self.points, self.lines, self.arcs, self.circles, find,
                             allowed_ids=allowed_ids, axis_line_id=axis_line_id)

    def profile_regions(self, allowed_ids: Optional[Iterable[str]] = None,
                        axis_line_id: Optional[str] = None) -> List[ProfileRegion]:
        """Außenkonturen mit Löchern (Shapely-Polygone über ``region.polygon``)"""
        find = self.canonical_map()
        loops = extract_loops(self.points, self.lines, self.arcs, self.circles, find,
                              allowed_ids=allowed_ids, axis_line_id=axis_line_id)
        return nest_loops(loops, CoordLookup(self.points, find))

    # === Serialisierung ===

    def to_dict(self) -> Dict[str, Any]:
        """Konvertiert zu Dictionary (für Speichern/Undo)"""
        return {
            'name': self.name,
            'id': self.id,
            'points': [p.to_dict() for p in self.points],
            'lines': [l.to_dict() for l in self.lines],
            'circles': [c.to_dict() for c in self.circles],
            'arcs': [a.to_dict() for a in self.arcs],
            'constraints': [c.to_dict() for c in self.constraints],
            'selection': {
                'points': list(self.selected_point_ids),
                'lines': list(self.selected_line_ids),
                'circles': list(self.selected_circle_ids),
                'constraints': list(self.selected_constraint_ids),
            },
            'tool': self.tool.name,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Sketch':
        """Erstellt Sketch aus Dictionary; kein Solve nötig (Zustand ist gespeichert)"""
        sketch = cls(name=data.get('name', 'Sketch'))
        sketch.id = data.get('id', sketch.id)
        sketch.points = [Point.from_dict(d) for d in data.get('points', [])]
        sketch.lines = [Line.from_dict(d) for d in data.get('lines', [])]
        sketch.circles = [Circle.from_dict(d) for d in data.get('circles', [])]
        sketch.arcs = [Arc.from_dict(d) for d in data.get('arcs', [])]

        for cd in data.get('constraints', []):
            try:
                sketch.constraints.append(Constraint.from_dict(cd))
            except KeyError as e:
                logger.debug(f"Constraint-Wiederherstellung übersprungen: {e}")

        selection = data.get('selection', {})
        sketch.selected_point_ids = list(selection.get('points', []))
        sketch.selected_line_ids = list(selection.get('lines', []))
        sketch.selected_circle_ids = list(selection.get('circles', []))
        sketch.selected_constraint_ids = list(selection.get('constraints', []))
        sketch.tool = SketchTool[data.get('tool', SketchTool.SELECT.name)]
        return sketch

    def __repr__(self):
        return (f"Sketch('{self.name}': {len(self.points)} pts, {len(self.lines)} lines, "
                f"{len(self.circles)} circles, {len(self.arcs)} arcs, "
                f"{len(self.constraints)} constraints)")

