"""
RelaxSketch - Constraint Solver
===============================

Iterativer Relaxations-Solver. Alle Punktkoordinaten liegen in einem
flachen NumPy-Puffer (2 Werte pro Punkt, Index über eine pro Aufruf
gebaute Id->Index Map). Über die Constraint-Liste wird eine feste Anzahl
Pässe gefahren; jeder Constraint korrigiert pro Pass mit festem
Relaxationsfaktor statt exakt zu lösen.

Keine Jacobi-Matrix, keine Inversion: redundante oder leicht
widersprüchliche Constraints führen nicht zu Singularitäten, sondern
konvergieren nur nicht vollständig.

Halbschritt-Regel:
    Sind beide Seiten frei, bewegt sich jede um ``step`` x Residuum.
    Ist eine Seite verankert (fixed), übernimmt die andere das volle
    Residuum (``min(1, 2 * step)``).
"""

from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Sequence, Tuple, Union
import math

import numpy as np
from loguru import logger

from config.feature_flags import is_enabled
from config.tolerances import Tolerances, solver_iterations, solver_step
from .constraints import (
    Constraint, ConstraintType, constraint_error, wrap_angle, wrap_half_turn,
)
from .geometry import Arc, Circle, Line, Point

CircleLike = Union[Circle, Arc]


@dataclass
class SolverResult:
    """Ergebnis des Relaxations-Solvers"""
    success: bool
    iterations: int
    final_error: float
    message: str = ""
    points: List[Point] = field(default_factory=list)
    circles: List[CircleLike] = field(default_factory=list)


class _Relaxation:
    """Zustand eines einzelnen Solve-Aufrufs (Puffer, Index-Maps, Anker)"""

    def __init__(self, points: Sequence[Point], constraints: Sequence[Constraint],
                 lines: Sequence[Line], circles: Sequence[CircleLike], step: float):
        self.step = step
        self.gain = min(1.0, 2.0 * step)

        self.index: Dict[str, int] = {p.id: i for i, p in enumerate(points)}
        self.pos = np.zeros(2 * len(points), dtype=np.float64)
        for i, p in enumerate(points):
            self.pos[2 * i] = p.x
            self.pos[2 * i + 1] = p.y

        self.anchored = np.array([bool(p.fixed) for p in points], dtype=bool)

        self.lines: Dict[str, Tuple[int, int]] = {}
        for line in lines:
            if line.p1 in self.index and line.p2 in self.index:
                self.lines[line.id] = (self.index[line.p1], self.index[line.p2])

        self.centers: Dict[str, int] = {}
        self.radius: Dict[str, float] = {}
        for circle in circles:
            if circle.center in self.index:
                self.centers[circle.id] = self.index[circle.center]
                self.radius[circle.id] = float(circle.radius)

        # FIXED ist für die Korrekturen ein No-Op, verankert aber die Punkte
        for c in constraints:
            if c.type != ConstraintType.FIXED:
                continue
            for pid in c.points:
                if pid in self.index:
                    self.anchored[self.index[pid]] = True
            for cid in c.circles:
                if cid in self.centers:
                    self.anchored[self.centers[cid]] = True

        # RADIUS: erster Constraint pro Kreis gewinnt
        self.radius_overrides: Dict[str, float] = {}
        for c in constraints:
            if c.type != ConstraintType.RADIUS or c.value is None:
                continue
            for cid in c.circles:
                if cid in self.radius:
                    self.radius_overrides.setdefault(cid, float(c.value))

    # === Puffer-Zugriff ===

    def p(self, i: int) -> np.ndarray:
        return self.pos[2 * i:2 * i + 2].copy()

    def free(self, i: int) -> bool:
        return not self.anchored[i]

    def move(self, i: int, delta: np.ndarray) -> None:
        if not self.anchored[i]:
            self.pos[2 * i:2 * i + 2] += delta

    def shares(self, free_a: bool, free_b: bool) -> Tuple[float, float]:
        """Anteile am Residuum für zwei Seiten"""
        if free_a and free_b:
            return self.step, self.step
        if free_a:
            return self.gain, 0.0
        if free_b:
            return 0.0, self.gain
        return 0.0, 0.0

    def line_free(self, ends: Tuple[int, int]) -> bool:
        return self.free(ends[0]) or self.free(ends[1])

    # === Referenz-Auflösung ===

    def point_indices(self, c: Constraint) -> Optional[List[int]]:
        if any(pid not in self.index for pid in c.points):
            return None
        return [self.index[pid] for pid in c.points]

    def line_pairs(self, c: Constraint) -> List[Tuple[int, int]]:
        """Linien des Constraints; ohne Linien werden Punkte paarweise gelesen"""
        if c.lines:
            return [self.lines[lid] for lid in c.lines if lid in self.lines]
        idx = self.point_indices(c) or []
        return [(idx[k], idx[k + 1]) for k in range(0, len(idx) - 1, 2)]

    def endpoint_pair(self, c: Constraint) -> Optional[Tuple[int, int]]:
        idx = self.point_indices(c)
        if idx is not None and len(idx) >= 2:
            return idx[0], idx[1]
        if c.lines and c.lines[0] in self.lines:
            return self.lines[c.lines[0]]
        return None

    def circle_ids(self, c: Constraint) -> List[str]:
        return [cid for cid in c.circles if cid in self.centers]

    # === Korrektur-Primitive ===

    def equalize_axis(self, i: int, j: int, axis: int) -> None:
        res = self.pos[2 * j + axis] - self.pos[2 * i + axis]
        sa, sb = self.shares(self.free(i), self.free(j))
        if sa:
            self.pos[2 * i + axis] += res * sa
        if sb:
            self.pos[2 * j + axis] -= res * sb

    def scale_pair(self, i: int, j: int, target: float) -> None:
        """Abstand i-j entlang der aktuellen Verbindung Richtung target"""
        d = self.p(j) - self.p(i)
        dist = math.hypot(d[0], d[1])
        if dist < Tolerances.SOLVER_DEGENERATE_DISTANCE:
            return
        delta = (target - dist) / dist
        sa, sb = self.shares(self.free(i), self.free(j))
        self.move(i, -d * delta * sa)
        self.move(j, d * delta * sb)

    def pull_together(self, i: int, j: int) -> None:
        r = self.p(j) - self.p(i)
        sa, sb = self.shares(self.free(i), self.free(j))
        self.move(i, r * sa)
        self.move(j, -r * sb)

    def point_on_line(self, i: int, ends: Tuple[int, int]) -> None:
        a, b = self.p(ends[0]), self.p(ends[1])
        ab = b - a
        l2 = float(ab @ ab)
        if l2 < Tolerances.EPSILON_MATH:
            return
        pt = self.p(i)
        foot = a + ab * (float((pt - a) @ ab) / l2)
        r = foot - pt
        sa, sb = self.shares(self.free(i), self.line_free(ends))
        self.move(i, r * sa)
        self.move(ends[0], -r * sb)
        self.move(ends[1], -r * sb)

    def point_on_circle(self, i: int, cid: str) -> None:
        k = self.centers[cid]
        d = self.p(i) - self.p(k)
        dist = math.hypot(d[0], d[1])
        if dist < Tolerances.EPSILON_MATH:
            return
        r = d / dist * (self.radius[cid] - dist)
        sa, sb = self.shares(self.free(i), self.free(k))
        self.move(i, r * sa)
        self.move(k, -r * sb)

    def center_line_distance(self, ends: Tuple[int, int], cid: str, target: float) -> None:
        """Abstand Kreismittelpunkt zur Geraden Richtung target (entlang der Normalen)"""
        k = self.centers[cid]
        a, b = self.p(ends[0]), self.p(ends[1])
        ab = b - a
        l2 = float(ab @ ab)
        if l2 < Tolerances.EPSILON_MATH:
            return
        center = self.p(k)
        foot = a + ab * (float((center - a) @ ab) / l2)
        n = center - foot
        h = math.hypot(n[0], n[1])
        if h < Tolerances.EPSILON_MATH:
            if target <= 0:
                return
            # Mittelpunkt liegt auf der Geraden: linke Normale wählen
            n = np.array([-ab[1], ab[0]]) / math.sqrt(l2)
        else:
            n = n / h
        r = n * (target - h)
        sa, sb = self.shares(self.free(k), self.line_free(ends))
        self.move(k, r * sa)
        self.move(ends[0], -r * sb)
        self.move(ends[1], -r * sb)

    def angle_of(self, ends: Tuple[int, int]) -> float:
        d = self.p(ends[1]) - self.p(ends[0])
        return math.atan2(d[1], d[0])

    def rotate_line(self, ends: Tuple[int, int], theta: float) -> None:
        """Dreht die Linie um ihren Pivot (Mitte oder verankerten Endpunkt)"""
        if theta == 0:
            return
        i, j = ends
        if not self.free(i) and self.free(j):
            pivot = self.p(i)
        elif self.free(i) and not self.free(j):
            pivot = self.p(j)
        else:
            pivot = (self.p(i) + self.p(j)) / 2
        cos_t, sin_t = math.cos(theta), math.sin(theta)
        for k in ends:
            v = self.p(k) - pivot
            rotated = np.array([v[0] * cos_t - v[1] * sin_t, v[0] * sin_t + v[1] * cos_t])
            self.move(k, rotated - v)

    # === Constraint-Regeln ===

    def apply(self, c: Constraint) -> None:
        handler = _RULES.get(c.type)
        if handler is not None:
            handler(self, c)

    def rule_horizontal(self, c: Constraint) -> None:
        pair = self.endpoint_pair(c)
        if pair is not None:
            self.equalize_axis(pair[0], pair[1], axis=1)

    def rule_vertical(self, c: Constraint) -> None:
        pair = self.endpoint_pair(c)
        if pair is not None:
            self.equalize_axis(pair[0], pair[1], axis=0)

    def rule_distance(self, c: Constraint) -> None:
        if c.value is None:
            return
        idx = self.point_indices(c)
        if idx is None:
            return
        circles = self.circle_ids(c)
        if len(idx) >= 2:
            self.scale_pair(idx[0], idx[1], c.value)
        elif len(circles) == 2:
            c1, c2 = circles
            target = c.value + self.radius[c1] + self.radius[c2]
            self.scale_pair(self.centers[c1], self.centers[c2], target)
        elif c.lines and circles and c.lines[0] in self.lines:
            self.center_line_distance(self.lines[c.lines[0]], circles[0],
                                      c.value + self.radius[circles[0]])
        elif c.lines and c.lines[0] in self.lines:
            i, j = self.lines[c.lines[0]]
            self.scale_pair(i, j, c.value)

    def rule_coincident(self, c: Constraint) -> None:
        idx = self.point_indices(c)
        if idx is None:
            return
        circles = self.circle_ids(c)
        if len(idx) >= 2:
            self.pull_cluster(idx)
        elif len(idx) == 1 and c.lines:
            if c.lines[0] in self.lines:
                self.point_on_line(idx[0], self.lines[c.lines[0]])
        elif len(idx) == 1 and circles:
            self.point_on_circle(idx[0], circles[0])
        elif len(circles) == 2:
            self.pull_together(self.centers[circles[0]], self.centers[circles[1]])
        elif c.lines and circles and c.lines[0] in self.lines:
            self.center_line_distance(self.lines[c.lines[0]], circles[0], 0.0)

    def pull_cluster(self, idx: List[int]) -> None:
        """Cluster zum Schwerpunkt (bzw. zum Mittel der verankerten Mitglieder)"""
        anchors = [i for i in idx if not self.free(i)]
        source = anchors if anchors else idx
        target = np.mean([self.p(i) for i in source], axis=0)
        for i in idx:
            self.move(i, (target - self.p(i)) * self.gain)

    def rule_tangent(self, c: Constraint) -> None:
        idx = self.point_indices(c)
        if idx is None:
            return
        circles = self.circle_ids(c)
        if c.lines and circles:
            if c.lines[0] in self.lines:
                cid = circles[0]
                self.center_line_distance(self.lines[c.lines[0]], cid, self.radius[cid])
        elif idx and circles:
            self.point_on_circle(idx[0], circles[0])
        elif len(circles) == 2:
            c1, c2 = circles
            i, j = self.centers[c1], self.centers[c2]
            d = self.p(j) - self.p(i)
            dist = math.hypot(d[0], d[1])
            outer = self.radius[c1] + self.radius[c2]
            inner = abs(self.radius[c1] - self.radius[c2])
            target = outer if abs(dist - outer) <= abs(dist - inner) else inner
            self.scale_pair(i, j, target)

    def rule_midpoint(self, c: Constraint) -> None:
        idx = self.point_indices(c)
        if not idx or not c.lines or c.lines[0] not in self.lines:
            return
        i = idx[0]
        ends = self.lines[c.lines[0]]
        mid = (self.p(ends[0]) + self.p(ends[1])) / 2
        r = mid - self.p(i)
        sa, sb = self.shares(self.free(i), self.line_free(ends))
        self.move(i, r * sa)
        self.move(ends[0], -r * sb)
        self.move(ends[1], -r * sb)

    def rule_equal_length(self, c: Constraint) -> None:
        pairs = self.line_pairs(c)
        if len(pairs) < 2:
            return
        l1, l2 = pairs[0], pairs[1]
        len1 = float(np.linalg.norm(self.p(l1[1]) - self.p(l1[0])))
        len2 = float(np.linalg.norm(self.p(l2[1]) - self.p(l2[0])))
        free1, free2 = self.line_free(l1), self.line_free(l2)
        if free1 and free2:
            target = (len1 + len2) / 2
        elif free1:
            target = len2
        elif free2:
            target = len1
        else:
            return
        if free1:
            self.scale_pair(l1[0], l1[1], target)
        if free2:
            self.scale_pair(l2[0], l2[1], target)

    def rule_parallel(self, c: Constraint) -> None:
        pairs = self.line_pairs(c)
        if len(pairs) < 2:
            return
        l1, l2 = pairs[0], pairs[1]
        diff = wrap_half_turn(self.angle_of(l2) - self.angle_of(l1))
        sa, sb = self.shares(self.line_free(l1), self.line_free(l2))
        self.rotate_line(l1, diff * sa)
        self.rotate_line(l2, -diff * sb)

    def rule_angle(self, c: Constraint) -> None:
        if c.value is None:
            return
        pairs = self.line_pairs(c)
        target = math.radians(c.value)
        if len(pairs) >= 2:
            l1, l2 = pairs[0], pairs[1]
            diff = wrap_angle(target - (self.angle_of(l2) - self.angle_of(l1)))
            sa, sb = self.shares(self.line_free(l1), self.line_free(l2))
            self.rotate_line(l1, -diff * sa)
            self.rotate_line(l2, diff * sb)
        elif len(pairs) == 1 and self.line_free(pairs[0]):
            diff = wrap_angle(target - self.angle_of(pairs[0]))
            self.rotate_line(pairs[0], diff * self.gain)

    def apply_radii(self) -> None:
        self.radius.update(self.radius_overrides)

    # === Diagnose ===

    def residual(self, constraints: Sequence[Constraint]) -> Tuple[float, Optional[Constraint]]:
        def coord(pid: str):
            i = self.index.get(pid)
            if i is None:
                return None
            return (float(self.pos[2 * i]), float(self.pos[2 * i + 1]))

        ids = {i: pid for pid, i in self.index.items()}
        line_ends = {lid: (ids[a], ids[b]) for lid, (a, b) in self.lines.items()}
        circle_geo = {cid: (ids[k], self.radius[cid]) for cid, k in self.centers.items()}

        total = 0.0
        worst, worst_err = None, 0.0
        for c in constraints:
            err = constraint_error(c, coord, line_ends, circle_geo)
            total += err
            if err > worst_err:
                worst, worst_err = c, err
        return total, worst


_RULES = {
    ConstraintType.HORIZONTAL: _Relaxation.rule_horizontal,
    ConstraintType.VERTICAL: _Relaxation.rule_vertical,
    ConstraintType.DISTANCE: _Relaxation.rule_distance,
    ConstraintType.COINCIDENT: _Relaxation.rule_coincident,
    ConstraintType.TANGENT: _Relaxation.rule_tangent,
    ConstraintType.MIDPOINT: _Relaxation.rule_midpoint,
    ConstraintType.EQUAL_LENGTH: _Relaxation.rule_equal_length,
    ConstraintType.PARALLEL: _Relaxation.rule_parallel,
    ConstraintType.ANGLE: _Relaxation.rule_angle,
    # RADIUS: exakt nach jedem Pass (apply_radii), FIXED: nur Anker
}


class RelaxationSolver:
    """
    Relaxations-Solver mit fester Pass-Anzahl.

    Reine Funktion der Eingaben: Eingangs-Objekte werden nie verändert,
    das Ergebnis enthält neue Punkt- und Kreis-Datensätze. Wirft nie;
    unerfüllbare Systeme konvergieren einfach nicht.
    """

    def __init__(self, iterations: Optional[int] = None, step: Optional[float] = None):
        self.iterations = solver_iterations() if iterations is None else iterations
        self.step = solver_step() if step is None else step
        self.residual_threshold = Tolerances.SOLVER_RESIDUAL_WARN

    def solve(self, points: Sequence[Point], constraints: Sequence[Constraint],
              lines: Sequence[Line], circles: Sequence[CircleLike]) -> SolverResult:
        """
        Relaxiert Punktpositionen und Radien.

        Args:
            points: Alle Punkte (Reihenfolge bestimmt den Puffer-Index)
            constraints: Constraints, in Listenreihenfolge angewendet
            lines: Linien (nur für Referenz-Auflösung)
            circles: Kreise UND Bögen (Bögen zählen für Radien als Kreise)

        Returns:
            SolverResult mit neuen Punkten/Kreisen und Rest-Residuum
        """
        state = _Relaxation(points, constraints, lines, circles, self.step)

        for _ in range(self.iterations):
            for c in constraints:
                state.apply(c)
            state.apply_radii()

        solved_points = [
            replace(p, x=float(state.pos[2 * i]), y=float(state.pos[2 * i + 1]))
            for i, p in enumerate(points)
        ]
        solved_circles = [
            replace(c, radius=state.radius[c.id]) if c.id in state.radius else replace(c)
            for c in circles
        ]

        final_error, worst = state.residual(constraints)
        success = final_error <= self.residual_threshold

        if success:
            message = f"Konvergiert (Residuum {final_error:.2e})"
        else:
            message = f"Nicht konvergiert (Residuum {final_error:.4f}, schlechtester: {worst!r})"
            if is_enabled("solver_residual_logging"):
                logger.warning(f"[SOLVER] {message} nach {self.iterations} Pässen, "
                               f"{len(constraints)} Constraints")

        logger.debug(f"[SOLVER] {len(points)} Punkte, {len(constraints)} Constraints, "
                     f"Residuum {final_error:.2e}")

        return SolverResult(
            success=success,
            iterations=self.iterations,
            final_error=final_error,
            message=message,
            points=solved_points,
            circles=solved_circles,
        )


def solve(points: Sequence[Point], constraints: Sequence[Constraint],
          lines: Sequence[Line], circles: Sequence[CircleLike]
          ) -> Tuple[List[Point], List[CircleLike]]:
    """Funktionale Kurzform: ``(points, circles)`` nach einem Solve"""
    result = RelaxationSolver().solve(points, constraints, lines, circles)
    return result.points, result.circles
