"""
RelaxSketch - Topologie / Zyklus-Extraktion
===========================================

Baut aus nicht-Konstruktions-Linien und -Bögen einen Graphen über
kanonische Punkt-Ids, entfernt offene Enden und läuft geschlossene
Zyklen ab. Vollkreise sind eigene Schleifen.

Anschließend werden die Schleifen als Polygone abgetastet (Shapely),
nach Fläche sortiert und verschachtelt: gerade Tiefe = Außenkontur,
ungerade Tiefe = Loch der direkten Eltern-Kontur.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Tuple
import math

from loguru import logger
from shapely.errors import GEOSException
from shapely.geometry import Point as ShapelyPoint, Polygon

from config.feature_flags import is_enabled
from config.tolerances import Tolerances
from .constraints import wrap_angle
from .geometry import Arc, Circle, CurveKind, Line, Point

Coord = Tuple[float, float]


@dataclass
class LoopEdge:
    """Kante eines Zyklus zwischen zwei kanonischen Punkt-Ids"""
    start: str
    end: str
    kind: CurveKind = CurveKind.LINE
    arc: Optional[Arc] = None


@dataclass
class Loop:
    """Geschlossene Schleife: Kantenfolge oder ein einzelner Vollkreis"""
    edges: List[LoopEdge] = field(default_factory=list)
    circle: Optional[Circle] = None

    @property
    def is_circle(self) -> bool:
        return self.circle is not None

    def node_ids(self) -> List[str]:
        return [e.start for e in self.edges]


class CoordLookup:
    """
    Koordinaten zu kanonischen Ids.

    Existiert ein Punkt mit genau dieser Id, wird er verwendet, sonst
    irgendein Punkt desselben Clusters.
    """

    def __init__(self, points: Iterable[Point], canonicalize: Callable[[str], str]):
        self.canonicalize = canonicalize
        self._by_id: Dict[str, Point] = {}
        self._by_canonical: Dict[str, Point] = {}
        for p in points:
            self._by_id[p.id] = p
            self._by_canonical.setdefault(canonicalize(p.id), p)

    def __call__(self, canonical_id: str) -> Coord:
        p = self._by_id.get(canonical_id) or self._by_canonical.get(canonical_id)
        if p is None or math.isnan(p.x) or math.isnan(p.y):
            return (0.0, 0.0)
        return (p.x, p.y)

    def of(self, point_id: str) -> Coord:
        """Koordinaten über die kanonische Id eines beliebigen Punkts"""
        return self(self.canonicalize(point_id))


# === Bogen-Geometrie ===

def arc_sweep(center: Coord, start: Coord, end: Coord) -> Tuple[float, float]:
    """
    Startwinkel und Sweep des kürzeren Bogens von start nach end.

    Returns:
        (start_angle, sweep) mit sweep in (-pi, pi]; sweep < 0 = im Uhrzeigersinn
    """
    a1 = math.atan2(start[1] - center[1], start[0] - center[0])
    a2 = math.atan2(end[1] - center[1], end[0] - center[0])
    return a1, wrap_angle(a2 - a1)


def arc_midpoint(center: Coord, radius: float, start: Coord, end: Coord) -> Coord:
    """Mittelpunkt des kürzeren Bogens (Drei-Punkt-Bogen für den Kernel)"""
    a1, sweep = arc_sweep(center, start, end)
    mid = a1 + sweep / 2
    return (center[0] + radius * math.cos(mid), center[1] + radius * math.sin(mid))


# === Zyklus-Extraktion ===

@dataclass
class _Edge:
    to: str
    kind: CurveKind
    arc: Optional[Arc] = None


def _build_adjacency(lines: List[Line], arcs: List[Arc],
                     canonicalize: Callable[[str], str]) -> Dict[str, List[_Edge]]:
    adj: Dict[str, List[_Edge]] = {}
    for line in lines:
        u, v = canonicalize(line.p1), canonicalize(line.p2)
        if u != v:
            adj.setdefault(u, []).append(_Edge(v, CurveKind.LINE))
            adj.setdefault(v, []).append(_Edge(u, CurveKind.LINE))
    for arc in arcs:
        u, v = canonicalize(arc.p1), canonicalize(arc.p2)
        if u != v:
            adj.setdefault(u, []).append(_Edge(v, CurveKind.ARC, arc))
            adj.setdefault(v, []).append(_Edge(u, CurveKind.ARC, arc))
    return adj


def _prune_open_ends(adj: Dict[str, List[_Edge]]) -> None:
    """Entfernt Knoten mit Grad < 2, bis sich nichts mehr ändert"""
    changed = True
    while changed:
        changed = False
        for node in list(adj):
            neighbors = adj[node]
            if len(neighbors) >= 2:
                continue
            for edge in neighbors:
                others = adj.get(edge.to)
                if others is None:
                    continue
                for k, back in enumerate(others):
                    if back.to == node:
                        del others[k]
                        break
            del adj[node]
            changed = True


def extract_loops(points: List[Point], lines: List[Line], arcs: List[Arc],
                  circles: List[Circle], canonicalize: Callable[[str], str],
                  allowed_ids: Optional[Iterable[str]] = None,
                  axis_line_id: Optional[str] = None) -> List[Loop]:
    """
    Findet geschlossene Schleifen im Linien/Bogen-Graphen.

    Args:
        points: Alle Punkte (nur für Plausibilität der Kreismittelpunkte)
        lines, arcs, circles: Geometrie; Konstruktionsgeometrie wird ignoriert
        canonicalize: Punkt-Id -> kanonische Cluster-Id
        allowed_ids: Optionaler Filter; leer/None = alles erlaubt
        axis_line_id: Rotationsachse, nie Teil eines Profils

    Returns:
        Kanten-Schleifen in Fundreihenfolge, danach die Vollkreise
    """
    allowed = set(allowed_ids) if allowed_ids else None

    def is_allowed(eid: str) -> bool:
        return allowed is None or eid in allowed

    used_lines = [l for l in lines
                  if not l.construction and l.id != axis_line_id and is_allowed(l.id)]
    used_arcs = [a for a in arcs if not a.construction and is_allowed(a.id)]
    used_circles = [c for c in circles if not c.construction and is_allowed(c.id)]

    adj = _build_adjacency(used_lines, used_arcs, canonicalize)
    _prune_open_ends(adj)

    loops: List[Loop] = []
    visited_global = set()

    for start in list(adj):
        if start in visited_global:
            continue

        path = [start]
        edge_path: List[_Edge] = []
        in_path = {start}
        current, prev = start, None

        while True:
            neighbors = adj.get(current)
            if not neighbors:
                break

            next_edge = None
            for edge in neighbors:
                if edge.to != prev and edge.to not in in_path:
                    next_edge = edge
                    break
            if next_edge is None and len(path) > 2:
                for edge in neighbors:
                    if edge.to == path[0] and edge.to != prev:
                        next_edge = edge
                        break
            if next_edge is None:
                break

            if next_edge.to == path[0]:
                edge_path.append(next_edge)
                loops.append(Loop(edges=[
                    LoopEdge(path[i], edge_path[i].to, edge_path[i].kind, edge_path[i].arc)
                    for i in range(len(path))
                ]))
                visited_global.update(path)
                break

            path.append(next_edge.to)
            edge_path.append(next_edge)
            in_path.add(next_edge.to)
            prev, current = current, next_edge.to

            if len(path) > Tolerances.LOOP_MAX_STEPS:
                logger.debug(f"[TOPOLOGY] Zyklus-Walk abgebrochen: {len(path)} Schritte ab {start}")
                break

    point_ids = {p.id for p in points}
    for circle in used_circles:
        if circle.center in point_ids and circle.radius > 0 and not math.isnan(circle.radius):
            loops.append(Loop(circle=circle))

    if is_enabled("sketch_debug"):
        logger.debug(f"[TOPOLOGY] {len(loops)} Schleifen aus {len(used_lines)} Linien, "
                     f"{len(used_arcs)} Bögen, {len(used_circles)} Kreisen")
    return loops


# === Abtastung und Verschachtelung ===

def sample_loop(loop: Loop, coords: CoordLookup) -> List[Coord]:
    """Polygon-Approximation einer Schleife (Bögen mit ARC_SAMPLES Stützpunkten)"""
    if loop.circle is not None:
        cx, cy = coords.of(loop.circle.center)
        r = loop.circle.radius
        n = Tolerances.CIRCLE_SAMPLES
        return [(cx + r * math.cos(2 * math.pi * k / n), cy + r * math.sin(2 * math.pi * k / n))
                for k in range(n)]

    if not loop.edges:
        return []

    result = [coords(loop.edges[0].start)]
    for edge in loop.edges:
        src = coords(edge.start)
        dest = coords(edge.end)
        arc = edge.arc
        if edge.kind == CurveKind.ARC and arc is not None and arc.radius > 0:
            center = coords.of(arc.center)
            a1, sweep = arc_sweep(center, src, dest)
            n = Tolerances.ARC_SAMPLES
            for k in range(1, n + 1):
                angle = a1 + sweep * k / n
                result.append((center[0] + arc.radius * math.cos(angle),
                               center[1] + arc.radius * math.sin(angle)))
        else:
            result.append(dest)

    # Letzter Punkt schließt auf den Start
    return result[:-1]


@dataclass
class LoopShape:
    """Abgetastete Schleife mit Fläche und Eltern-Verweis"""
    loop: Loop
    samples: List[Coord]
    polygon: Polygon
    area: float
    parent: Optional['LoopShape'] = None

    @property
    def depth(self) -> int:
        depth, p = 0, self.parent
        while p is not None:
            depth += 1
            p = p.parent
        return depth


@dataclass
class ProfileRegion:
    """Außenkontur mit ihren direkten Löchern"""
    outer: LoopShape
    holes: List[LoopShape] = field(default_factory=list)

    @property
    def polygon(self) -> Polygon:
        return Polygon(self.outer.samples, [h.samples for h in self.holes])

    @property
    def area(self) -> float:
        return self.outer.area - sum(h.area for h in self.holes)


def _contains(container: LoopShape, sample: Coord) -> bool:
    try:
        return container.polygon.contains(ShapelyPoint(sample))
    except GEOSException as e:
        logger.debug(f"[TOPOLOGY] Punkt-in-Polygon übersprungen: {e}")
        return False


def nest_loops(loops: List[Loop], coords: CoordLookup) -> List[ProfileRegion]:
    """
    Sortiert Schleifen nach Fläche und ordnet Löcher zu.

    Eltern einer Schleife ist die kleinste größere Schleife, die ihren
    ersten Stützpunkt enthält. Schleifen mit Fläche <= LOOP_MIN_AREA
    werden als entartet verworfen.
    """
    shapes: List[LoopShape] = []
    for loop in loops:
        samples = sample_loop(loop, coords)
        if len(samples) < 3:
            continue
        polygon = Polygon(samples)
        area = abs(polygon.area)
        if math.isnan(area) or area <= Tolerances.LOOP_MIN_AREA:
            logger.debug(f"[TOPOLOGY] Entartete Schleife verworfen (Fläche {area:.2e})")
            continue
        shapes.append(LoopShape(loop, samples, polygon, area))

    shapes.sort(key=lambda s: s.area, reverse=True)

    for i, current in enumerate(shapes):
        best = None
        for candidate in shapes[:i]:
            if _contains(candidate, current.samples[0]):
                if best is None or candidate.area < best.area:
                    best = candidate
        current.parent = best

    regions: Dict[int, ProfileRegion] = {}
    ordered: List[ProfileRegion] = []
    for shape in shapes:
        if shape.depth % 2 == 0:
            region = ProfileRegion(shape)
            regions[id(shape)] = region
            ordered.append(region)
        elif shape.parent is not None:
            regions[id(shape.parent)].holes.append(shape)
    return ordered
