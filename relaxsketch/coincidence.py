"""
RelaxSketch - Koinzidenz-Auflösung
==================================

Union-Find über COINCIDENT-Constraints. Liefert für jeden Punkt die
kanonische Id seines Koinzidenz-Clusters.

Die Abbildung wird bei jeder Verwendung frisch aus der aktuellen
Constraint-Liste gebaut und nie über Mutationen hinweg gecacht.
Cluster-Punkte bleiben eigenständige Entities; zusammengezogen werden
sie ausschließlich vom Solver.
"""

from collections import deque
from typing import Dict, Iterable, List

from .constraints import Constraint, ConstraintType
from .geometry import Point


class UnionFind:
    """Union-Find mit Pfadkompression, aufrufbar als ``find(point_id)``"""

    def __init__(self, ids: Iterable[str] = ()):
        self._parent: Dict[str, str] = {}
        for pid in ids:
            self._parent.setdefault(pid, pid)

    def find(self, pid: str) -> str:
        parent = self._parent
        if pid not in parent:
            parent[pid] = pid
            return pid

        root = pid
        while parent[root] != root:
            root = parent[root]

        # Pfadkompression
        while parent[pid] != root:
            parent[pid], pid = root, parent[pid]
        return root

    def union(self, a: str, b: str) -> None:
        root_a = self.find(a)
        root_b = self.find(b)
        if root_a != root_b:
            self._parent[root_a] = root_b

    def __call__(self, pid: str) -> str:
        return self.find(pid)

    def clusters(self) -> Dict[str, List[str]]:
        """Kanonische Id -> alle Mitglieder"""
        result: Dict[str, List[str]] = {}
        for pid in list(self._parent):
            result.setdefault(self.find(pid), []).append(pid)
        return result


def build_canonical_map(points: List[Point], constraints: List[Constraint]) -> UnionFind:
    """
    Baut die Koinzidenz-Abbildung.

    Nur COINCIDENT-Constraints mit mindestens zwei Punkten vereinigen;
    alle weiteren Punkte werden gegen den ersten vereinigt.
    """
    uf = UnionFind(p.id for p in points)
    for c in constraints:
        if c.type != ConstraintType.COINCIDENT or len(c.points) < 2:
            continue
        first = c.points[0]
        for other in c.points[1:]:
            uf.union(first, other)
    return uf


def coincident_cluster(point_id: str, constraints: List[Constraint]) -> List[str]:
    """
    Breitensuche über die Punktlisten aller COINCIDENT-Constraints.

    Returns:
        Cluster inkl. Startpunkt, in Entdeckungsreihenfolge
    """
    cluster = [point_id]
    visited = {point_id}
    queue = deque([point_id])

    coincident = [c for c in constraints if c.type == ConstraintType.COINCIDENT]
    while queue:
        current = queue.popleft()
        for c in coincident:
            if current not in c.points:
                continue
            for pid in c.points:
                if pid not in visited:
                    visited.add(pid)
                    cluster.append(pid)
                    queue.append(pid)
    return cluster
