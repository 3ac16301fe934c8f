"""
Tests für Zyklus-Extraktion, Bogen-Sweep und Loch-Verschachtelung.
"""

import math

import pytest

from relaxsketch.constraints import make_coincident
from relaxsketch.geometry import Arc, CurveKind
from relaxsketch.sketch import Sketch
from relaxsketch.topology import arc_midpoint, arc_sweep

pytestmark = pytest.mark.topology


def _square(sketch, x0, y0, size, construction=False):
    pts = [
        sketch.add_point(x0, y0),
        sketch.add_point(x0 + size, y0),
        sketch.add_point(x0 + size, y0 + size),
        sketch.add_point(x0, y0 + size),
    ]
    lines = [sketch.add_line_between(pts[i].id, pts[(i + 1) % 4].id, construction=construction)
             for i in range(4)]
    return pts, lines


class TestLoopExtraction:

    def test_square_is_one_loop_with_area_100(self, sketch):
        _square(sketch, 0, 0, 10)

        loops = sketch.closed_loops()
        regions = sketch.profile_regions()

        assert len(loops) == 1
        assert len(loops[0].edges) == 4
        assert len(regions) == 1
        assert regions[0].area == pytest.approx(100.0)

    def test_construction_diagonal_is_ignored(self, sketch):
        pts, _ = _square(sketch, 0, 0, 10)
        sketch.add_line_between(pts[0].id, pts[2].id, construction=True)

        regions = sketch.profile_regions()

        assert len(sketch.closed_loops()) == 1
        assert regions[0].area == pytest.approx(100.0)

    def test_construction_only_square_has_no_loop(self, sketch):
        _square(sketch, 0, 0, 10, construction=True)
        assert sketch.closed_loops() == []

    def test_open_chain_is_pruned(self, sketch):
        a = sketch.add_point(0, 0)
        b = sketch.add_point(10, 0)
        c = sketch.add_point(10, 10)
        sketch.add_line_between(a.id, b.id)
        sketch.add_line_between(b.id, c.id)

        assert sketch.closed_loops() == []

    def test_dangling_tail_does_not_break_loop(self, sketch):
        pts, _ = _square(sketch, 0, 0, 10)
        tail = sketch.add_point(20, 20)
        sketch.add_line_between(pts[2].id, tail.id)

        regions = sketch.profile_regions()
        assert len(regions) == 1
        assert regions[0].area == pytest.approx(100.0)

    def test_loop_through_coincidence_clusters(self, sketch):
        """Linien mit eigenen Endpunkten, verbunden nur über COINCIDENT."""
        corners = [(0, 0), (10, 0), (10, 10), (0, 10)]
        lines = []
        for i in range(4):
            x1, y1 = corners[i]
            x2, y2 = corners[(i + 1) % 4]
            lines.append(sketch.add_line(x1, y1, x2, y2))
        for i in range(4):
            sketch.constraints.append(make_coincident(lines[i].p2, lines[(i + 1) % 4].p1))

        regions = sketch.profile_regions()
        assert len(regions) == 1
        assert regions[0].area == pytest.approx(100.0)

    def test_full_circle_is_its_own_loop(self, sketch):
        sketch.add_circle(0, 0, 5)

        loops = sketch.closed_loops()
        regions = sketch.profile_regions()

        assert len(loops) == 1
        assert loops[0].is_circle
        assert regions[0].area == pytest.approx(math.pi * 25, rel=0.01)

    def test_allowed_ids_filter(self, sketch):
        _, lines = _square(sketch, 0, 0, 10)
        circle = sketch.add_circle(50, 50, 5)

        loops = sketch.closed_loops(allowed_ids=[circle.id])
        assert len(loops) == 1
        assert loops[0].circle.id == circle.id

        # Erwartung: fehlende Linie öffnet das Quadrat
        assert sketch.closed_loops(allowed_ids=[l.id for l in lines[:3]]) == []

    def test_axis_line_is_excluded(self, sketch):
        _, lines = _square(sketch, 0, 0, 10)
        assert sketch.closed_loops(axis_line_id=lines[0].id) == []

    def test_arc_edge_in_loop(self, sketch):
        o = sketch.add_point(0, 0)
        a = sketch.add_point(10, 0)
        b = sketch.add_point(0, 10)
        sketch.add_line_between(o.id, a.id)
        sketch.add_line_between(b.id, o.id)
        sketch.arcs.append(Arc(o.id, 10, a.id, b.id, id="a_quarter"))

        loops = sketch.closed_loops()
        regions = sketch.profile_regions()

        assert len(loops) == 1
        assert any(e.kind == CurveKind.ARC for e in loops[0].edges)
        assert regions[0].area == pytest.approx(math.pi * 100 / 4, rel=0.01)

    def test_two_separate_squares(self, sketch):
        _square(sketch, 0, 0, 10)
        _square(sketch, 20, 0, 5)

        regions = sketch.profile_regions()
        assert len(regions) == 2
        assert sorted(r.area for r in regions) == pytest.approx([25.0, 100.0])


class TestNesting:

    def test_inner_square_becomes_hole(self, sketch):
        _square(sketch, 0, 0, 10)
        _square(sketch, 3, 3, 4)

        regions = sketch.profile_regions()

        assert len(regions) == 1
        assert len(regions[0].holes) == 1
        assert regions[0].area == pytest.approx(84.0)
        assert regions[0].polygon.area == pytest.approx(84.0)

    def test_island_inside_hole_is_solid_again(self, sketch):
        _square(sketch, 0, 0, 30)
        _square(sketch, 5, 5, 20)
        _square(sketch, 10, 10, 10)

        regions = sketch.profile_regions()

        # Tiefe 0 und 2 sind Außenkonturen, Tiefe 1 ist Loch
        assert len(regions) == 2
        outer = max(regions, key=lambda r: r.outer.area)
        island = min(regions, key=lambda r: r.outer.area)
        assert len(outer.holes) == 1
        assert island.outer.depth == 2
        assert island.holes == []

    def test_circle_hole_in_square(self, sketch):
        _square(sketch, 0, 0, 20)
        sketch.add_circle(10, 10, 3)

        regions = sketch.profile_regions()
        assert len(regions) == 1
        assert regions[0].holes[0].loop.is_circle


class TestArcSweep:

    def test_counter_clockwise_quarter(self):
        start, sweep = arc_sweep((0, 0), (1, 0), (0, 1))
        assert start == pytest.approx(0.0)
        assert sweep == pytest.approx(math.pi / 2)

    def test_clockwise_quarter(self):
        _, sweep = arc_sweep((0, 0), (0, 1), (1, 0))
        assert sweep == pytest.approx(-math.pi / 2)

    def test_shorter_path_across_branch_cut(self):
        # 170° -> -170° ist ein 20°-Bogen über die negative X-Achse
        a = (math.cos(math.radians(170)), math.sin(math.radians(170)))
        b = (math.cos(math.radians(-170)), math.sin(math.radians(-170)))
        _, sweep = arc_sweep((0, 0), a, b)
        assert math.degrees(sweep) == pytest.approx(20.0)

    def test_midpoint(self):
        mid = arc_midpoint((0, 0), 10, (10, 0), (0, 10))
        assert mid == pytest.approx((10 / math.sqrt(2), 10 / math.sqrt(2)))
