"""
Tests für die Fillet-Operation.
"""

import math

import pytest

from relaxsketch.constraints import ConstraintType, make_coincident, make_horizontal
from relaxsketch.geometry import point_line_distance
from relaxsketch.operations import FilletOperation, ResultStatus, compute_fillet
from relaxsketch.session import SketchSession

pytestmark = pytest.mark.operations


def _corner(sketch, arm1=(60, 0), arm2=(0, 60)):
    v = sketch.add_point(0, 0)
    a = sketch.add_point(*arm1)
    b = sketch.add_point(*arm2)
    l1 = sketch.add_line_between(v.id, a.id)
    l2 = sketch.add_line_between(v.id, b.id)
    return v, a, b, l1, l2


class TestFilletGeometry:

    def test_right_angle_default_radius(self):
        geo = compute_fillet((0, 0), (60, 0), (0, 60), 20)

        assert not geo.reduced
        assert geo.radius == 20
        assert geo.tangent1 == pytest.approx((20.0, 0.0))
        assert geo.tangent2 == pytest.approx((0.0, 20.0))
        assert geo.center == pytest.approx((20.0, 20.0))

    def test_radius_reduced_on_short_arms(self):
        geo = compute_fillet((0, 0), (30, 0), (0, 50), 20)

        # 40% von 30 = 12 -> bei 90° ist r = d
        assert geo.reduced
        assert geo.radius == pytest.approx(12.0)
        assert geo.tangent1 == pytest.approx((12.0, 0.0))

    def test_collinear_raises(self):
        with pytest.raises(ValueError):
            compute_fillet((0, 0), (10, 0), (-10, 0), 5)

    def test_zero_length_raises(self):
        with pytest.raises(ValueError):
            compute_fillet((0, 0), (0, 0), (0, 10), 5)


class TestFilletOperation:

    def test_right_angle_creates_tangent_arc(self, sketch):
        v, a, b, l1, l2 = _corner(sketch)

        result = FilletOperation(sketch).execute(v.id)

        assert result.status == ResultStatus.SUCCESS
        assert len(sketch.arcs) == 1
        arc = sketch.arcs[0]
        assert arc.id.startswith("a_fil")
        assert arc.radius == 20

        t1 = sketch.get_point(arc.p1)
        t2 = sketch.get_point(arc.p2)
        # Erwartung: Tangentenpunkte exakt 20 vom alten Eckpunkt
        assert math.hypot(t1.x, t1.y) == pytest.approx(20.0)
        assert math.hypot(t2.x, t2.y) == pytest.approx(20.0)

        # Linien verkürzt: Fernpunkt -> Tangentenpunkt
        assert sketch.get_line(l1.id).point_ids() == (a.id, t1.id)
        assert sketch.get_line(l2.id).point_ids() == (b.id, t2.id)
        assert sketch.get_point(v.id) is None

    def test_adds_tangent_coincident_and_radius_constraints(self, sketch):
        v, _, _, l1, l2 = _corner(sketch)
        FilletOperation(sketch).execute(v.id)
        arc = sketch.arcs[0]

        types = [c.type for c in sketch.constraints if arc.id in c.circles]
        assert types.count(ConstraintType.TANGENT) == 2
        assert types.count(ConstraintType.COINCIDENT) == 2
        assert types.count(ConstraintType.RADIUS) == 1
        tangent_lines = {c.lines[0] for c in sketch.constraints if c.type == ConstraintType.TANGENT}
        assert tangent_lines == {l1.id, l2.id}

    def test_solve_keeps_exact_geometry(self):
        session = SketchSession()
        v, a, b, l1, l2 = _corner(session.sketch)

        result = session.fillet(v.id)
        assert result.success

        sketch = session.sketch
        arc = sketch.arcs[0]
        center = sketch.get_point(arc.center).as_tuple()
        assert arc.radius == pytest.approx(20.0)
        for line in sketch.lines:
            p, q = sketch.coords(line.p1), sketch.coords(line.p2)
            assert point_line_distance(center, p, q) == pytest.approx(20.0, abs=1e-6)

    def test_short_arms_warn_with_reduced_radius(self, sketch):
        v, _, _, _, _ = _corner(sketch, arm1=(30, 0), arm2=(0, 50))

        result = FilletOperation(sketch).execute(v.id)

        assert result.status == ResultStatus.WARNING
        assert result.success
        assert sketch.arcs[0].radius == pytest.approx(12.0)
        radius_c = [c for c in sketch.constraints if c.type == ConstraintType.RADIUS][0]
        assert radius_c.value == pytest.approx(12.0)

    def test_single_line_is_rejected_without_mutation(self, sketch):
        a = sketch.add_point(0, 0)
        b = sketch.add_point(10, 0)
        sketch.add_line_between(a.id, b.id)
        before = sketch.to_dict()

        result = FilletOperation(sketch).execute(a.id)

        assert result.status == ResultStatus.NO_TARGET
        assert sketch.to_dict() == before

    def test_three_lines_are_rejected(self, sketch):
        v, _, _, _, _ = _corner(sketch)
        c = sketch.add_point(-30, -30)
        sketch.add_line_between(v.id, c.id)

        assert FilletOperation(sketch).execute(v.id).status == ResultStatus.NO_TARGET

    def test_collinear_corner_is_error(self, sketch):
        v, _, _, _, _ = _corner(sketch, arm1=(50, 0), arm2=(-50, 0))

        result = FilletOperation(sketch).execute(v.id)

        assert result.status == ResultStatus.ERROR
        assert sketch.arcs == []

    def test_vertex_as_coincidence_cluster(self, sketch):
        l1 = sketch.add_line(0, 0, 60, 0)
        l2 = sketch.add_line(0, 0, 0, 60)
        sketch.constraints.append(make_coincident(l1.p1, l2.p1))
        cluster = {l1.p1, l2.p1}

        result = FilletOperation(sketch).execute(l1.p1)

        assert result.success
        assert set(result.removed) == cluster
        assert all(sketch.get_point(pid) is None for pid in cluster)
        # Der Cluster-Constraint referenziert keinen Fernpunkt und entfällt
        assert not any(c.type == ConstraintType.COINCIDENT and len(c.points) == 2
                       for c in sketch.constraints)

    def test_constraints_are_rewired_to_tangent_points(self, sketch):
        v, a, _, _, _ = _corner(sketch)
        h = make_horizontal(v.id, a.id)
        sketch.constraints.append(h)

        FilletOperation(sketch).execute(v.id)
        t1 = sketch.arcs[0].p1

        assert h in sketch.constraints
        assert h.points == [t1, a.id]

    def test_circle_snapped_to_corner_keeps_its_center(self, sketch):
        v, _, _, _, _ = _corner(sketch)
        circle = sketch.add_circle(0, 0, 5, center_snap_id=v.id)

        result = FilletOperation(sketch).execute(v.id)

        assert result.success
        assert result.removed == [v.id]
        assert sketch.get_circle(circle.id) is not None
        assert sketch.get_point(circle.center) is not None
        # Erwartung: keine Referenz zeigt ins Leere
        assert sketch.cleanup_dangling() == 0
