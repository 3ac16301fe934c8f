"""
Tests für Trim/Split und Kreis->Bogen.
"""

import pytest

from relaxsketch.constraints import ConstraintType, make_horizontal, make_point_on_line
from relaxsketch.operations import ResultStatus, TrimOperation

pytestmark = pytest.mark.operations


def _base_line(sketch):
    start = sketch.add_point(0, 0)
    end = sketch.add_point(10, 0)
    line = sketch.add_line_between(start.id, end.id)
    return start, end, line


def _on_line(sketch, x, y, line):
    p = sketch.add_point(x, y)
    c = make_point_on_line(p.id, line.id)
    sketch.constraints.append(c)
    return p, c


class TestTrimLine:

    def test_trim_to_coincident_point(self, sketch):
        """Linie (0,0)-(10,0), Punkt (5,0) auf der Linie, Trim bis zum Ende (10,0)."""
        start, end, line = _base_line(sketch)
        mid, coin = _on_line(sketch, 5, 0, line)

        result = TrimOperation(sketch).execute(mid.id, end.id)

        assert result.status == ResultStatus.SUCCESS
        trimmed = sketch.get_line(line.id)
        assert trimmed.point_ids() == (start.id, mid.id)
        assert sketch.coords(trimmed.p1) == (0, 0)
        assert sketch.coords(trimmed.p2) == (5, 0)
        # Erwartung: die Koinzidenz ist jetzt ein echter Endpunkt und entfällt
        assert coin not in sketch.constraints

    def test_argument_order_does_not_matter(self, sketch):
        start, end, line = _base_line(sketch)
        mid, _ = _on_line(sketch, 5, 0, line)

        TrimOperation(sketch).execute(end.id, mid.id)

        assert sketch.get_line(line.id).point_ids() == (start.id, mid.id)

    def test_both_endpoints_delete_line(self, sketch):
        start, end, line = _base_line(sketch)
        h = make_horizontal(start.id, end.id)
        sketch.constraints.append(h)
        _, coin = _on_line(sketch, 5, 0, line)

        result = TrimOperation(sketch).execute(start.id, end.id)

        assert result.removed == [line.id]
        assert sketch.lines == []
        assert coin not in sketch.constraints
        # Constraints ohne Linienreferenz bleiben
        assert h in sketch.constraints

    def test_split_between_two_interior_points(self, sketch):
        start, end, line = _base_line(sketch)
        a, _ = _on_line(sketch, 3, 0, line)
        b, _ = _on_line(sketch, 7, 0, line)

        result = TrimOperation(sketch).execute(b.id, a.id)

        assert result.status == ResultStatus.SUCCESS
        assert sketch.get_line(line.id) is None
        assert len(sketch.lines) == 2
        ends = {l.point_ids() for l in sketch.lines}
        # Sortiert nach Abstand zum Startpunkt
        assert ends == {(start.id, a.id), (b.id, end.id)}
        assert not any(line.id in c.lines for c in sketch.constraints)

    def test_split_keeps_construction_flag(self, sketch):
        _, _, line = _base_line(sketch)
        line.construction = True
        a, _ = _on_line(sketch, 3, 0, line)
        b, _ = _on_line(sketch, 7, 0, line)

        result = TrimOperation(sketch).execute(a.id, b.id)

        assert result.status == ResultStatus.SUCCESS
        assert len(sketch.lines) == 2
        assert all(l.construction for l in sketch.lines)

    def test_selected_line_is_preferred(self, sketch):
        start, end, line = _base_line(sketch)
        other = sketch.add_line_between(start.id, end.id)
        sketch.select(lines=[other.id])

        TrimOperation(sketch).execute(start.id, end.id)

        assert [l.id for l in sketch.lines] == [line.id]

    def test_unrelated_points_are_no_target(self, sketch):
        _base_line(sketch)
        p = sketch.add_point(50, 50)
        q = sketch.add_point(60, 50)
        before = sketch.to_dict()

        op = TrimOperation(sketch)
        result = op.execute(p.id, q.id)

        assert result.status == ResultStatus.NO_TARGET
        assert op.last_result is result and not result.is_error
        assert sketch.to_dict() == before

    def test_split_without_selected_line(self, sketch):
        """Zwei Innenpunkte finden ihre Linie über COINCIDENT allein."""
        _, _, line = _base_line(sketch)
        a, _ = _on_line(sketch, 3, 0, line)
        b, _ = _on_line(sketch, 7, 0, line)
        assert sketch.selected_line_ids == []

        op = TrimOperation(sketch)
        assert op.find_target_line(a.id, b.id) is line
        assert op.can_execute(a.id, b.id)

    def test_can_execute(self, sketch):
        start, end, _ = _base_line(sketch)
        lone = sketch.add_point(40, 40)
        op = TrimOperation(sketch)

        assert op.can_execute(start.id, end.id)
        assert not op.can_execute(start.id, lone.id)


class TestTrimCircle:

    def test_circle_becomes_arc_with_same_id(self, sketch):
        circle = sketch.add_circle(0, 0, 10, construction=True)
        p1 = sketch.add_point(10, 0)
        p2 = sketch.add_point(0, 10.5)

        result = TrimOperation(sketch).execute(p1.id, p2.id)

        assert result.success
        assert sketch.circles == []
        arc = sketch.get_arc(circle.id)
        assert arc is not None
        assert arc.point_ids() == (p1.id, p2.id)
        assert arc.center == circle.center
        assert arc.radius == 10
        assert arc.construction

    def test_points_off_circle_do_not_convert(self, sketch):
        sketch.add_circle(0, 0, 10)
        p1 = sketch.add_point(10, 0)
        p2 = sketch.add_point(0, 12)

        result = TrimOperation(sketch).execute(p1.id, p2.id)

        assert result.status == ResultStatus.NO_TARGET
        assert len(sketch.circles) == 1
        assert sketch.arcs == []

    def test_constraints_on_circle_survive_conversion(self, sketch):
        circle = sketch.add_circle(0, 0, 10)
        sketch.add_constraint(ConstraintType.RADIUS, circles=[circle.id], value=10)
        p1 = sketch.add_point(10, 0)
        p2 = sketch.add_point(-10, 0)

        TrimOperation(sketch).execute(p1.id, p2.id)

        assert any(c.type == ConstraintType.RADIUS and circle.id in c.circles
                   for c in sketch.constraints)
        assert sketch.cleanup_dangling() == 0
