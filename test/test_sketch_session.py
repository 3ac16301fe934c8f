"""
Tests für Sketch-Zustand, Aktions-Katalog und SketchSession.
"""

import math

import pytest

from relaxsketch.actions import SketchAction, available_actions
from relaxsketch.constraints import ConstraintType, make_horizontal, make_radius
from relaxsketch.operations import ResultStatus
from relaxsketch.session import SketchSession
from relaxsketch.sketch import SelectionError, SelectionMode, Sketch, SketchTool

pytestmark = pytest.mark.session


class TestGeometryCreation:

    def test_line_reuses_snapped_point(self, sketch):
        first = sketch.add_line(0, 0, 10, 0)
        second = sketch.add_line(10, 0, 10, 10, p1_snap_id=first.p2)

        assert second.p1 == first.p2
        assert len(sketch.points) == 3

    def test_unknown_snap_creates_new_point(self, sketch):
        line = sketch.add_line(0, 0, 10, 0, p1_snap_id="p_missing")
        assert line.p1 != "p_missing"
        assert sketch.get_point(line.p1) is not None

    def test_circle_snap_adds_coincidence(self, sketch):
        anchor = sketch.add_point(3, 3)
        circle = sketch.add_circle(3, 3, 4, center_snap_id=anchor.id)

        c = sketch.constraints[-1]
        assert c.type == ConstraintType.COINCIDENT
        assert set(c.points) == {circle.center, anchor.id}

    def test_rectangle_has_hv_constraints(self, sketch):
        lines = sketch.add_rectangle(0, 0, 10, 5)

        assert len(lines) == 4
        assert len(sketch.points) == 4
        types = [c.type for c in sketch.constraints]
        assert types == [ConstraintType.HORIZONTAL, ConstraintType.VERTICAL,
                         ConstraintType.HORIZONTAL, ConstraintType.VERTICAL]
        assert sketch.solve().success

    def test_arc_id_radius_and_endpoint_constraints(self, sketch):
        arc = sketch.add_arc(0, 0, 5, 0, 0, 5)

        assert arc.id == f"a_{arc.center}"
        assert arc.radius == pytest.approx(5.0)
        on_arc = [c for c in sketch.constraints if arc.id in c.circles]
        assert {c.points[0] for c in on_arc} == {arc.p1, arc.p2}
        assert all(c.type == ConstraintType.COINCIDENT for c in on_arc)


class TestSelection:

    def test_toggle_and_union(self, sketch):
        sketch.select(points=["a", "b"])
        sketch.select(points=["b", "c"])
        assert sketch.selected_point_ids == ["a", "c"]

        sketch.select(points=["a", "d"], mode=SelectionMode.UNION)
        assert sketch.selected_point_ids == ["a", "c", "d"]

    def test_geometry_selection_clears_constraint_selection(self, sketch):
        sketch.select(constraints=["c1"])
        assert sketch.selected_constraint_ids == ["c1"]

        sketch.select(lines=["l1"])
        assert sketch.selected_constraint_ids == []
        assert sketch.selected_line_ids == ["l1"]

    def test_clear_selection(self, sketch):
        sketch.select(points=["a"], lines=["l"], circles=["c"])
        sketch.select(constraints=["k"])
        sketch.clear_selection()
        assert not sketch.has_selection()


class TestActionCatalogue:

    def test_empty_selection(self, sketch):
        assert available_actions(sketch) == []

    def test_single_point(self, sketch):
        p = sketch.add_point(0, 0)
        sketch.select(points=[p.id])
        assert available_actions(sketch) == [SketchAction.FIXED]

    def test_corner_point_offers_fillet(self, sketch):
        lines = sketch.add_rectangle(0, 0, 10, 10)
        sketch.select(points=[lines[0].p1])
        assert available_actions(sketch) == [SketchAction.FILLET, SketchAction.FIXED]

    def test_two_points_on_line_offer_trim(self, sketch):
        line = sketch.add_line(0, 0, 10, 0)
        sketch.select(points=[line.p1, line.p2])
        actions = available_actions(sketch)
        assert actions[:4] == [SketchAction.COINCIDENT, SketchAction.HORIZONTAL,
                               SketchAction.VERTICAL, SketchAction.DISTANCE]
        assert SketchAction.TRIM in actions

    def test_two_loose_points_no_trim(self, sketch):
        a = sketch.add_point(0, 0)
        b = sketch.add_point(5, 5)
        sketch.select(points=[a.id, b.id])
        assert SketchAction.TRIM not in available_actions(sketch)

    def test_two_interior_points_offer_trim(self, sketch):
        line = sketch.add_line(0, 0, 10, 0)
        a = sketch.add_point(3, 0)
        b = sketch.add_point(7, 0)
        sketch.add_constraint(ConstraintType.COINCIDENT, points=[a.id], lines=[line.id])
        sketch.add_constraint(ConstraintType.COINCIDENT, points=[b.id], lines=[line.id])
        sketch.select(points=[a.id, b.id])

        assert SketchAction.TRIM in available_actions(sketch)

    def test_single_line(self, sketch):
        line = sketch.add_line(0, 0, 10, 0)
        sketch.select(lines=[line.id])
        assert available_actions(sketch) == [SketchAction.HORIZONTAL, SketchAction.VERTICAL,
                                             SketchAction.DISTANCE, SketchAction.ANGLE]

    def test_two_lines_with_corner(self, sketch):
        lines = sketch.add_rectangle(0, 0, 10, 10)
        sketch.select(lines=[lines[0].id, lines[1].id])
        assert available_actions(sketch) == [SketchAction.PARALLEL, SketchAction.EQUAL_LENGTH,
                                             SketchAction.ANGLE, SketchAction.FILLET,
                                             SketchAction.INTERSECT]

    def test_line_and_circle(self, sketch):
        line = sketch.add_line(0, 0, 10, 0)
        circle = sketch.add_circle(5, 5, 2)
        sketch.select(lines=[line.id], circles=[circle.id])
        assert available_actions(sketch) == [SketchAction.TANGENT, SketchAction.DISTANCE,
                                             SketchAction.COINCIDENT, SketchAction.INTERSECT]

    def test_single_circle(self, sketch):
        circle = sketch.add_circle(5, 5, 2)
        sketch.select(circles=[circle.id])
        assert available_actions(sketch) == [SketchAction.RADIUS, SketchAction.FIXED]

    def test_action_constraint_type(self):
        assert SketchAction.HORIZONTAL.constraint_type == ConstraintType.HORIZONTAL
        assert SketchAction.TRIM.constraint_type is None


class TestApplyConstraint:

    def test_horizontal_on_line_expands_endpoints(self, sketch):
        line = sketch.add_line(0, 0, 10, 3)
        sketch.select(lines=[line.id])

        c = sketch.apply_constraint(ConstraintType.HORIZONTAL)

        assert c.points == [line.p1, line.p2]
        assert c.lines == [line.id]
        assert not sketch.has_selection()

    def test_wrong_selection_raises_without_mutation(self, sketch):
        line = sketch.add_line(0, 0, 10, 3)
        sketch.select(lines=[line.id])

        with pytest.raises(SelectionError):
            sketch.apply_constraint(ConstraintType.RADIUS, 5)

        assert sketch.constraints == []
        assert sketch.selected_line_ids == [line.id]

    def test_value_required(self, sketch):
        a = sketch.add_point(0, 0)
        b = sketch.add_point(3, 4)
        sketch.select(points=[a.id, b.id])

        assert sketch.initial_value(ConstraintType.DISTANCE) == 5.0
        with pytest.raises(SelectionError):
            sketch.apply_constraint(ConstraintType.DISTANCE)

    def test_line_circle_distance_keeps_line_reference(self, sketch):
        line = sketch.add_line(0, 0, 10, 0)
        circle = sketch.add_circle(5, 10, 2)
        sketch.select(lines=[line.id], circles=[circle.id])

        c = sketch.apply_constraint(ConstraintType.DISTANCE, 3)

        assert c.points == []
        assert c.lines == [line.id] and c.circles == [circle.id]


class TestEditing:

    def test_delete_point_cascades(self, sketch):
        line = sketch.add_line(0, 0, 10, 3)
        other = sketch.add_line(20, 0, 30, 0)
        sketch.constraints.append(make_horizontal(line.p1, line.p2))
        sketch.select(points=[line.p1])

        assert sketch.delete_selected()

        assert [l.id for l in sketch.lines] == [other.id]
        assert sketch.constraints == []
        assert sketch.get_point(line.p2) is not None
        assert not sketch.has_selection()

    def test_delete_circle_removes_its_constraints(self, sketch):
        circle = sketch.add_circle(0, 0, 5)
        sketch.constraints.append(make_radius(circle.id, 5))
        sketch.select(circles=[circle.id])

        sketch.delete_selected()

        assert sketch.circles == []
        assert sketch.constraints == []

    def test_delete_nothing(self, sketch):
        assert not sketch.delete_selected()

    def test_toggle_construction(self, sketch):
        line = sketch.add_line(0, 0, 10, 0)
        arc = sketch.add_arc(0, 0, 5, 0, 0, 5)
        sketch.select(lines=[line.id], circles=[arc.id])

        sketch.toggle_construction()
        assert line.construction and arc.construction
        sketch.toggle_construction()
        assert not line.construction and not arc.construction

    def test_move_point_drags_constrained_partner(self, sketch):
        line = sketch.add_line(0, 0, 10, 0)
        sketch.constraints.append(make_horizontal(line.p1, line.p2))

        assert sketch.move_point(line.p2, 10, 5)

        p1, p2 = sketch.get_point(line.p1), sketch.get_point(line.p2)
        assert (p2.x, p2.y) == (10, 5)
        assert p1.y == pytest.approx(5.0)
        assert not p2.fixed

    def test_move_fixed_point_is_rejected(self, sketch):
        p = sketch.add_point(1, 1, fixed=True)
        assert not sketch.move_point(p.id, 5, 5)
        assert sketch.coords(p.id) == (1, 1)

    def test_radius_drag_rejected_when_constrained(self, sketch):
        circle = sketch.add_circle(0, 0, 5)
        assert sketch.set_circle_radius(circle.id, 8)
        assert sketch.get_circle(circle.id).radius == 8

        sketch.constraints.append(make_radius(circle.id, 8))
        assert not sketch.set_circle_radius(circle.id, 3)
        assert sketch.get_circle(circle.id).radius == 8


class TestSerialization:

    def test_round_trip_is_identical(self, sketch):
        sketch.add_rectangle(0, 0, 10, 5)
        sketch.add_circle(20, 20, 3, construction=True)
        sketch.add_arc(0, 0, 5, 0, 0, 5)
        sketch.add_point(7.125, -3.5, fixed=True)
        sketch.select(points=[sketch.points[0].id])
        sketch.tool = SketchTool.ARC

        data = sketch.to_dict()
        restored = Sketch.from_dict(data)

        assert restored.to_dict() == data
        assert restored.tool == SketchTool.ARC
        assert restored.points[-1].fixed


class TestSession:

    def test_each_action_is_one_history_entry(self, session):
        session.add_line(0, 0, 10, 0)
        session.add_circle(5, 5, 2)

        assert len(session.history.past) == 2
        assert session.undo()
        assert session.sketch.circles == []
        assert len(session.sketch.lines) == 1
        assert session.redo()
        assert len(session.sketch.circles) == 1

    def test_undo_on_empty_history(self, session):
        assert not session.undo()
        assert not session.redo()

    def test_rejected_constraint_leaves_history_untouched(self, session):
        line = session.add_line(0, 0, 10, 3)
        session.select(lines=[line.id])

        with pytest.raises(SelectionError):
            session.apply_constraint(ConstraintType.PARALLEL)

        assert len(session.history.past) == 1

    def test_apply_constraint_solves(self, session):
        line = session.add_line(0, 0, 10, 4)
        session.select(lines=[line.id])

        session.apply_constraint(ConstraintType.HORIZONTAL)

        sketch = session.sketch
        assert sketch.coords(line.p1)[1] == pytest.approx(sketch.coords(line.p2)[1])

    def test_perform_dispatches_catalogue_actions(self, session):
        a = session.add_point(0, 0)
        b = session.add_point(3, 4)
        session.select(points=[a.id, b.id])

        c = session.perform(SketchAction.DISTANCE, 10)

        pa, pb = session.sketch.get_point(a.id), session.sketch.get_point(b.id)
        assert c.type == ConstraintType.DISTANCE
        assert math.hypot(pb.x - pa.x, pb.y - pa.y) == pytest.approx(10.0, abs=0.5)

    def test_fillet_from_two_selected_lines(self, session):
        lines = session.add_rectangle(0, 0, 100, 100)
        session.select(lines=[lines[0].id, lines[1].id])

        result = session.perform(SketchAction.FILLET)

        assert result.success
        assert len(session.sketch.arcs) == 1
        assert not session.sketch.has_selection()

    def test_rejected_action_keeps_redo_chain(self, session):
        line = session.add_line(0, 0, 10, 3)
        session.add_point(20, 20)
        assert session.undo()
        session.select(lines=[line.id])

        with pytest.raises(SelectionError):
            session.apply_constraint(ConstraintType.PARALLEL)

        assert session.history.can_redo
        assert session.redo()
        assert len(session.sketch.points) == 3

    def test_rejected_operation_keeps_oldest_snapshot(self):
        session = SketchSession(history_limit=2)
        a = session.add_point(0, 0)
        b = session.add_point(50, 50)
        session.select(points=[a.id, b.id])
        assert len(session.history.past) == 2

        result = session.trim()

        assert result.status == ResultStatus.NO_TARGET
        assert len(session.history.past) == 2
        assert session.history.past[0].points == []

    def test_fillet_keeps_circle_snapped_to_corner(self, session):
        v = session.add_point(0, 0)
        a = session.add_point(60, 0)
        b = session.add_point(0, 60)
        session.sketch.add_line_between(v.id, a.id)
        session.sketch.add_line_between(v.id, b.id)
        circle = session.add_circle(0, 0, 5, center_snap_id=v.id)

        result = session.fillet(v.id)

        sketch = session.sketch
        assert result.success
        assert sketch.get_point(sketch.get_circle(circle.id).center) is not None

    def test_failed_operation_does_not_record_history(self, session):
        a = session.add_point(0, 0)
        b = session.add_point(50, 50)
        session.select(points=[a.id, b.id])
        n = len(session.history.past)

        result = session.trim()

        assert result.status == ResultStatus.NO_TARGET
        assert len(session.history.past) == n

    def test_error_rolls_back(self, session):
        v = session.add_point(0, 0)
        a = session.add_point(50, 0)
        b = session.add_point(-50, 0)
        session.sketch.add_line_between(v.id, a.id)
        session.sketch.add_line_between(v.id, b.id)
        before = session.sketch.to_dict()
        n = len(session.history.past)

        result = session.fillet(v.id)

        assert result.status == ResultStatus.ERROR
        assert session.sketch.to_dict() == before
        assert len(session.history.past) == n

    def test_intersect_selection(self, session):
        line = session.add_line(-10, 0, 10, 0)
        circle = session.add_circle(0, 0, 5)
        session.select(lines=[line.id], circles=[circle.id])

        result = session.intersect()

        assert len(result.created) == 2
        assert session.sketch.selected_point_ids == result.created
        for pid in result.created:
            x, y = session.sketch.coords(pid)
            assert abs(x) == pytest.approx(5.0, abs=1e-6)

    def test_auto_intersect_and_undo(self, session):
        session.add_line(0, 0, 10, 10)
        session.add_line(0, 10, 10, 0)

        result = session.auto_intersect()
        assert len(result.created) == 1
        assert session.undo()
        assert len(session.sketch.points) == 4

    def test_move_point_records_history(self, session):
        p = session.add_point(0, 0)
        assert session.move_point(p.id, 3, 3)
        assert len(session.history.past) == 2
        assert session.sketch.coords(p.id) == (3, 3)

        fixed = session.add_point(1, 1, fixed=True)
        n = len(session.history.past)
        assert not session.move_point(fixed.id, 2, 2)
        assert len(session.history.past) == n

    def test_circle_radius_rejected_keeps_history(self, session):
        circle = session.add_circle(0, 0, 5)
        session.select(circles=[circle.id])
        session.apply_constraint(ConstraintType.RADIUS, 5)
        n = len(session.history.past)

        assert not session.set_circle_radius(circle.id, 9)
        assert len(session.history.past) == n
