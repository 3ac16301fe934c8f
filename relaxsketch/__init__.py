"""
RelaxSketch - Parametrischer 2D-Sketcher
"""

from .geometry import (
    Point, Line, Circle, Arc, CurveKind, new_id,
    line_line_intersection, line_circle_intersection, circle_circle_intersection,
)

from .constraints import (
    Constraint, ConstraintType,
    make_fixed, make_coincident, make_horizontal, make_vertical,
    make_parallel, make_equal_length, make_distance, make_radius,
    make_angle, make_point_on_line, make_point_on_circle, make_midpoint,
    make_tangent, is_constraint_satisfied,
)

from .coincidence import UnionFind, build_canonical_map, coincident_cluster

from .solver import RelaxationSolver, SolverResult, solve

from .topology import Loop, LoopEdge, ProfileRegion, extract_loops, nest_loops

from .sketch import Sketch, SketchTool, SelectionMode, SelectionError

from .actions import SketchAction, available_actions

from .history import SketchHistory

from .session import SketchSession

from .tools import ToolController

from .profile import (
    ProfileError, ProfileSegment, ProfileLoop, ProfileFace,
    ExtrudeRequest, RevolveRequest, build_faces, extrude_request, revolve_request,
)
