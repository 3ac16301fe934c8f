"""
RelaxSketch - Sketch Operations Module
======================================

Abgeleitete Konstruktions-Operationen (Fillet, Trim/Split, Schnittpunkte).
Jede Operation ist eine eigenständige Klasse mit klarer Schnittstelle.

Verwendung:
    from relaxsketch.operations import TrimOperation

    op = TrimOperation(sketch)
    result = op.execute(point_id_1, point_id_2)

    if result.success:
        sketch.solve()
    else:
        print(result.message)
"""

from .base import OperationResult, ResultStatus, SketchOperation
from .fillet import FilletOperation, FilletGeometry, compute_fillet
from .trim import TrimOperation
from .intersection import IntersectionOperation, AutoIntersectionOperation

__all__ = [
    # Core
    'OperationResult',
    'ResultStatus',
    'SketchOperation',
    # Fillet
    'FilletOperation',
    'FilletGeometry',
    'compute_fillet',
    # Trim
    'TrimOperation',
    # Intersection
    'IntersectionOperation',
    'AutoIntersectionOperation',
]
