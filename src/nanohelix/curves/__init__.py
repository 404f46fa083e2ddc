"""Curves that helices can follow."""

from .arclength import ArcLengthMap
from .bezier import BezierPath, BezierPlane, BezierVertex, CubicBezier, PiecewiseBezier
from .cache import CurveCache
from .frames import CurveFrame, HelixCurve, RotationMinimizingFrames

__all__ = [
    "ArcLengthMap",
    "BezierPath",
    "BezierPlane",
    "BezierVertex",
    "CubicBezier",
    "CurveCache",
    "CurveFrame",
    "HelixCurve",
    "PiecewiseBezier",
    "RotationMinimizingFrames",
]
