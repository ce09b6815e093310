from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class NumericTolerances:
    """
    Numeric contract of the engine.

    circumcircle: in-circle determinant threshold, multiplied by scale**4
    parallel:     |sin| of the angle between two normalized directions below
                  which lines are treated as parallel
    coincident:   distance below which two Voronoi vertices are merged and
                  an input point counts as a duplicate, multiplied by scale
    convexity:    relative area slack when checking a clip polygon is convex

    scale is the largest bounding-box extent of the input points.
    """
    circumcircle: float = 1e-12
    parallel: float = 1e-9
    coincident: float = 1e-9
    convexity: float = 1e-9

    def circumcircle_eps(self, scale: float) -> float:
        return self.circumcircle * scale ** 4

    def coincident_eps(self, scale: float) -> float:
        return self.coincident * scale


DEFAULT_TOLERANCES = NumericTolerances()
