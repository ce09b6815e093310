from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Tuple

import numpy as np

from .geometry import CIRCUMCIRCLE_EPS

NAN_DIRECTION = (float("nan"), float("nan"))


def _empty_points() -> np.ndarray:
    return np.zeros((0, 2), dtype=np.float64)


def _empty_triples() -> np.ndarray:
    return np.zeros((0, 3), dtype=np.int64)


@dataclass
class Triangulation:
    """
    Delaunay triangulation of a point set.

    vertices:  (N,2) input points, in input order
    triangles: (T,3) CCW point indices, one row per triangle
    neighbors: (T,3) neighbors[t, k] is the triangle across the edge opposite
               corner k, or -1 on the convex hull
    """
    vertices: np.ndarray = field(default_factory=_empty_points)
    triangles: np.ndarray = field(default_factory=_empty_triples)
    neighbors: np.ndarray = field(default_factory=_empty_triples)

    def clear(self) -> None:
        self.vertices = _empty_points()
        self.triangles = _empty_triples()
        self.neighbors = _empty_triples()

    def triangle_count(self) -> int:
        return len(self.triangles)

    def verify(self, eps: float = CIRCUMCIRCLE_EPS) -> bool:
        """
        Brute force check that no vertex lies strictly inside any circumcircle.
        O(N * T), meant for tests and debugging.
        """
        V = self.vertices
        for tri in self.triangles:
            c = V[tri]  # (3,2)
            d = c[None, :, :] - V[:, None, :]  # (N,3,2)
            sq = np.sum(d * d, axis=2)  # (N,3)
            ax, ay = d[:, 0, 0], d[:, 0, 1]
            bx, by = d[:, 1, 0], d[:, 1, 1]
            cx, cy = d[:, 2, 0], d[:, 2, 1]
            det = (
                sq[:, 0] * (bx * cy - cx * by)
                - sq[:, 1] * (ax * cy - cx * ay)
                + sq[:, 2] * (ax * by - bx * ay)
            )
            if np.any(det > eps):
                return False
        return True


class EdgeType(Enum):
    SEGMENT = "segment"
    RAY = "ray"


@dataclass(frozen=True)
class VoronoiEdge:
    """
    One boundary edge of one site's cell.

    SEGMENT: from vertices[vert0] to vertices[vert1], direction is NaN.
    RAY:     anchored at vertices[vert0], vert1 == -1. direction always points
             away from the anchor towards infinity (not normalized).
             reversed=False: the boundary leaves vert0 along direction.
             reversed=True:  the boundary arrives at vert0 from infinity.
    """
    type: EdgeType
    site: int
    vert0: int
    vert1: int = -1
    direction: Tuple[float, float] = NAN_DIRECTION
    reversed: bool = False

    @property
    def is_ray(self) -> bool:
        return self.type is EdgeType.RAY


@dataclass
class VoronoiDiagram:
    """
    Voronoi diagram dual to a Delaunay triangulation.

    vertices[t] is the circumcenter of triangulation.triangles[t].
    Edges are grouped by site and ordered counter-clockwise around it,
    first_edge_by_site[s] is the offset of site s's first edge.
    """
    triangulation: Triangulation = field(default_factory=Triangulation)
    vertices: np.ndarray = field(default_factory=_empty_points)
    edges: List[VoronoiEdge] = field(default_factory=list)
    first_edge_by_site: List[int] = field(default_factory=list)

    @property
    def sites(self) -> np.ndarray:
        return self.triangulation.vertices

    def clear(self) -> None:
        self.triangulation.clear()
        self.vertices = _empty_points()
        self.edges.clear()
        self.first_edge_by_site.clear()

    def cell_count(self) -> int:
        return len(self.first_edge_by_site)

    def edge_count(self) -> int:
        return len(self.edges)

    def edge_range(self, site: int) -> range:
        first = self.first_edge_by_site[site]
        if site == len(self.first_edge_by_site) - 1:
            return range(first, len(self.edges))
        return range(first, self.first_edge_by_site[site + 1])

    def site_edges(self, site: int) -> List[VoronoiEdge]:
        r = self.edge_range(site)
        return self.edges[r.start:r.stop]

    def is_bounded(self, site: int) -> bool:
        return not any(e.is_ray for e in self.site_edges(site))
