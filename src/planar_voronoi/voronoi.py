from __future__ import annotations

from functools import cmp_to_key
from typing import Callable, List, Optional, Tuple, Union

import numpy as np
import structlog

from .config import DEFAULT_TOLERANCES, NumericTolerances
from .datastructures import EdgeType, VoronoiDiagram, VoronoiEdge
from .delaunay import DelaunayCalculator, all_collinear, as_point_array, point_scale
from .errors import UnsupportedInputError
from .geometry import are_coincident, circumcircle_center, rotate_right_angle, to_the_left

logger = structlog.get_logger()


def _shares_edge(a, b) -> bool:
    return len(set(a) & set(b)) >= 2


def _angle_comparator(sites: np.ndarray, centroids: np.ndarray):
    """
    Order (site, triangle) pairs by site, then counter-clockwise by the angle
    of the triangle centroid around the site. Half-plane bucket + cross
    product, no atan2 so there is no branch cut inside a bucket.
    """

    def compare(pt0: Tuple[int, int], pt1: Tuple[int, int]) -> int:
        s0, t0 = pt0
        s1, t1 = pt1
        if s0 != s1:
            return -1 if s0 < s1 else 1
        if t0 == t1:
            return 0

        rx, ry = sites[s0]
        x0 = centroids[t0][0] - rx
        y0 = centroids[t0][1] - ry
        x1 = centroids[t1][0] - rx
        y1 = centroids[t1][1] - ry

        # False for angles in [0, pi), True for [pi, 2pi)
        q0 = y0 < 0 or (y0 == 0 and x0 < 0)
        q1 = y1 < 0 or (y1 == 0 and x1 < 0)

        if q0 == q1:
            cp = x0 * y1 - y0 * x1
            if cp > 0:
                return -1
            if cp < 0:
                return 1
            return 0
        return -1 if q1 else 1

    return compare


class VoronoiCalculator:
    """
    Voronoi diagram as the dual of a Delaunay triangulation.

    Not thread-safe, the calculator keeps its Delaunay engine and buffers
    between calls.
    """

    def __init__(self, *, tolerances: NumericTolerances = DEFAULT_TOLERANCES):
        self.tolerances = tolerances
        self._delaunay = DelaunayCalculator(tolerances=tolerances)

    def calculate_diagram(
        self,
        points,
        result: Optional[VoronoiDiagram] = None,
        *,
        shuffle: bool = False,
        seed: Union[int, np.random.Generator, None] = None,
        should_cancel: Optional[Callable[[], bool]] = None,
    ) -> VoronoiDiagram:
        """
        Compute the Voronoi diagram of points (N >= 3, not all collinear).

        If result is given, it is cleared and refilled, including its
        triangulation object.
        """
        P = as_point_array(points, error=UnsupportedInputError)
        if all_collinear(P, self.tolerances.parallel):
            raise UnsupportedInputError("voronoi diagram of collinear points is not supported")

        if result is None:
            result = VoronoiDiagram()

        trig = self._delaunay.calculate_triangulation(
            P, result.triangulation, shuffle=shuffle, seed=seed, should_cancel=should_cancel
        )
        result.vertices = np.zeros((0, 2), dtype=np.float64)
        result.edges.clear()
        result.first_edge_by_site.clear()

        verts = [tuple(p) for p in trig.vertices.tolist()]
        tris = [tuple(t) for t in trig.triangles.tolist()]

        centers = [circumcircle_center(verts[a], verts[b], verts[c]) for a, b, c in tris]
        centroids = trig.vertices[trig.triangles].mean(axis=1).tolist()
        result.vertices = np.asarray(centers, dtype=np.float64).reshape(-1, 2)

        pts = [(s, ti) for ti, tri in enumerate(tris) for s in tri]
        pts.sort(key=cmp_to_key(_angle_comparator(verts, centroids)))

        coincident_eps = self.tolerances.coincident_eps(point_scale(P))
        edges = result.edges
        first_edge = result.first_edge_by_site

        i = 0
        for site in range(len(verts)):
            first_edge.append(len(edges))

            start = i
            while i < len(pts) and pts[i][0] == site:
                i += 1
            fan = [ti for _, ti in pts[start:i]]
            if fan:
                self._emit_fan(site, fan, verts, tris, centers, centroids, coincident_eps, edges)

        logger.debug(
            "voronoi diagram complete",
            sites=len(verts),
            vertices=len(centers),
            edges=len(edges),
        )
        return result

    @staticmethod
    def _emit_fan(site, fan, verts, tris, centers, centroids, coincident_eps, edges: List[VoronoiEdge]) -> None:
        """
        Walk the triangles around one site (CCW) and emit its boundary edges.
        A gap between consecutive triangles means the site is on the hull,
        the gap becomes an outgoing ray followed by an incoming ray.
        """
        count = len(fan)
        p = verts[site]

        for k in range(count):
            ti_curr = fan[k]
            ti_next = fan[(k + 1) % count]

            if count == 1:
                is_gap = True
            elif count == 2:
                is_gap = to_the_left(centroids[ti_curr], p, centroids[ti_next])
            else:
                is_gap = not _shares_edge(tris[ti_curr], tris[ti_next])

            if not is_gap:
                if not are_coincident(centers[ti_curr], centers[ti_next], coincident_eps):
                    edges.append(VoronoiEdge(EdgeType.SEGMENT, site, ti_curr, ti_next))
                continue

            # hull edge of curr leaving the site CCW, of next arriving CCW
            a, b, c = tris[ti_curr]
            if site == a:
                v0 = (verts[c][0] - verts[a][0], verts[c][1] - verts[a][1])
            elif site == b:
                v0 = (verts[a][0] - verts[b][0], verts[a][1] - verts[b][1])
            else:
                v0 = (verts[b][0] - verts[c][0], verts[b][1] - verts[c][1])

            a, b, c = tris[ti_next]
            if site == a:
                v1 = (verts[a][0] - verts[b][0], verts[a][1] - verts[b][1])
            elif site == b:
                v1 = (verts[b][0] - verts[c][0], verts[b][1] - verts[c][1])
            else:
                v1 = (verts[c][0] - verts[a][0], verts[c][1] - verts[a][1])

            edges.append(VoronoiEdge(EdgeType.RAY, site, ti_curr, direction=rotate_right_angle(v0)))
            edges.append(VoronoiEdge(EdgeType.RAY, site, ti_next, direction=rotate_right_angle(v1), reversed=True))


def build_voronoi(
    points,
    result: Optional[VoronoiDiagram] = None,
    *,
    shuffle: bool = False,
    seed: Union[int, np.random.Generator, None] = None,
    should_cancel: Optional[Callable[[], bool]] = None,
    tolerances: NumericTolerances = DEFAULT_TOLERANCES,
) -> VoronoiDiagram:
    calc = VoronoiCalculator(tolerances=tolerances)
    return calc.calculate_diagram(
        points, result, shuffle=shuffle, seed=seed, should_cancel=should_cancel
    )
