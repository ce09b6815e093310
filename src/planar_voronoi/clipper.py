from __future__ import annotations

import math
import operator
from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

import numpy as np
from shapely.geometry import Polygon

from .config import DEFAULT_TOLERANCES, NumericTolerances
from .datastructures import VoronoiDiagram
from .errors import InternalConsistencyError, InvalidInputError
from .geometry import line_line_intersection, polygon_area, to_the_left

Point = Tuple[float, float]


@dataclass(frozen=True)
class _Vertex:
    point: Point


@dataclass(frozen=True)
class _Ray:
    """
    Far end of a ray: a point at infinity in `direction` (unit length).

    The ray's origin is the neighboring vertex in the chain: the next piece
    for an incoming ray, the previous piece for an outgoing one.
    """
    direction: Point
    incoming: bool


_Piece = Union[_Vertex, _Ray]


def _normalized(v) -> Point:
    n = math.hypot(v[0], v[1])
    return (v[0] / n, v[1] / n)


def _cell_chain(diagram: VoronoiDiagram, site: int) -> List[_Piece]:
    """
    Boundary of one cell as a CCW chain.
    Bounded: [v0, v1, ...]. Unbounded: [A, ..., B, Ray(out), Ray(in)].
    """
    edges = diagram.site_edges(site)
    V = diagram.vertices

    rays = [k for k, e in enumerate(edges) if e.is_ray]
    if not rays:
        return [_Vertex(tuple(V[e.vert1])) for e in edges]

    if len(rays) != 2:
        raise InternalConsistencyError(f"site {site} has {len(rays)} ray edges, expected 0 or 2")

    start = next(k for k in rays if edges[k].reversed)
    ordered = edges[start:] + edges[:start]
    ray_in, *segments, ray_out = ordered
    if not ray_out.is_ray or ray_out.reversed:
        raise InternalConsistencyError(f"site {site} rays are not an incoming/outgoing pair")

    chain: List[_Piece] = [_Vertex(tuple(V[ray_in.vert0]))]
    chain.extend(_Vertex(tuple(V[e.vert1])) for e in segments)
    chain.append(_Ray(_normalized(ray_out.direction), incoming=False))
    chain.append(_Ray(_normalized(ray_in.direction), incoming=True))
    return chain


class VoronoiClipper:
    """
    Clips single Voronoi cells against a convex polygon (generalized
    Sutherland-Hodgman that also trims rays).

    Each instance owns its scratch buffers: use one clipper per thread to
    clip sites of the same diagram in parallel.
    """

    def __init__(self, *, tolerances: NumericTolerances = DEFAULT_TOLERANCES):
        self.tolerances = tolerances
        self._pieces_in: List[_Piece] = []
        self._pieces_out: List[_Piece] = []

    def clip_site(
        self,
        diagram: VoronoiDiagram,
        polygon,
        site: int,
        clipped: Optional[list] = None,
    ) -> List[Point]:
        """
        Intersect the cell of `site` with a convex polygon.

        The result is written into `clipped` (cleared first) or a new list,
        with the winding of the input polygon. Empty if the cell misses the
        polygon. Neither diagram nor polygon is modified.
        """
        try:
            site = operator.index(site)
        except TypeError:
            raise InvalidInputError(f"site index must be an integer, got {site!r}") from None
        if not 0 <= site < diagram.cell_count():
            raise InvalidInputError(f"site index {site} out of range [0, {diagram.cell_count()})")

        poly, ccw = self._normalized_polygon(polygon)

        self._pieces_in.clear()
        self._pieces_in.extend(_cell_chain(diagram, site))

        n = len(poly)
        for i in range(n):
            if not self._pieces_in:
                break
            self._pieces_out.clear()
            self._clip_half_plane(poly[i], poly[(i + 1) % n])
            self._pieces_in, self._pieces_out = self._pieces_out, self._pieces_in

        if any(isinstance(p, _Ray) for p in self._pieces_in):
            raise InternalConsistencyError(f"ray of site {site} survived clipping against a bounded polygon")

        if clipped is None:
            clipped = []
        else:
            clipped.clear()

        for piece in self._pieces_in:
            if not clipped or clipped[-1] != piece.point:
                clipped.append(piece.point)
        if len(clipped) > 1 and clipped[0] == clipped[-1]:
            clipped.pop()
        if not ccw:
            clipped.reverse()
        return clipped

    def _normalized_polygon(self, polygon) -> Tuple[List[Point], bool]:
        P = np.asarray(polygon, dtype=np.float64)
        if P.ndim != 2 or P.shape[1] != 2 or len(P) < 3:
            raise InvalidInputError("clip polygon must be (N,2) with N >= 3")
        if not np.all(np.isfinite(P)):
            raise InvalidInputError("clip polygon must be finite")

        # repeated vertices (e.g. an explicitly closed ring) give zero-length edges
        P = P[np.any(P != np.roll(P, -1, axis=0), axis=1)]
        if len(P) < 3:
            raise InvalidInputError("clip polygon needs at least 3 distinct vertices")

        shape = Polygon(P)
        if shape.is_empty or not shape.is_valid or shape.area == 0.0:
            raise InvalidInputError("clip polygon must be a valid, non-empty polygon")
        if shape.convex_hull.area - shape.area > self.tolerances.convexity * shape.convex_hull.area:
            raise InvalidInputError("clip polygon must be convex")

        ccw = polygon_area(P) > 0
        pts = [tuple(p) for p in P.tolist()]
        if not ccw:
            pts.reverse()
        return pts, ccw

    # ------------------------------------------------------------- clipping

    def _inside(self, chain: List[_Piece], k: int, l0: Point, l1: Point, u: Point) -> bool:
        piece = chain[k]
        if isinstance(piece, _Vertex):
            return to_the_left(piece.point, l0, l1)

        d = piece.direction
        s = u[0] * d[1] - u[1] * d[0]
        if s > self.tolerances.parallel:
            return True
        if s < -self.tolerances.parallel:
            return False

        # parallel to the boundary: the far end stays on the origin's side
        origin = chain[(k + 1) % len(chain)] if piece.incoming else chain[k - 1]
        if not isinstance(origin, _Vertex):
            raise InternalConsistencyError("ray without a finite origin")
        return to_the_left(origin.point, l0, l1)

    def _crossing(self, a: _Piece, b: _Piece, a_in: bool, l0: Point, u: Point) -> _Piece:
        eps = self.tolerances.parallel

        if isinstance(a, _Ray) and isinstance(b, _Ray):
            # the arc at infinity leaves the half-plane at -u, enters at +u
            if a_in:
                return _Ray((-u[0], -u[1]), incoming=True)
            return _Ray(u, incoming=False)

        if isinstance(a, _Vertex) and isinstance(b, _Vertex):
            d = (b.point[0] - a.point[0], b.point[1] - a.point[1])
            x = line_line_intersection(l0, u, a.point, _normalized(d), eps)
            if math.isnan(x[0]):
                # nearly collinear with the boundary: keep the outside endpoint
                return b if a_in else a
            return _Vertex(x)

        if isinstance(a, _Vertex):
            origin, ray = a, b
        else:
            origin, ray = b, a

        x = line_line_intersection(l0, u, origin.point, ray.direction, eps)
        if math.isnan(x[0]):
            raise InternalConsistencyError("ray crossing a boundary it is parallel to")
        return _Vertex(x)

    def _clip_half_plane(self, l0: Point, l1: Point) -> None:
        """
        One Sutherland-Hodgman pass against the half-plane left of l0 -> l1.

        Pairs are (previous, current) pieces:
          vertex -> vertex   segment
          vertex -> ray      outgoing ray
          ray    -> vertex   incoming ray
          ray    -> ray      arc at infinity
        both inside: keep current, leaving: emit crossing,
        entering: emit crossing then current, both outside: drop.
        A crossing on a ray is a finite vertex, a crossing on the arc is a
        new ray running along the boundary.
        """
        chain = self._pieces_in
        out = self._pieces_out
        u = _normalized((l1[0] - l0[0], l1[1] - l0[1]))

        n = len(chain)
        inside = [self._inside(chain, k, l0, l1, u) for k in range(n)]

        for k in range(n):
            a, a_in = chain[k - 1], inside[k - 1]
            b, b_in = chain[k], inside[k]

            if a_in and b_in:
                out.append(b)
            elif a_in:
                out.append(self._crossing(a, b, a_in, l0, u))
            elif b_in:
                out.append(self._crossing(a, b, a_in, l0, u))
                out.append(b)


def clip_cell(
    diagram: VoronoiDiagram,
    polygon,
    site: int,
    clipped: Optional[list] = None,
    *,
    tolerances: NumericTolerances = DEFAULT_TOLERANCES,
) -> List[Point]:
    return VoronoiClipper(tolerances=tolerances).clip_site(diagram, polygon, site, clipped)


def clip_all_sites(
    diagram: VoronoiDiagram,
    polygon,
    *,
    tolerances: NumericTolerances = DEFAULT_TOLERANCES,
) -> List[np.ndarray]:
    """
    Clip every cell against polygon. One (K,2) array per site, K may be 0.
    """
    clipper = VoronoiClipper(tolerances=tolerances)
    buf: List[Point] = []
    cells = []
    for site in range(diagram.cell_count()):
        clipper.clip_site(diagram, polygon, site, buf)
        cells.append(np.asarray(buf, dtype=np.float64).reshape(-1, 2))
    return cells
