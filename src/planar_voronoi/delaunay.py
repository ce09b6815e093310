from __future__ import annotations

import math
from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, List, Optional, Union

import numpy as np
import structlog

from .config import DEFAULT_TOLERANCES, NumericTolerances
from .datastructures import Triangulation
from .errors import (
    InternalConsistencyError,
    InvalidInputError,
    OperationCancelled,
    UnsupportedInputError,
)
from .geometry import inside_circumcircle, orientation, to_the_left

logger = structlog.get_logger()

NO_NODE = -1


class Symbolic(IntEnum):
    """
    Points at "infinity" closing the triangulation instead of a numerically
    large super-triangle. Real points are plain non-negative indices.
    """
    BOTTOM = -1
    TOP = -2


def is_symbolic(pi: int) -> bool:
    return pi < 0


@dataclass(slots=True)
class _TriangleNode:
    """
    One node of the history forest. All fields are indices.

    p0, p1, p2: points, CCW
    c0, c1, c2: children in the node list (NO_NODE if absent)
    a0, a1, a2: a_k is the node across the edge opposite p_k (NO_NODE on the
                outer boundary). Links are never updated when a neighbor is
                split or flipped, so they may point at an ancestor of the
                current neighbor leaf.
    """
    p0: int
    p1: int
    p2: int
    c0: int = NO_NODE
    c1: int = NO_NODE
    c2: int = NO_NODE
    a0: int = NO_NODE
    a1: int = NO_NODE
    a2: int = NO_NODE

    @property
    def is_leaf(self) -> bool:
        return self.c0 < 0 and self.c1 < 0 and self.c2 < 0

    @property
    def is_inner(self) -> bool:
        return self.p0 >= 0 and self.p1 >= 0 and self.p2 >= 0

    def has_edge(self, e0: int, e1: int) -> bool:
        if e0 == self.p0:
            return e1 == self.p1 or e1 == self.p2
        if e0 == self.p1:
            return e1 == self.p0 or e1 == self.p2
        if e0 == self.p2:
            return e1 == self.p0 or e1 == self.p1
        return False

    def other_point(self, e0: int, e1: int) -> int:
        for a, b, c in ((self.p0, self.p1, self.p2), (self.p1, self.p2, self.p0), (self.p2, self.p0, self.p1)):
            if (e0 == a and e1 == b) or (e0 == b and e1 == a):
                return c
        raise InternalConsistencyError(f"edge ({e0}, {e1}) is not on {self}")

    def opposite(self, pi: int) -> int:
        if pi == self.p0:
            return self.a0
        if pi == self.p1:
            return self.a1
        if pi == self.p2:
            return self.a2
        raise InternalConsistencyError(f"point {pi} is not on {self}")


def as_point_array(points, *, minimum: int = 3, error=InvalidInputError) -> np.ndarray:
    """
    Validate and convert user points to a (N,2) float64 array.
    """
    if points is None:
        raise InvalidInputError("points must not be None")

    P = np.asarray(points, dtype=np.float64)
    if P.ndim != 2 or P.shape[1] != 2:
        raise InvalidInputError("points must be (N,2)")
    if not np.all(np.isfinite(P)):
        raise InvalidInputError("points must be finite")
    if len(P) < minimum:
        raise error(f"at least {minimum} points are required, got {len(P)}")
    return P


def point_scale(P: np.ndarray) -> float:
    """Largest bounding-box extent, the length unit for relative tolerances."""
    if len(P) == 0:
        return 0.0
    return float(np.max(P.max(axis=0) - P.min(axis=0)))


def all_collinear(P: np.ndarray, tol: float) -> bool:
    """
    True if every point lies on one line (or all points coincide).
    tol is relative: |cross| <= tol * |d| * scale.
    """
    scale = point_scale(P)
    if scale == 0.0:
        return True

    rel = P - P[0]
    far = int(np.argmax(np.einsum("ij,ij->i", rel, rel)))
    d = rel[far]
    cross = d[0] * rel[:, 1] - d[1] * rel[:, 0]
    return bool(np.all(np.abs(cross) <= tol * float(np.linalg.norm(d)) * scale))


def coincident_points(P: np.ndarray, eps: float) -> set:
    """
    Indices of points closer than eps to an earlier point (exact copies when
    eps <= 0). Points are hashed into an eps grid, each one is compared with
    the kept points of the 3x3 neighboring cells.
    """
    if eps <= 0.0:
        _, first = np.unique(P, axis=0, return_index=True)
        return set(range(len(P))).difference(first.tolist())

    keys = np.floor((P - P.min(axis=0)) / eps).astype(np.int64).tolist()
    pts = P.tolist()
    cells: dict = {}
    skip = set()
    for i, (kx, ky) in enumerate(keys):
        x, y = pts[i]
        near = any(
            math.hypot(x - pts[j][0], y - pts[j][1]) < eps
            for dx in (-1, 0, 1)
            for dy in (-1, 0, 1)
            for j in cells.get((kx + dx, ky + dy), ())
        )
        if near:
            skip.add(i)
        else:
            cells.setdefault((kx, ky), []).append(i)
    return skip


class DelaunayCalculator:
    """
    Incremental Bowyer-Watson / flip triangulation over an append-only
    triangle history (de Berg et al., "Computational Geometry", ch. 9).

    Instances reuse internal buffers between calls and are not thread-safe.
    """

    def __init__(self, *, tolerances: NumericTolerances = DEFAULT_TOLERANCES):
        self.tolerances = tolerances
        self._nodes: List[_TriangleNode] = []
        self._pts: list = []
        self._highest = -1
        self._circle_eps = 0.0

    def calculate_triangulation(
        self,
        points,
        result: Optional[Triangulation] = None,
        *,
        shuffle: bool = False,
        seed: Union[int, np.random.Generator, None] = None,
        should_cancel: Optional[Callable[[], bool]] = None,
    ) -> Triangulation:
        """
        Triangulate points and return the result.

        If result is given it is cleared and refilled in place. It is only
        touched once the triangulation has succeeded.

        shuffle=True inserts points in a random order (expected O(n log n)
        instead of O(n^2) worst case for sorted input); seed makes it
        reproducible. should_cancel is polled between point insertions.
        """
        P = as_point_array(points)
        if all_collinear(P, self.tolerances.parallel):
            raise UnsupportedInputError("triangulation of collinear points is not supported")

        # duplicates are not inserted, their sites end up without triangles
        eps = self.tolerances.coincident_eps(point_scale(P))
        duplicates = coincident_points(P, eps)
        if duplicates:
            logger.warning("duplicate points in triangulation input", duplicates=len(duplicates), eps=eps)

        try:
            self._run(P, duplicates, shuffle, seed, should_cancel)
            triangles, neighbors = self._extract()
        finally:
            self._pts = []

        if len(triangles) == 0:
            raise UnsupportedInputError("degenerate input produced no triangles")

        logger.debug(
            "delaunay triangulation complete",
            points=len(P),
            triangles=len(triangles),
            nodes=len(self._nodes),
        )

        if result is None:
            result = Triangulation()
        result.clear()
        result.vertices = P.copy()
        result.triangles = triangles
        result.neighbors = neighbors
        return result

    # ------------------------------------------------------------------ run

    def _run(self, P: np.ndarray, skip: set, shuffle: bool, seed, should_cancel) -> None:
        self._nodes = []
        self._pts = [tuple(p) for p in P.tolist()]
        self._circle_eps = self.tolerances.circumcircle_eps(point_scale(P))

        n = len(self._pts)
        highest = 0
        for i in range(n):
            if i not in skip and self._below(highest, i):
                highest = i
        self._highest = highest

        if shuffle:
            rng = seed if isinstance(seed, np.random.Generator) else np.random.default_rng(seed)
            order = rng.permutation(n).tolist()
        else:
            order = range(n)

        self._nodes.append(_TriangleNode(Symbolic.TOP, Symbolic.BOTTOM, highest))

        for inserted, pi in enumerate(order):
            if should_cancel is not None and should_cancel():
                logger.info("triangulation cancelled", inserted=inserted, points=n)
                raise OperationCancelled(f"triangulation cancelled after {inserted} of {n} points")
            if pi == highest or pi in skip:
                continue
            self._insert(pi)

    def _insert(self, pi: int) -> None:
        nodes = self._nodes
        ti = self._find_leaf(pi)
        t = nodes[ti]

        p0, p1, p2 = t.p0, t.p1, t.p2

        nti0 = len(nodes)
        nti1 = nti0 + 1
        nti2 = nti0 + 2

        # fan from pi to the three corners, all CCW
        nt0 = _TriangleNode(pi, p0, p1, a0=t.a2, a1=nti1, a2=nti2)
        nt1 = _TriangleNode(pi, p1, p2, a0=t.a0, a1=nti2, a2=nti0)
        nt2 = _TriangleNode(pi, p2, p0, a0=t.a1, a1=nti0, a2=nti1)

        t.c0, t.c1, t.c2 = nti0, nti1, nti2
        nodes.extend((nt0, nt1, nt2))

        if nt0.a0 != NO_NODE:
            self._legalize(nti0, nt0.a0, pi, p0, p1)
        if nt1.a0 != NO_NODE:
            self._legalize(nti1, nt1.a0, pi, p1, p2)
        if nt2.a0 != NO_NODE:
            self._legalize(nti2, nt2.a0, pi, p2, p0)

    def _legalize(self, ti0: int, ti1: int, pi: int, li0: int, li1: int) -> None:
        """
        Flip (li0, li1) if illegal, then check the two edges the flip exposed.

        pi is the inserted point of leaf ti0, ti1 is the (possibly stale)
        node across the edge. LIFO worklist, same order as the recursive form.
        """
        nodes = self._nodes
        stack = [(ti0, ti1, li0, li1)]

        while stack:
            ti0, ti1, li0, li1 = stack.pop()
            ti1 = self._leaf_with_edge(ti1, li0, li1)

            t0 = nodes[ti0]
            t1 = nodes[ti1]
            if not t0.is_leaf:
                raise InternalConsistencyError(f"triangle {ti0} is no longer a leaf")

            qi = t1.other_point(li0, li1)
            if self._legal_edge(pi, qi, li0, li1):
                continue

            ti2 = len(nodes)
            ti3 = ti2 + 1

            t2 = _TriangleNode(pi, li0, qi, a0=t1.opposite(li1), a1=ti3, a2=t0.opposite(li1))
            t3 = _TriangleNode(pi, qi, li1, a0=t1.opposite(li0), a1=t0.opposite(li0), a2=ti2)
            nodes.extend((t2, t3))

            t0.c0, t0.c1 = ti2, ti3
            t1.c0, t1.c1 = ti2, ti3

            if t3.a0 != NO_NODE:
                stack.append((ti3, t3.a0, qi, li1))
            if t2.a0 != NO_NODE:
                stack.append((ti2, t2.a0, li0, qi))

    # ------------------------------------------------------------ predicates

    def _below(self, a: int, b: int) -> bool:
        """
        Total order over real and symbolic points: is a ranked below b?
        TOP is above everything, BOTTOM below everything, real points are
        ordered by y then x.
        """
        if a == Symbolic.TOP:
            return False
        if a == Symbolic.BOTTOM:
            return True
        if b == Symbolic.TOP:
            return True
        if b == Symbolic.BOTTOM:
            return False

        pa = self._pts[a]
        pb = self._pts[b]
        if pa[1] != pb[1]:
            return pa[1] < pb[1]
        return pa[0] < pb[0]

    def _to_the_left(self, pi: int, li0: int, li1: int) -> bool:
        # lines through a symbolic point reduce to the rank order
        if li0 == Symbolic.TOP:
            return self._below(li1, pi)
        if li0 == Symbolic.BOTTOM:
            return self._below(pi, li1)
        if li1 == Symbolic.TOP:
            return self._below(pi, li0)
        if li1 == Symbolic.BOTTOM:
            return self._below(li0, pi)

        P = self._pts
        return to_the_left(P[pi], P[li0], P[li1])

    def _in_triangle(self, pi: int, ti: int) -> bool:
        t = self._nodes[ti]
        return (
            self._to_the_left(pi, t.p0, t.p1)
            and self._to_the_left(pi, t.p1, t.p2)
            and self._to_the_left(pi, t.p2, t.p0)
        )

    def _legal_edge(self, k: int, l: int, i: int, j: int) -> bool:
        """
        Is edge (i, j) legal? k is the inserted (real) point, l the point
        across the edge.

        With one symbolic endpoint the circumcircle degenerates to the line
        through k and the real endpoint. A real l exactly on that line lies
        beyond the real endpoint, outside the circle, so the edge is legal.
        """
        P = self._pts
        if not is_symbolic(i) and not is_symbolic(j) and orientation(P[k], P[i], P[j]) == 0.0:
            # k was inserted on edge (i, j), flip the zero-area triangle away
            return False

        if is_symbolic(l):
            return True

        if is_symbolic(i):
            return to_the_left(P[l], P[k], P[j])
        if is_symbolic(j):
            return to_the_left(P[l], P[i], P[k])

        return not inside_circumcircle(P[l], P[k], P[i], P[j], self._circle_eps)

    # ------------------------------------------------------------- location

    def _find_leaf(self, pi: int) -> int:
        nodes = self._nodes
        curr = 0
        while True:
            t = nodes[curr]
            if t.is_leaf:
                return curr
            if t.c0 != NO_NODE and self._in_triangle(pi, t.c0):
                curr = t.c0
            elif t.c1 != NO_NODE and self._in_triangle(pi, t.c1):
                curr = t.c1
            elif t.c2 != NO_NODE:
                curr = t.c2
            else:
                raise InternalConsistencyError(f"point {pi} not found in children of triangle {curr}")

    def _leaf_with_edge(self, ti: int, e0: int, e1: int) -> int:
        """
        Descend from ti (possibly a stale neighbor link) to the current leaf
        still containing edge (e0, e1).
        """
        nodes = self._nodes
        if not nodes[ti].has_edge(e0, e1):
            raise InternalConsistencyError(f"triangle {ti} does not contain edge ({e0}, {e1})")

        while not nodes[ti].is_leaf:
            t = nodes[ti]
            for c in (t.c0, t.c1, t.c2):
                if c != NO_NODE and nodes[c].has_edge(e0, e1):
                    ti = c
                    break
            else:
                raise InternalConsistencyError(f"no leaf below triangle {ti} contains edge ({e0}, {e1})")
        return ti

    # --------------------------------------------------------------- result

    def _extract(self):
        nodes = self._nodes
        inner = [i for i, t in enumerate(nodes) if t.is_leaf and t.is_inner]
        index_of = {ti: k for k, ti in enumerate(inner)}

        triangles = np.empty((len(inner), 3), dtype=np.int64)
        neighbors = np.full((len(inner), 3), -1, dtype=np.int64)

        for k, ti in enumerate(inner):
            t = nodes[ti]
            triangles[k] = (t.p0, t.p1, t.p2)
            sides = ((t.a0, t.p1, t.p2), (t.a1, t.p2, t.p0), (t.a2, t.p0, t.p1))
            for j, (adj, e0, e1) in enumerate(sides):
                if adj != NO_NODE:
                    neighbors[k, j] = index_of.get(self._leaf_with_edge(adj, e0, e1), -1)

        return triangles, neighbors


def triangulate(
    points,
    result: Optional[Triangulation] = None,
    *,
    shuffle: bool = False,
    seed: Union[int, np.random.Generator, None] = None,
    should_cancel: Optional[Callable[[], bool]] = None,
    tolerances: NumericTolerances = DEFAULT_TOLERANCES,
) -> Triangulation:
    calc = DelaunayCalculator(tolerances=tolerances)
    return calc.calculate_triangulation(
        points, result, shuffle=shuffle, seed=seed, should_cancel=should_cancel
    )
