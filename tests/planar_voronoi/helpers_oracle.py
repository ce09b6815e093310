import numpy as np
from scipy.spatial import ConvexHull
from shapely.geometry import Point, Polygon

from src.planar_voronoi.geometry import inside_circumcircle


def square(size=10.0, origin=(0.0, 0.0)):
    x, y = origin
    return np.array([
        [x, y],
        [x + size, y],
        [x + size, y + size],
        [x, y + size],
    ], dtype=np.float64)


def voronoi_cell_halfplanes_in_polygon(sites: np.ndarray, i: int, polygon: np.ndarray) -> Polygon:
    """
    Brute force Voronoi cell of site i inside a convex polygon:
    intersect the polygon with every bisector half-plane {x : |x-si| <= |x-sj|}.
    """
    cell = Polygon(polygon)
    lo = np.minimum(sites.min(axis=0), polygon.min(axis=0))
    hi = np.maximum(sites.max(axis=0), polygon.max(axis=0))
    big = 10.0 * float(np.max(hi - lo)) + 1.0

    si = sites[i]
    for j, sj in enumerate(sites):
        if j == i:
            continue
        n = sj - si
        norm = np.linalg.norm(n)
        if norm == 0.0:
            continue
        n = n / norm
        t = np.array([-n[1], n[0]])
        m = 0.5 * (si + sj)
        # quad covering the half-plane on si's side of the bisector
        quad = Polygon([m + t * big, m - t * big, m - t * big - n * big, m + t * big - n * big])
        cell = cell.intersection(quad)
        if cell.is_empty:
            break
    return cell


def violates_empty_circumcircle(points: np.ndarray, triangles: np.ndarray, eps: float = 1e-9) -> bool:
    """
    True if some input point lies strictly inside some triangle's circumcircle.
    """
    pts = [tuple(p) for p in points.tolist()]
    for a, b, c in triangles.tolist():
        for k, p in enumerate(pts):
            if k in (a, b, c):
                continue
            if inside_circumcircle(p, pts[a], pts[b], pts[c], eps):
                return True
    return False


def grid(k, spacing=1.0):
    """k x k lattice, row by row from the bottom."""
    xs = np.arange(k, dtype=np.float64) * spacing
    return np.array([[x, y] for y in xs for x in xs], dtype=np.float64)


def boundary_point_count(points: np.ndarray, tol: float = 1e-9) -> int:
    """
    Points on the convex hull boundary, including those in the middle of a
    hull edge (scipy's hull only reports the corners).
    """
    ring = Polygon(points[ConvexHull(points).vertices]).exterior
    return sum(1 for p in points if ring.distance(Point(p)) <= tol)
