import math

import numpy as np

# Historical absolute constants, kept as defaults for direct callers.
# The engines pass scale-derived values from config.NumericTolerances.
CIRCUMCIRCLE_EPS = 1e-6
PARALLEL_EPS = 1e-3
COINCIDENT_EPS = 1e-6

NAN_POINT = (math.nan, math.nan)


def orientation(p, l0, l1) -> float:
    """
    Twice the signed area of (l0, l1, p): positive if p is left of the
    directed line l0 -> l1, zero if exactly on it.
    """
    return (l1[0] - l0[0]) * (p[1] - l0[1]) - (l1[1] - l0[1]) * (p[0] - l0[0])


def to_the_left(p, l0, l1) -> bool:
    """
    Is p to the left of (or exactly on) the directed line l0 -> l1?
    """
    return orientation(p, l0, l1) >= 0


def point_in_triangle(p, c0, c1, c2) -> bool:
    # c0, c1, c2 in CCW order, boundary inclusive
    return to_the_left(p, c0, c1) and to_the_left(p, c1, c2) and to_the_left(p, c2, c0)


def inside_circumcircle(p, c0, c1, c2, eps: float = CIRCUMCIRCLE_EPS) -> bool:
    """
    Is p strictly inside the circumcircle of the CCW triangle c0, c1, c2?

    Lifted 3x3 determinant; values within eps of zero count as "on the circle"
    and return False so cocircular points never trigger a flip.
    """
    ax = c0[0] - p[0]
    ay = c0[1] - p[1]
    bx = c1[0] - p[0]
    by = c1[1] - p[1]
    cx = c2[0] - p[0]
    cy = c2[1] - p[1]

    det = (
        (ax * ax + ay * ay) * (bx * cy - cx * by)
        - (bx * bx + by * by) * (ax * cy - cx * ay)
        + (cx * cx + cy * cy) * (ax * by - bx * ay)
    )
    return det > eps


def rotate_right_angle(v):
    """Rotate v by +90 degrees (to the left)."""
    return (-v[1], v[0])


def line_line_intersection_params(p0, v0, p1, v1, eps: float = PARALLEL_EPS):
    """
    Lines X = p0 + m0 * v0 and X = p1 + m1 * v1.

    Returns (m0, m1), or (nan, nan) when |det| < eps (near-parallel).
    The sign of m0/m1 tells whether the intersection is ahead of p0/p1,
    which is what ray and segment tests need.
    """
    det = v0[0] * v1[1] - v0[1] * v1[0]
    if abs(det) < eps:
        return math.nan, math.nan

    m0 = ((p0[1] - p1[1]) * v1[0] - (p0[0] - p1[0]) * v1[1]) / det
    if abs(v1[0]) >= abs(v1[1]):
        m1 = (p0[0] + m0 * v0[0] - p1[0]) / v1[0]
    else:
        m1 = (p0[1] + m0 * v0[1] - p1[1]) / v1[1]
    return m0, m1


def line_line_intersection(p0, v0, p1, v1, eps: float = PARALLEL_EPS):
    m0, _ = line_line_intersection_params(p0, v0, p1, v1, eps)
    if math.isnan(m0):
        return NAN_POINT
    return (p0[0] + m0 * v0[0], p0[1] + m0 * v0[1])


def circumcircle_center(c0, c1, c2):
    """
    Center of the circle through c0, c1, c2. NaN point for collinear input.
    """
    bx = c1[0] - c0[0]
    by = c1[1] - c0[1]
    cx = c2[0] - c0[0]
    cy = c2[1] - c0[1]

    d = 2.0 * (bx * cy - by * cx)
    if d == 0.0:
        return NAN_POINT

    b2 = bx * bx + by * by
    c2_ = cx * cx + cy * cy
    ux = (cy * b2 - by * c2_) / d
    uy = (bx * c2_ - cx * b2) / d
    return (c0[0] + ux, c0[1] + uy)


def triangle_centroid(c0, c1, c2):
    return ((c0[0] + c1[0] + c2[0]) / 3.0, (c0[1] + c1[1] + c2[1]) / 3.0)


def polygon_area(polygon) -> float:
    """
    Signed area (shoelace). CCW polygons are positive, CW negative.
    """
    P = np.asarray(polygon, dtype=np.float64)
    if len(P) < 3:
        return 0.0
    x = P[:, 0]
    y = P[:, 1]
    return 0.5 * float(np.dot(x, np.roll(y, -1)) - np.dot(np.roll(x, -1), y))


def are_coincident(a, b, eps: float = COINCIDENT_EPS) -> bool:
    return math.hypot(a[0] - b[0], a[1] - b[1]) < eps


def is_real(v) -> bool:
    return bool(np.all(np.isfinite(np.asarray(v, dtype=np.float64))))
