import numpy as np
import shapely
from shapely.geometry import Polygon

from .errors import InvalidInputError


def sample_points_in_polygon(
    polygon,
    *,
    target_area: float | None = None,
    n_points: int | None = None,
    rng: np.random.Generator,
    batch: int = 256,
) -> np.ndarray:
    """
    Uniform sites inside polygon by rejection sampling over its bounds.
    Deterministic given rng seed.

    Either n_points, or target_area (average cell area, n = area / target_area).
    """
    poly = Polygon(np.asarray(polygon, dtype=np.float64))
    if poly.is_empty or not poly.is_valid or poly.area == 0.0:
        raise InvalidInputError("polygon must be a valid, non-empty polygon")

    if n_points is None:
        if target_area is None:
            raise InvalidInputError("Either target_area or n_points required")
        if target_area <= 0:
            raise InvalidInputError("target_area must be > 0")
        n_points = max(1, int(poly.area / target_area))
    if n_points < 0:
        raise InvalidInputError("n_points must be >= 0")

    minx, miny, maxx, maxy = poly.bounds
    lo = np.array([minx, miny])
    hi = np.array([maxx, maxy])

    out = np.zeros((0, 2), dtype=np.float64)
    while len(out) < n_points:
        P = rng.uniform(lo, hi, size=(max(batch, 2 * (n_points - len(out))), 2))
        mask = shapely.contains_xy(poly, P[:, 0], P[:, 1])
        out = np.vstack([out, P[mask]])

    return out[:n_points]
