from __future__ import annotations

from dataclasses import dataclass
from typing import List

import numpy as np
import structlog

from .clipper import VoronoiClipper
from .errors import InvalidInputError
from .geometry import polygon_area
from .voronoi import VoronoiCalculator

logger = structlog.get_logger()


@dataclass
class Fragment:
    """
    One piece of a fractured polygon: the clipped cell of `site`.
    area_fraction is area / parent area (e.g. to split a rigid body's mass).
    """
    polygon: np.ndarray  # (K,2), same winding as the parent polygon
    site: int
    area: float
    area_fraction: float


def scatter_sites_around(
    impact,
    n_sites: int,
    *,
    spread: float,
    rng: np.random.Generator,
) -> np.ndarray:
    """
    Sites at |N(0, spread)| distance from impact in uniformly random
    directions: dense near the impact, sparse further out.
    """
    dist = np.abs(rng.normal(0.0, spread, size=n_sites))
    angle = 2.0 * np.pi * rng.random(n_sites)
    center = np.asarray(impact, dtype=np.float64)
    return center + np.column_stack([dist * np.cos(angle), dist * np.sin(angle)])


def fracture_polygon(
    polygon,
    impact,
    *,
    n_sites: int = 10,
    spread: float = 0.5,
    min_area: float = 0.01,
    rng: np.random.Generator,
) -> List[Fragment]:
    """
    Break a convex polygon into Voronoi fragments around an impact point.

    Polygons with |area| <= min_area do not break and return [].
    """
    if n_sites < 3:
        raise InvalidInputError("n_sites must be >= 3")
    if spread <= 0:
        raise InvalidInputError("spread must be > 0")

    P = np.asarray(polygon, dtype=np.float64)
    area = abs(polygon_area(P))
    if area <= min_area:
        return []

    sites = scatter_sites_around(impact, n_sites, spread=spread, rng=rng)
    diagram = VoronoiCalculator().calculate_diagram(sites)

    clipper = VoronoiClipper()
    clipped: list = []
    fragments = []
    for site in range(n_sites):
        clipper.clip_site(diagram, P, site, clipped)
        if len(clipped) < 3:
            continue
        piece = np.asarray(clipped, dtype=np.float64)
        piece_area = abs(polygon_area(piece))
        fragments.append(Fragment(polygon=piece, site=site, area=piece_area, area_fraction=piece_area / area))

    logger.debug("polygon fractured", area=area, sites=n_sites, fragments=len(fragments))
    return fragments
