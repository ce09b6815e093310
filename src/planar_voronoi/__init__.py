from .config import DEFAULT_TOLERANCES, NumericTolerances
from .datastructures import EdgeType, Triangulation, VoronoiDiagram, VoronoiEdge
from .delaunay import DelaunayCalculator, Symbolic, triangulate
from .voronoi import VoronoiCalculator, build_voronoi
from .clipper import VoronoiClipper, clip_all_sites, clip_cell
from .sampling import sample_points_in_polygon
from .fracture import Fragment, fracture_polygon, scatter_sites_around
from .errors import (
    GeometryError,
    InternalConsistencyError,
    InvalidInputError,
    OperationCancelled,
    UnsupportedInputError,
)

__all__ = [
    "DEFAULT_TOLERANCES",
    "NumericTolerances",
    "EdgeType",
    "Triangulation",
    "VoronoiDiagram",
    "VoronoiEdge",
    "DelaunayCalculator",
    "Symbolic",
    "triangulate",
    "VoronoiCalculator",
    "build_voronoi",
    "VoronoiClipper",
    "clip_all_sites",
    "clip_cell",
    "sample_points_in_polygon",
    "Fragment",
    "fracture_polygon",
    "scatter_sites_around",
    "GeometryError",
    "InternalConsistencyError",
    "InvalidInputError",
    "OperationCancelled",
    "UnsupportedInputError",
]
