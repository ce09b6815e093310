class GeometryError(Exception):
    """Base class for everything raised by planar_voronoi."""


class InvalidInputError(GeometryError, ValueError):
    """Null or malformed points, too few points, bad polygon or site index."""


class UnsupportedInputError(GeometryError, NotImplementedError):
    """Degenerate configurations that are not implemented (collinear sets, < 3 sites)."""


class InternalConsistencyError(GeometryError, RuntimeError):
    """
    An adjacency/history invariant was violated, or a ray survived clipping.
    Signals a defect, the operation is aborted.
    """


class OperationCancelled(GeometryError, RuntimeError):
    """Raised when a should_cancel callback asks a long computation to stop."""
