import numpy as np
import pytest
from shapely.geometry import Polygon
from shapely.ops import unary_union

from src.planar_voronoi.clipper import VoronoiClipper, clip_all_sites, clip_cell
from src.planar_voronoi.errors import InvalidInputError
from src.planar_voronoi.geometry import polygon_area
from src.planar_voronoi.sampling import sample_points_in_polygon
from src.planar_voronoi.voronoi import build_voronoi

from tests.planar_voronoi.helpers_oracle import grid, square, voronoi_cell_halfplanes_in_polygon


def _hexagon(center=(5.0, 5.0), radius=6.0):
    angles = np.linspace(0.0, 2.0 * np.pi, 6, endpoint=False) + 0.3
    return np.column_stack([
        center[0] + radius * np.cos(angles),
        center[1] + radius * np.sin(angles),
    ])


def _assert_matches_oracle(diagram, polygon, cells):
    sites = diagram.sites
    for s, cell in enumerate(cells):
        expected = voronoi_cell_halfplanes_in_polygon(sites, s, polygon)
        if len(cell) < 3:
            assert expected.area < 1e-9
            continue
        got = Polygon(cell)
        assert got.is_valid
        assert got.symmetric_difference(expected).area < 1e-7


def test_far_sites_leave_whole_polygon_to_one_cell():
    sites = np.array([[5.0, 5.0], [100.0, 100.0], [100.0, -90.0]])
    d = build_voronoi(sites)

    cell = clip_cell(d, square(10.0), 0)

    assert len(cell) == 4
    assert {tuple(np.round(p, 9)) for p in cell} == {(0.0, 0.0), (10.0, 0.0), (10.0, 10.0), (0.0, 10.0)}
    assert np.isclose(polygon_area(cell), 100.0)
    assert clip_cell(d, square(10.0), 1) == []
    assert clip_cell(d, square(10.0), 2) == []


def test_cocircular_square_cells_are_quarters():
    sites = np.array([[0.0, 0.0], [1.0, 0.0], [1.0, 1.0], [0.0, 1.0]])
    d = build_voronoi(sites)

    cells = clip_all_sites(d, square(1.0))
    for s, cell in enumerate(cells):
        assert np.isclose(polygon_area(cell), 0.25)
        assert np.all(np.abs(cell - sites[s]) <= 0.5 + 1e-12)


def test_cells_partition_the_square():
    rng = np.random.default_rng(11)
    poly = square(10.0)
    sites = sample_points_in_polygon(poly, n_points=40, rng=rng)
    d = build_voronoi(sites)

    cells = clip_all_sites(d, poly)

    areas = [polygon_area(c) for c in cells]
    assert all(a > 0.0 for a in areas)
    assert np.isclose(sum(areas), 100.0, rtol=1e-9)
    assert np.isclose(unary_union([Polygon(c) for c in cells]).area, 100.0, rtol=1e-9)
    _assert_matches_oracle(d, poly, cells)


def test_cells_partition_a_rotated_hexagon():
    rng = np.random.default_rng(12)
    poly = _hexagon()
    sites = sample_points_in_polygon(poly, n_points=30, rng=rng)
    d = build_voronoi(sites)

    cells = clip_all_sites(d, poly)

    assert np.isclose(sum(polygon_area(c) for c in cells), Polygon(poly).area, rtol=1e-9)
    _assert_matches_oracle(d, poly, cells)


def test_polygon_smaller_than_site_cloud():
    rng = np.random.default_rng(13)
    sites = rng.uniform(0.0, 10.0, size=(40, 2))
    poly = square(4.0, origin=(3.0, 3.0))
    d = build_voronoi(sites)

    cells = clip_all_sites(d, poly)

    assert any(len(c) == 0 for c in cells)
    assert np.isclose(sum(polygon_area(c) for c in cells if len(c) >= 3), 16.0, rtol=1e-9)
    _assert_matches_oracle(d, poly, cells)


def test_single_triangle_cells_are_unbounded_wedges():
    sites = np.array([[0.0, 0.0], [6.0, 0.0], [2.0, 5.0]])
    poly = square(40.0, origin=(-20.0, -20.0))
    d = build_voronoi(sites)

    cells = clip_all_sites(d, poly)

    assert np.isclose(sum(polygon_area(c) for c in cells), 1600.0, rtol=1e-9)
    _assert_matches_oracle(d, poly, cells)


def test_boundary_collinear_with_cell_edge():
    # x=5 separates sites 0 and 1; the polygon's left edge lies on it
    sites = np.array([[3.0, 2.0], [7.0, 2.0], [5.0, 100.0]])
    poly = np.array([[5.0, 0.0], [10.0, 0.0], [10.0, 10.0], [5.0, 10.0]])
    d = build_voronoi(sites)

    cells = [clip_cell(d, poly, s) for s in range(3)]

    assert np.isclose(polygon_area(cells[1]), 50.0)
    assert abs(polygon_area(cells[0])) < 1e-9
    assert cells[2] == []


def test_cell_inside_polygon_is_unchanged():
    sites = np.array([
        [5.0, 5.0],
        [2.5, 5.0],
        [7.5, 5.0],
        [5.0, 2.5],
        [5.0, 7.5],
    ], dtype=np.float64)
    d = build_voronoi(sites)

    cell = clip_cell(d, square(10.0), 0)
    unclipped = {tuple(np.round(d.vertices[e.vert0], 9)) for e in d.site_edges(0)}

    assert len(cell) == 4
    assert {tuple(np.round(p, 9)) for p in cell} == unclipped
    assert np.isclose(polygon_area(cell), 6.25)


def test_clockwise_polygon_gives_clockwise_cells():
    rng = np.random.default_rng(14)
    poly = square(10.0)
    sites = rng.uniform(1.0, 9.0, size=(15, 2))
    d = build_voronoi(sites)

    ccw = clip_all_sites(d, poly)
    cw = clip_all_sites(d, poly[::-1])

    for a, b in zip(ccw, cw):
        assert polygon_area(a) > 0.0
        assert np.isclose(polygon_area(b), -polygon_area(a))


def test_closed_ring_is_accepted():
    sites = np.array([[5.0, 5.0], [100.0, 100.0], [100.0, -90.0]])
    d = build_voronoi(sites)
    ring = np.vstack([square(10.0), square(10.0)[:1]])

    assert np.isclose(polygon_area(clip_cell(d, ring, 0)), 100.0)


def test_clipped_buffer_is_reused():
    rng = np.random.default_rng(15)
    sites = rng.uniform(0.0, 10.0, size=(10, 2))
    d = build_voronoi(sites)
    clipper = VoronoiClipper()

    buf = [(123.0, 456.0)]
    out = clipper.clip_site(d, square(10.0), 0, buf)

    assert out is buf
    assert (123.0, 456.0) not in buf
    assert np.isclose(polygon_area(buf), polygon_area(clip_cell(d, square(10.0), 0)))


def test_inputs_are_not_modified():
    rng = np.random.default_rng(16)
    sites = rng.uniform(0.0, 10.0, size=(10, 2))
    d = build_voronoi(sites)
    poly = square(10.0)

    edges = list(d.edges)
    verts = d.vertices.copy()
    clip_all_sites(d, poly)

    assert d.edges == edges
    assert np.array_equal(d.vertices, verts)
    assert np.array_equal(poly, square(10.0))


@pytest.mark.parametrize("site", [-1, 3, 100])
def test_site_out_of_range(site):
    d = build_voronoi(np.array([[0.0, 0.0], [1.0, 0.0], [0.0, 1.0]]))
    with pytest.raises(InvalidInputError):
        clip_cell(d, square(1.0), site)


@pytest.mark.parametrize("polygon", [
    [[0.0, 0.0], [1.0, 0.0]],
    [[0.0, 0.0], [1.0, 0.0], [2.0, 0.0]],
    [[0.0, 0.0], [4.0, 0.0], [4.0, 4.0], [2.0, 1.0], [0.0, 4.0]],
    [[0.0, 0.0], [1.0, 1.0], [1.0, 0.0], [0.0, 1.0]],
    [[0.0, 0.0], [1.0, np.nan], [0.0, 1.0]],
])
def test_bad_polygon(polygon):
    d = build_voronoi(np.array([[0.0, 0.0], [1.0, 0.0], [0.0, 1.0]]))
    with pytest.raises(InvalidInputError):
        clip_cell(d, polygon, 0)


@pytest.mark.parametrize("sites, poly", [
    (grid(3), square(7.3, origin=(-2.1, -1.7))),
    (grid(5), square(9.0, origin=(-2.5, -2.5))),
    ([[0.0, 0.0], [1.0, 0.0], [2.0, 0.0], [3.0, 0.0], [1.5, 1.0]], square(10.0, origin=(-3.5, -4.0))),
    ([[0.0, 0.0], [0.0, 1.0], [0.0, 2.0], [0.0, 3.0], [1.0, 1.5]], _hexagon(center=(0.5, 1.5), radius=5.0)),
])
def test_collinear_hull_cells_partition_the_polygon(sites, poly):
    sites = np.asarray(sites, dtype=np.float64)
    d = build_voronoi(sites)

    cells = clip_all_sites(d, poly)

    areas = [polygon_area(c) for c in cells]
    assert all(a > 0.0 for a in areas)
    assert np.isclose(sum(areas), Polygon(poly).area, rtol=1e-9)
    _assert_matches_oracle(d, poly, cells)


def test_near_duplicate_site_gets_no_cell():
    rng = np.random.default_rng(17)
    poly = square(10.0)
    sites = sample_points_in_polygon(poly, n_points=20, rng=rng)
    sites = np.vstack([sites, sites[4] + [1e-12, 0.0]])
    d = build_voronoi(sites)

    cells = clip_all_sites(d, poly)

    assert len(cells[20]) == 0
    assert polygon_area(cells[4]) > 0.0
    assert np.isclose(sum(polygon_area(c) for c in cells), 100.0, rtol=1e-9)
    assert np.isclose(unary_union([Polygon(c) for c in cells[:20]]).area, 100.0, rtol=1e-9)


@pytest.mark.parametrize("site", [1.7, 1.0, "1", None])
def test_site_must_be_an_integer(site):
    d = build_voronoi(np.array([[0.0, 0.0], [1.0, 0.0], [0.0, 1.0]]))
    with pytest.raises(InvalidInputError):
        clip_cell(d, square(1.0), site)


def test_numpy_integer_site_is_accepted():
    sites = np.array([[5.0, 5.0], [100.0, 100.0], [100.0, -90.0]])
    d = build_voronoi(sites)

    cell = clip_cell(d, square(10.0), np.int64(0))
    assert np.isclose(polygon_area(cell), 100.0)
