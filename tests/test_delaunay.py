import random

import numpy as np
import pytest
from scipy.spatial import ConvexHull

from cskel3d.errors import DegenerateInput, DuplicatePoint
from cskel3d.geom import Pt, dist
from cskel3d.mesh import Delaunay3D, build_mesh_from_tets, check_input, tetrahedralize
from cskel3d.shapes import bipyramid, box

from conftest import random_points


def _assert_valid_delaunay(mesh):
    report = mesh.validate()
    assert report["bad_orientation"] == []
    assert report["bad_face_multiplicity"] == []
    assert report["bad_neighbors"] == []
    assert mesh.delaunay_violations() == []


def test_single_tetrahedron(tet_surface):
    pts, _ = tet_surface
    mesh = tetrahedralize(pts)
    assert mesh.tet_count() == 1
    assert len(mesh.extract_boundary_faces()) == 4
    assert all(len(lst) == 1 for _, lst in mesh.faces())
    assert len(mesh.points) == 4


def test_cube_corners(cube_surface):
    pts, _ = cube_surface
    mesh = tetrahedralize(pts)
    assert mesh.tet_count() in (5, 6)
    _assert_valid_delaunay(mesh)
    assert len(mesh.extract_boundary_faces()) == 12
    volume = sum(abs(_volume(mesh, tid)) for tid in mesh.alive_tets())
    assert volume == pytest.approx(1.0)


def _volume(mesh, tid):
    a, b, c, d = (mesh.points[i] for i in mesh.tets[tid].v)
    ux, uy, uz = b.x - a.x, b.y - a.y, b.z - a.z
    vx, vy, vz = c.x - a.x, c.y - a.y, c.z - a.z
    wx, wy, wz = d.x - a.x, d.y - a.y, d.z - a.z
    return (ux * (vy * wz - vz * wy) + uy * (vz * wx - vx * wz) + uz * (vx * wy - vy * wx)) / 6.0


def test_random_points_are_delaunay():
    mesh = tetrahedralize(random_points(40))
    _assert_valid_delaunay(mesh)


@pytest.mark.parametrize("points", [
    random_points(25, seed=3),
    box((2.0, 1.0, 1.0), (2, 1, 1))[0],
    bipyramid(n=6)[0],
], ids=["random", "grid", "cospherical"])
def test_insertion_order_does_not_matter(points):
    reference = tetrahedralize(points, seed=0).canonical_tets()
    for seed in (1, 2, 3):
        assert tetrahedralize(points, seed=seed).canonical_tets() == reference
    order = list(range(len(points)))[::-1]
    assert tetrahedralize(points, insert_order=order).canonical_tets() == reference


def test_scipy_backend_agrees_on_general_position():
    pts = random_points(30, seed=7)
    ours = tetrahedralize(pts, backend="internal")
    theirs = tetrahedralize(pts, backend="scipy")
    assert ours.canonical_tets() == theirs.canonical_tets()
    assert theirs.validate()["bad_neighbors"] == []


@pytest.mark.parametrize("thickness", [1.0, 1e-2, 1e-3])
def test_boundary_is_convex_hull_of_flat_points(thickness):
    # тонка плита: надто малий супертетраедр зрізав би тетри оболонки
    rng = np.random.default_rng(11)
    arr = rng.random((60, 3)) * [1.0, 1.0, thickness]
    mesh = tetrahedralize([Pt(*map(float, row)) for row in arr])
    hull = sorted(tuple(sorted(map(int, s))) for s in ConvexHull(arr).simplices)
    assert sorted(mesh.extract_boundary_faces()) == hull
    assert mesh.hull_is_convex()
    _assert_valid_delaunay(mesh)


def test_hull_is_convex_detects_reflex_edge_and_unused_point():
    pts = [Pt(0, 0, 0), Pt(1, 0, 0), Pt(0, 1, 0), Pt(0.2, 0.2, 1), Pt(3, 3, -0.1)]
    assert build_mesh_from_tets(pts[:4], [(0, 1, 2, 3)]).hull_is_convex()
    # друга тетра за ребром (1,2) робить межу неопуклою
    assert not build_mesh_from_tets(pts, [(0, 1, 2, 3), (0, 1, 2, 4)]).hull_is_convex()
    assert not build_mesh_from_tets(pts, [(0, 1, 2, 3)]).hull_is_convex()


def test_unknown_backend():
    with pytest.raises(ValueError):
        tetrahedralize(random_points(5), backend="cgal")


class TestInputChecks:
    def test_too_few_points(self):
        with pytest.raises(DegenerateInput):
            tetrahedralize([Pt(0, 0, 0), Pt(1, 0, 0), Pt(0, 1, 0)])

    def test_coplanar(self):
        pts = [Pt(float(x), float(y), 0.0) for x in range(3) for y in range(3)]
        with pytest.raises(DegenerateInput, match="coplanar"):
            check_input(pts)

    def test_collinear(self):
        pts = [Pt(float(i), 2.0 * i, 0.0) for i in range(5)]
        with pytest.raises(DegenerateInput, match="collinear"):
            check_input(pts)

    def test_duplicate_names_both_indices(self):
        pts = random_points(6) + [Pt(0.5, 0.5, 0.5)]
        pts.append(Pt(0.5, 0.5, 0.5 + 1e-15))
        with pytest.raises(DuplicatePoint) as info:
            tetrahedralize(pts)
        assert info.value.indices == (6, 7)
        assert "6" in str(info.value) and "7" in str(info.value)

    def test_duplicate_is_a_degenerate_input(self):
        assert issubclass(DuplicatePoint, DegenerateInput)


class TestQueries:
    @pytest.fixture
    def mesh(self):
        return tetrahedralize(random_points(30, seed=11))

    def test_edge_ring_around_interior_edge(self, mesh):
        star = mesh.edge_star()
        boundary_edges = {tuple(sorted(e)) for f in mesh.extract_boundary_faces()
                          for e in ((f[0], f[1]), (f[0], f[2]), (f[1], f[2]))}
        interior = [e for e in sorted(star) if e not in boundary_edges]
        assert interior
        for a, b in interior:
            ring, closed = mesh.edge_ring(a, b)
            assert closed
            assert sorted(ring) == sorted(star[(a, b)])
            for t0, t1 in zip(ring, ring[1:] + ring[:1]):
                assert t1 in mesh.tets[t0].nbr

    def test_edge_ring_on_hull_is_open(self, mesh):
        a, b, _ = mesh.extract_boundary_faces()[0]
        ring, closed = mesh.edge_ring(a, b)
        assert not closed
        assert mesh.tets[ring[0]].nbr.count(-1) >= 1

    def test_poles(self, mesh):
        poles = mesh.poles()
        incident = mesh.point_tets()
        assert set(poles) == set(range(len(mesh.points)))
        for p, tid in poles.items():
            assert p in mesh.tets[tid].v
            assert mesh.circumradius(tid) == max(mesh.circumradius(t) for t in incident[p])
            c = mesh.circumcenter(tid)
            assert dist(c, mesh.points[p]) == pytest.approx(mesh.circumradius(tid))

    def test_locate(self, mesh):
        tid = mesh.locate(Pt(0.5, 0.5, 0.5))
        if tid is not None:
            assert mesh.tets[tid].alive
        assert mesh.locate(Pt(10.0, 10.0, 10.0)) is None

    def test_rebuild_from_tets(self, mesh):
        rebuilt = build_mesh_from_tets(mesh.points, mesh.canonical_tets())
        assert rebuilt.canonical_tets() == mesh.canonical_tets()
        assert rebuilt.is_valid()

    def test_export(self, mesh, tmp_path):
        off = mesh.boundary_off()
        assert off.startswith("OFF\n")
        nv, nf, _ = map(int, off.splitlines()[1].split())
        assert nf == len(mesh.extract_boundary_faces())

        path = tmp_path / "mesh.vtk"
        mesh.write_vtk_unstructured(str(path), cell_scalars={t: 1 for t in mesh.alive_tets()})
        text = path.read_text()
        assert f"CELLS {mesh.tet_count()} {5 * mesh.tet_count()}" in text
        assert "CELL_TYPES" in text and "SCALARS label int 1" in text


def test_free_slots_are_reused():
    dt = Delaunay3D(random_points(20, seed=5), seed=0)
    dt.build()
    dt.remove_super_tetra()
    mesh = dt.mesh
    assert len(mesh.points) == 20
    assert mesh.tet_count() == len(mesh.alive_tets())
    # арена не росте на кожну видалену тетру: слоти перевикористовуються
    assert len(mesh.tets) < 4 * mesh.tet_count() + 64
    assert all(n == -1 or mesh.tets[n].alive for tid in mesh.alive_tets() for n in mesh.tets[tid].nbr)
