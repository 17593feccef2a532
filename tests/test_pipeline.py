import dataclasses

import pytest

from cskel3d.errors import InvalidParameter
from cskel3d.pipeline import SkeletonConfig, skeletonize, to_delaunay
from cskel3d.shapes import box


@pytest.mark.parametrize("kwargs", [
    {"epsilon": -0.5},
    {"epsilon": float("nan")},
    {"backend": "cgal"},
    {"probe": "vertex"},
    {"flip_angle": 120.0},
    {"max_conform_rounds": -1},
    {"dup_tol": -1e-9},
])
def test_config_validation(kwargs):
    with pytest.raises(InvalidParameter):
        SkeletonConfig(**kwargs)


def test_config_is_frozen():
    cfg = SkeletonConfig()
    with pytest.raises(dataclasses.FrozenInstanceError):
        cfg.epsilon = 1.0


def test_to_delaunay_without_conform(cube_surface):
    surface, mesh = to_delaunay(*cube_surface, SkeletonConfig(conform=False))
    assert surface.faces() == cube_surface[1]
    assert mesh.tet_count() in (5, 6)


def test_relative_epsilon(cube_surface):
    surface, _ = to_delaunay(*cube_surface)
    res = skeletonize(surface.points, surface.faces(), SkeletonConfig(epsilon=0.1, relative=True))
    assert res.epsilon == pytest.approx(0.1 * 3 ** 0.5)
    assert res.stats.epsilon == res.epsilon


def test_empty_skeleton_warns(cube_surface, caplog):
    surface, _ = to_delaunay(*cube_surface)
    with caplog.at_level("WARNING"):
        res = skeletonize(surface.points, surface.faces(), SkeletonConfig(epsilon=1e6))
    assert res.skeleton.is_empty()
    assert "skeleton is empty" in caplog.text


def test_accepts_plain_tuples():
    pts, faces = box((1.0, 1.0, 1.0))
    tuples = [(p.x, p.y, p.z) for p in pts]
    surface, mesh = to_delaunay(tuples, faces)
    assert surface.points == pts
    res = skeletonize(surface.points, surface.faces())
    assert res.raw_counts == res.skeleton.counts()


def test_slab_classification_is_clean():
    pts, faces = box((3.0, 2.0, 0.4), (3, 2, 1))
    surface, _ = to_delaunay(pts, faces)
    res = skeletonize(surface.points, surface.faces(), SkeletonConfig(epsilon=0.0))
    assert res.classification.leaks == []
    assert res.mesh.delaunay_violations() == []
