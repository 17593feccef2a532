import numpy as np
import pytest

from cskel3d.geom import Pt
from cskel3d.pipeline import SkeletonConfig, skeletonize, to_delaunay
from cskel3d.shapes import bipyramid, box, cube, tetrahedron


def random_points(n: int, seed: int = 1):
    rng = np.random.default_rng(seed)
    return [Pt(*map(float, xyz)) for xyz in rng.random((n, 3))]


@pytest.fixture
def tet_surface():
    return tetrahedron()


@pytest.fixture
def cube_surface():
    return cube()


@pytest.fixture
def dart_surface():
    """Біпіраміда з верхньою вершиною, вдавленою нижче кільця - неопукле тіло."""
    pts, faces = bipyramid(n=7, radius=1.0, height=1.0)
    pts[-2] = Pt(0.0, 0.0, -0.4)
    return pts, faces


@pytest.fixture(scope="session")
def slab_result():
    """Тонка плита 4 x 4 x 0.5, вже Делоне-сумісна, сирий скелет (epsilon = 0)."""
    pts, faces = box((4.0, 4.0, 0.5), (4, 4, 1))
    surface, _ = to_delaunay(pts, faces)
    return skeletonize(surface.points, surface.faces(), SkeletonConfig(epsilon=0.0))


@pytest.fixture(scope="session")
def bipyramid_result():
    pts, faces = bipyramid(n=9)
    surface, _ = to_delaunay(pts, faces)
    return skeletonize(surface.points, surface.faces(), SkeletonConfig(epsilon=0.0))
