"""
cskel3d - скелетизація замкнених 3D-сіток через тетраедралізацію Делоне.
Зараз: точні предикати, інкрементальна Делоне (Bowyer–Watson), класифікація тетр,
листовий скелет (листи, криві, вузли) і його спрощення за epsilon.
"""

__version__ = "0.2.0"

from cskel3d.geom import Pt
from cskel3d.predicates import orient3d, orientation, insphere, insphere_sos
from cskel3d.errors import (SkeletonError, DegenerateInput, DuplicatePoint, NonManifoldSurface,
                            InvalidParameter, MeshFormatError)
from cskel3d.mesh import TetMesh, Delaunay3D, tetrahedralize
from cskel3d.surface import SurfaceMesh, conform_to_delaunay
from cskel3d.classify import Label, Classification, classify
from cskel3d.skeleton import SkeletonComplex, extract_skeleton
from cskel3d.prune import PruneStats, prune
from cskel3d.pipeline import SkeletonConfig, SkeletonResult, to_delaunay, skeletonize

__all__ = [
    "Pt", "orient3d", "orientation", "insphere", "insphere_sos",
    "SkeletonError", "DegenerateInput", "DuplicatePoint", "NonManifoldSurface",
    "InvalidParameter", "MeshFormatError",
    "TetMesh", "Delaunay3D", "tetrahedralize",
    "SurfaceMesh", "conform_to_delaunay",
    "Label", "Classification", "classify",
    "SkeletonComplex", "extract_skeleton",
    "PruneStats", "prune",
    "SkeletonConfig", "SkeletonResult", "to_delaunay", "skeletonize",
    "__version__",
]
