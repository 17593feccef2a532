# cskel3d/pipeline.py
from __future__ import annotations
from dataclasses import dataclass
from math import isfinite
from typing import Iterable, List, Optional, Sequence, Tuple
import logging

from .classify import PROBES, Classification, classify
from .errors import InvalidParameter
from .geom import Pt
from .mesh import TetMesh, tetrahedralize
from .prune import PruneStats, prune
from .skeleton import SkeletonComplex, extract_skeleton
from .surface import SurfaceMesh, conform_to_delaunay

logger = logging.getLogger(__name__)

BACKENDS = ("internal", "scipy")


@dataclass(frozen=True)
class SkeletonConfig:
    """
    Параметри запуску; передаються явно, без глобального стану.
      epsilon        - поріг спрощення (>= 0); при relative=True - частка діагоналі bbox;
      backend        - "internal" (точні предикати) або "scipy" (Qhull);
      seed           - seed перемішування порядку вставки;
      dup_tol        - дублікати: ближче ніж dup_tol * діагональ bbox;
      strict         - незамкнена поверхня -> NonManifoldSurface замість попередження;
      probe          - точка тесту парності: "centroid" або "circumcenter";
      conform        - to_delaunay: фліпи/розбиття, щоб поверхня стала Делоне;
      flip_angle     - максимальний кут (у градусах) між гранями для фліпу;
      max_conform_rounds - межа раундів conform.
    """
    epsilon: float = 0.0
    relative: bool = False
    backend: str = "internal"
    seed: int = 0
    dup_tol: float = 1e-12
    strict: bool = False
    probe: str = "centroid"
    conform: bool = True
    flip_angle: float = 20.0
    max_conform_rounds: int = 50

    def __post_init__(self):
        if not isinstance(self.epsilon, (int, float)) or not isfinite(self.epsilon) or self.epsilon < 0:
            raise InvalidParameter(f"epsilon: must be a finite number >= 0, got {self.epsilon!r}")
        if self.backend not in BACKENDS:
            raise InvalidParameter(f"backend: expected one of {BACKENDS}, got {self.backend!r}")
        if self.probe not in PROBES:
            raise InvalidParameter(f"probe: expected one of {PROBES}, got {self.probe!r}")
        if not isfinite(self.dup_tol) or self.dup_tol < 0:
            raise InvalidParameter(f"dup_tol: must be >= 0, got {self.dup_tol!r}")
        if not 0.0 <= self.flip_angle <= 90.0:
            raise InvalidParameter(f"flip_angle: must be within [0, 90] degrees, got {self.flip_angle!r}")
        if self.max_conform_rounds < 0:
            raise InvalidParameter(f"max_rounds: must be >= 0, got {self.max_conform_rounds!r}")


@dataclass
class SkeletonResult:
    surface: SurfaceMesh
    mesh: TetMesh
    classification: Classification
    skeleton: SkeletonComplex
    raw_counts: dict
    stats: PruneStats
    epsilon: float  # абсолютний поріг, що реально застосовано


def _as_points(points: Iterable) -> List[Pt]:
    return [p if isinstance(p, Pt) else Pt(float(p[0]), float(p[1]), float(p[2])) for p in points]


def to_delaunay(points: Iterable, faces: Sequence[Sequence[int]],
                config: Optional[SkeletonConfig] = None) -> Tuple[SurfaceMesh, TetMesh]:
    """
    Перший етап: поверхня, усі грані якої - грані тетраедралізації Делоне її вершин.
    Повертає (поверхня, тетраедралізація).
    """
    config = config or SkeletonConfig()
    surface = SurfaceMesh(_as_points(points), faces)
    if not config.conform:
        return surface, tetrahedralize(surface.points, backend=config.backend, seed=config.seed,
                                       dup_tol=config.dup_tol)
    return conform_to_delaunay(surface, flip_angle=config.flip_angle, max_rounds=config.max_conform_rounds,
                               backend=config.backend, seed=config.seed, dup_tol=config.dup_tol)


def skeletonize(points: Iterable, faces: Sequence[Sequence[int]],
                config: Optional[SkeletonConfig] = None) -> SkeletonResult:
    """
    Другий етап: Делоне -> класифікація -> сирий скелет -> спрощення на epsilon.
    Очікує поверхню, вже перетворену to_delaunay (інакше частина граней не буде знайдена).
    """
    config = config or SkeletonConfig()
    surface = SurfaceMesh(_as_points(points), faces)
    mesh = tetrahedralize(surface.points, backend=config.backend, seed=config.seed, dup_tol=config.dup_tol)
    logger.info("Delaunay: %d points, %d tetrahedra", len(mesh.points), mesh.tet_count())
    cls = classify(mesh, surface, strict=config.strict, probe=config.probe)
    skel = extract_skeleton(mesh, cls, surface)
    raw_counts = skel.counts()

    eps = config.epsilon * surface.bbox_diagonal() if config.relative else config.epsilon
    stats = prune(skel, eps)
    if skel.is_empty():
        logger.warning("skeleton is empty after pruning at epsilon=%g", eps)
    return SkeletonResult(surface, mesh, cls, skel, raw_counts, stats, eps)
