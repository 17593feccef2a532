# cskel3d/shapes.py
"""Замкнені тестові сітки з узгодженою орієнтацією (нормалі назовні)."""
from __future__ import annotations
from math import cos, pi, sin
from typing import Dict, List, Sequence, Tuple

from .geom import Pt

Mesh = Tuple[List[Pt], List[Tuple[int, int, int]]]


def tetrahedron() -> Mesh:
    pts = [Pt(0.0, 0.0, 0.0), Pt(1.0, 0.0, 0.0), Pt(0.0, 1.0, 0.0), Pt(0.0, 0.0, 1.0)]
    return pts, [(0, 2, 1), (0, 1, 3), (0, 3, 2), (1, 2, 3)]


def bipyramid(n: int = 9, radius: float = 1.0, height: float = 1.0) -> Mesh:
    """n точок на колі в площині z=0 і дві вершини (0,0,±height)."""
    if n < 3:
        raise ValueError("bipyramid needs n >= 3")
    pts = [Pt(radius * cos(2 * pi * i / n), radius * sin(2 * pi * i / n), 0.0) for i in range(n)]
    top, bot = n, n + 1
    pts += [Pt(0.0, 0.0, height), Pt(0.0, 0.0, -height)]
    faces = []
    for i in range(n):
        j = (i + 1) % n
        faces.append((i, j, top))
        faces.append((j, i, bot))
    return pts, faces


def box(size: Sequence[float] = (1.0, 1.0, 1.0), divisions: Sequence[int] = (1, 1, 1),
        origin: Sequence[float] = (0.0, 0.0, 0.0)) -> Mesh:
    """
    Поверхня прямокутного паралелепіпеда, кожна грань - сітка divisions квадів
    (кожен квад - два трикутники).
    """
    n = [int(k) for k in divisions]
    if min(n) < 1:
        raise ValueError("divisions must be >= 1")
    index: Dict[Tuple[int, int, int], int] = {}
    pts: List[Pt] = []

    def vid(ijk: Tuple[int, int, int]) -> int:
        if ijk not in index:
            index[ijk] = len(pts)
            pts.append(Pt(*(origin[a] + size[a] * ijk[a] / n[a] for a in range(3))))
        return index[ijk]

    faces: List[Tuple[int, int, int]] = []
    # (u, w, a) - права трійка осей; квад (u0,w0),(u1,w0),(u1,w1),(u0,w1) має нормаль +a
    for a, u, w in ((2, 0, 1), (0, 1, 2), (1, 2, 0)):
        for side in (0, n[a]):
            for i in range(n[u]):
                for j in range(n[w]):
                    quad = []
                    for du, dw in ((0, 0), (1, 0), (1, 1), (0, 1)):
                        ijk = [0, 0, 0]
                        ijk[a], ijk[u], ijk[w] = side, i + du, j + dw
                        quad.append(vid(tuple(ijk)))
                    if side == 0:
                        quad.reverse()
                    q0, q1, q2, q3 = quad
                    faces += [(q0, q1, q2), (q0, q2, q3)]
    return pts, faces


def cube(size: float = 1.0) -> Mesh:
    return box((size, size, size), (1, 1, 1))
