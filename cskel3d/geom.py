from __future__ import annotations
from dataclasses import dataclass
from math import sqrt
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np
from scipy.spatial import cKDTree


@dataclass(frozen=True)
class Pt:
    x: float
    y: float
    z: float
    def __iter__(self):
        yield self.x; yield self.y; yield self.z

def sub(a: Pt, b: Pt) -> Pt:
    return Pt(a.x - b.x, a.y - b.y, a.z - b.z)

def add(a: Pt, b: Pt) -> Pt:
    return Pt(a.x + b.x, a.y + b.y, a.z + b.z)

def scale(a: Pt, k: float) -> Pt:
    return Pt(a.x*k, a.y*k, a.z*k)

def dot(a: Pt, b: Pt) -> float:
    return a.x*b.x + a.y*b.y + a.z*b.z

def cross(a: Pt, b: Pt) -> Pt:
    return Pt(a.y*b.z - a.z*b.y,
              a.z*b.x - a.x*b.z,
              a.x*b.y - a.y*b.x)

def norm(a: Pt) -> float:
    return sqrt(dot(a, a))

def dist(a: Pt, b: Pt) -> float:
    return norm(sub(a, b))

def centroid(points: Iterable[Pt]) -> Pt:
    xs = ys = zs = 0.0
    n = 0
    for p in points:
        xs += p.x; ys += p.y; zs += p.z; n += 1
    if n == 0:
        raise ValueError("empty set")
    inv = 1.0 / n
    return Pt(xs*inv, ys*inv, zs*inv)

def bbox(points: Iterable[Pt]) -> Tuple[Pt, Pt]:
    pts = list(points)
    if not pts:
        raise ValueError("empty set")
    return (Pt(min(p.x for p in pts), min(p.y for p in pts), min(p.z for p in pts)),
            Pt(max(p.x for p in pts), max(p.y for p in pts), max(p.z for p in pts)))

def bbox_diagonal(points: Iterable[Pt]) -> float:
    lo, hi = bbox(points)
    return dist(lo, hi)

def circumsphere(a: Pt, b: Pt, c: Pt, d: Pt) -> Optional[Tuple[Pt, float]]:
    """
    Центр і радіус описаної сфери тетраедра (a,b,c,d).
    center = a + (|u|²(v×w) + |v|²(w×u) + |w|²(u×v)) / (2 u·(v×w)),  u=b-a, v=c-a, w=d-a.
    Повертає None для пласкої тетри.
    """
    u = sub(b, a); v = sub(c, a); w = sub(d, a)
    vw = cross(v, w)
    den = 2.0 * dot(u, vw)
    if den == 0.0:
        return None
    num = add(add(scale(vw, dot(u, u)), scale(cross(w, u), dot(v, v))), scale(cross(u, v), dot(w, w)))
    off = scale(num, 1.0 / den)
    return add(a, off), norm(off)

def triangle_circumradius(a: Pt, b: Pt, c: Pt) -> float:
    """R = |ab|·|bc|·|ca| / (2·|(b-a)×(c-a)|); для виродженого трикутника - inf."""
    n2 = norm(cross(sub(b, a), sub(c, a)))
    if n2 == 0.0:
        return float("inf")
    return dist(a, b) * dist(b, c) * dist(c, a) / (2.0 * n2)

def as_array(points: Sequence[Pt]) -> np.ndarray:
    return np.array([(p.x, p.y, p.z) for p in points], dtype=float).reshape(-1, 3)

def find_duplicate(points: Sequence[Pt], tol: float) -> Optional[Tuple[int, int]]:
    """
    Перша пара (i, j), i < j, точок ближчих за tol (cKDTree), або None.
    tol == 0 шукає лише точні збіги.
    """
    if len(points) < 2:
        return None
    if tol <= 0.0:
        seen: dict[Pt, int] = {}
        for i, p in enumerate(points):
            if p in seen:
                return seen[p], i
            seen[p] = i
        return None
    tree = cKDTree(as_array(points))
    pairs = tree.query_pairs(r=tol)
    if not pairs:
        return None
    return min(pairs)
