# cskel3d/surface.py
from __future__ import annotations
from dataclasses import dataclass
from math import cos, radians, log2, floor
from typing import Dict, List, Optional, Sequence, Set, Tuple
import logging

import numpy as np

from .errors import NonManifoldSurface
from .geom import Pt, add, sub, scale, cross, dot, norm, dist, centroid, as_array, bbox_diagonal
from .mesh import TetMesh, tetrahedralize
from .predicates import collinear

logger = logging.getLogger(__name__)

Edge = Tuple[int, int]          # орієнтоване ребро (u, v)
UEdge = Tuple[int, int]         # неорієнтоване ребро (min(u,v), max(u,v))

# фіксовані «неосьові» напрямки променів для тесту парності
_RAY_DIRS = np.array([
    (1.0, 0.3183098861837907, 0.1415926535897932),
    (-0.2718281828459045, 1.0, 0.5772156649015329),
    (0.1234567890123456, -0.4142135623730951, 1.0),
])
_RAY_DIRS = _RAY_DIRS / np.linalg.norm(_RAY_DIRS, axis=1)[:, None]


@dataclass
class Face:
    """
    Трикутник поверхні; v - індекси вершин з узгодженою орієнтацією (нормаль назовні).
    Локальні ребра: 0:(a,b), 1:(b,c), 2:(c,a).
    """
    v: Tuple[int, int, int]

    def edge(self, i: int) -> Edge:
        a, b, c = self.v
        if i == 0:
            return (a, b)
        if i == 1:
            return (b, c)
        return (c, a)

    def tri(self) -> Tuple[int, int, int]:
        return self.v

    def key(self) -> Tuple[int, int, int]:
        return tuple(sorted(self.v))


class SurfaceMesh:
    """
    Трикутна поверхня (вхідна сітка) з картою ребро -> грані.
    Вершини з індексом < n_original - вхідні; решта додані розбиттями.
    """

    def __init__(self, points: Sequence[Pt], faces: Sequence[Sequence[int]], n_original: Optional[int] = None):
        self.points: List[Pt] = list(points)
        self.faces_list: List[Face] = []
        self.edge2face: Dict[UEdge, List[Tuple[int, int]]] = {}  # (min(u,v),max(u,v)) -> [(face_id, local_edge), ...]
        self.n_original = len(self.points) if n_original is None else n_original
        for tri in faces:
            a, b, c = (int(i) for i in tri)
            for i in (a, b, c):
                if not 0 <= i < len(self.points):
                    raise IndexError(f"face {tri}: vertex index {i} out of range")
            self._add_face(a, b, c)

    def copy(self) -> "SurfaceMesh":
        return SurfaceMesh(self.points, self.faces(), self.n_original)

    # ---------------- Публічний API ----------------
    def faces(self) -> List[Tuple[int, int, int]]:
        return [f.v for f in self.faces_list]

    def edge_keys(self) -> List[UEdge]:
        return sorted(self.edge2face)

    def face_keys(self) -> List[Tuple[int, int, int]]:
        return sorted({f.key() for f in self.faces_list})

    def bbox_diagonal(self) -> float:
        return bbox_diagonal(self.points)

    def face_normal(self, fid: int) -> Pt:
        a, b, c = (self.points[i] for i in self.faces_list[fid].v)
        n = cross(sub(b, a), sub(c, a))
        ln = norm(n)
        return scale(n, 1.0 / ln) if ln > 0.0 else Pt(0.0, 0.0, 0.0)

    def dihedral_cos(self, u: int, v: int) -> float:
        """Косинус кута між нормалями двох граней при ребрі (u,v); 1 - компланарні."""
        lst = self.edge2face.get((min(u, v), max(u, v)), [])
        if len(lst) != 2:
            raise KeyError(f"edge ({u}, {v}) is not shared by two faces")
        return dot(self.face_normal(lst[0][0]), self.face_normal(lst[1][0]))

    def opposite(self, fid: int, u: int, v: int) -> int:
        return next(w for w in self.faces_list[fid].v if w != u and w != v)

    # ---------------- Перевірка ----------------
    def check(self) -> dict:
        """
        Перевірка замкненості й узгодженості:
          - ребро з кратністю != 2;
          - орієнтоване ребро, використане двічі (неузгоджена орієнтація);
          - вироджені трикутники.
        """
        bad_edges = [(e, len(lst)) for e, lst in sorted(self.edge2face.items()) if len(lst) != 2]
        directed: Dict[Edge, int] = {}
        for f in self.faces_list:
            for i in range(3):
                e = f.edge(i)
                directed[e] = directed.get(e, 0) + 1
        bad_orientation = sorted(e for e, k in directed.items() if k > 1)
        degenerate = []
        for fid, f in enumerate(self.faces_list):
            a, b, c = f.v
            if len({a, b, c}) < 3 or collinear(self.points[a], self.points[b], self.points[c]):
                degenerate.append(fid)
        return {
            "faces": len(self.faces_list),
            "bad_edges": bad_edges,
            "bad_orientation": bad_orientation,
            "degenerate_faces": degenerate,
        }

    def is_closed_manifold(self) -> bool:
        rep = self.check()
        return not (rep["bad_edges"] or rep["bad_orientation"] or rep["degenerate_faces"])

    def raise_if_not_manifold(self) -> None:
        rep = self.check()
        if rep["bad_edges"]:
            raise NonManifoldSurface("surface is not closed", [e for e, _ in rep["bad_edges"]])
        if rep["bad_orientation"]:
            raise NonManifoldSurface("inconsistent face orientation", rep["bad_orientation"])
        if rep["degenerate_faces"]:
            raise NonManifoldSurface(f"{len(rep['degenerate_faces'])} degenerate face(s)")

    # ---------------- Локальні правки ----------------
    def add_point(self, p: Pt) -> int:
        self.points.append(p)
        return len(self.points) - 1

    def split_edge(self, u: int, v: int, p: Pt) -> Tuple[int, List[int]]:
        """Вставити вершину p на ребро (u,v); кожна з інцидентних граней -> дві. Повертає (w, змінені грані)."""
        lst = list(self.edge2face.get((min(u, v), max(u, v)), []))
        if not lst:
            raise KeyError(f"edge ({u}, {v}) not in surface")
        w = self.add_point(p)
        touched: List[int] = []
        for fid, ei in lst:
            x, y = self.faces_list[fid].edge(ei)
            z = self.opposite(fid, x, y)
            self._replace_face(fid, x, w, z)
            touched += [fid, self._add_face(w, y, z)]
        return w, touched

    def split_face(self, fid: int, p: Pt) -> Tuple[int, List[int]]:
        """Розбити грань fid вершиною p на три."""
        a, b, c = self.faces_list[fid].v
        w = self.add_point(p)
        self._replace_face(fid, a, b, w)
        return w, [fid, self._add_face(b, c, w), self._add_face(c, a, w)]

    def flip_edge(self, u: int, v: int) -> bool:
        """
        Фліп ребра (u,v) між гранями (x,y,c) і (y,x,d) -> (x,d,c), (y,c,d).
        Повертає False, якщо фліп неможливий (ребро не спільне для двох граней або діагональ уже є).
        """
        lst = self.edge2face.get((min(u, v), max(u, v)), [])
        if len(lst) != 2:
            return False
        (f1, e1), (f2, _) = lst
        x, y = self.faces_list[f1].edge(e1)
        c = self.opposite(f1, x, y)
        d = self.opposite(f2, x, y)
        if c == d or (min(c, d), max(c, d)) in self.edge2face:
            return False
        self._replace_face(f1, x, d, c)
        self._replace_face(f2, y, c, d)
        return True

    # ---------------- Тест «всередині» ----------------
    def contains(self, queries: Sequence[Pt]) -> np.ndarray:
        """
        Парність перетинів променя з поверхнею (Möller–Trumbore, numpy).
        Три фіксовані напрямки, рішення більшістю голосів. Повертає bool-масив.
        """
        P = as_array(self.points)
        tris = np.array([f.v for f in self.faces_list], dtype=int).reshape(-1, 3)
        v0, v1, v2 = P[tris[:, 0]], P[tris[:, 1]], P[tris[:, 2]]
        e1, e2 = v1 - v0, v2 - v0
        Q = as_array(queries)
        out = np.zeros(len(Q), dtype=bool)
        for qi, o in enumerate(Q):
            votes = 0
            for d in _RAY_DIRS:
                votes += _ray_hits(o, d, v0, e1, e2) % 2
            out[qi] = votes >= 2
        return out

    # ---------------- Внутрішні методи ----------------
    def _add_face(self, v0: int, v1: int, v2: int) -> int:
        """Створити грань і зареєструвати її ребра в edge2face."""
        fid = len(self.faces_list)
        self.faces_list.append(Face((v0, v1, v2)))
        self._register(fid)
        return fid

    def _replace_face(self, fid: int, v0: int, v1: int, v2: int) -> None:
        self._unregister(fid)
        self.faces_list[fid] = Face((v0, v1, v2))
        self._register(fid)

    def _register(self, fid: int) -> None:
        face = self.faces_list[fid]
        for ei in range(3):
            u, v = face.edge(ei)
            self.edge2face.setdefault((min(u, v), max(u, v)), []).append((fid, ei))

    def _unregister(self, fid: int) -> None:
        face = self.faces_list[fid]
        for ei in range(3):
            u, v = face.edge(ei)
            key = (min(u, v), max(u, v))
            lst = [(ff, ee) for (ff, ee) in self.edge2face.get(key, []) if ff != fid]
            if lst:
                self.edge2face[key] = lst
            else:
                self.edge2face.pop(key, None)


def _ray_hits(o: np.ndarray, d: np.ndarray, v0: np.ndarray, e1: np.ndarray, e2: np.ndarray,
              tiny: float = 1e-12) -> int:
    """Кількість трикутників, які перетинає промінь o + t·d, t > 0."""
    h = np.cross(d, e2)
    a = np.einsum("ij,ij->i", e1, h)
    ok = np.abs(a) > tiny
    f = np.zeros_like(a)
    f[ok] = 1.0 / a[ok]
    s = o - v0
    u = f * np.einsum("ij,ij->i", s, h)
    q = np.cross(s, e1)
    v = f * (q @ d)
    t = f * np.einsum("ij,ij->i", e2, q)
    hit = ok & (u >= 0.0) & (v >= 0.0) & (u + v <= 1.0) & (t > tiny)
    return int(np.count_nonzero(hit))


def edge_split_point(surface: SurfaceMesh, u: int, v: int) -> Pt:
    """
    Точка розбиття ребра: відстань від вихідної (оригінальної) вершини - степінь двійки,
    найближча до середини ребра. Повторні розбиття тоді не «дрібнять» ребро без кінця.
    """
    if u >= surface.n_original and v < surface.n_original:
        u, v = v, u
    p1, p2 = surface.points[u], surface.points[v]
    length = dist(p1, p2)
    mid = scale(add(p1, p2), 0.5)
    direction = scale(sub(p2, p1), 1.0 / length)
    k1 = floor(log2(0.5 * length))
    s1 = add(p1, scale(direction, 2.0 ** k1))
    s2 = add(p1, scale(direction, 2.0 ** (k1 + 1)))
    return s1 if dist(mid, s1) < dist(mid, s2) else s2


def conform_to_delaunay(surface: SurfaceMesh, flip_angle: float = 20.0, max_rounds: int = 50,
                        backend: str = "internal", seed: int = 0,
                        dup_tol: float = 1e-12) -> Tuple[SurfaceMesh, TetMesh]:
    """
    Робить поверхню «Делоне»: кожне її ребро і кожна грань - ребро/грань тетраедралізації.
    Раунд: Делоне для поточних точок; відсутні ребра - фліп (якщо грані майже компланарні
    і протилежна діагональ є ребром Делоне) або розбиття; коли всі ребра є - відсутні грані
    розбиваються в центроїді. Повертає (нова поверхня, її тетраедралізація).
    """
    surf = surface.copy()
    cos_min = cos(radians(flip_angle))
    flips = edge_splits = face_splits = 0
    for rnd in range(max_rounds + 1):
        mesh = tetrahedralize(surf.points, backend=backend, seed=seed, dup_tol=dup_tol)
        del_edges = mesh.edge_star()
        missing_edges = [e for e in surf.edge_keys() if e not in del_edges]
        missing_faces = [] if missing_edges else [k for k in surf.face_keys() if not mesh.has_face(k)]
        logger.debug("round %d: %d non-Delaunay edges, %d non-Delaunay faces",
                     rnd, len(missing_edges), len(missing_faces))
        if not missing_edges and not missing_faces:
            logger.info("conformed surface: %d vertices (%d added), %d faces; %d flip(s), %d edge split(s), %d face split(s)",
                        len(surf.points), len(surf.points) - surf.n_original, len(surf.faces_list),
                        flips, edge_splits, face_splits)
            return surf, mesh
        if rnd == max_rounds:
            break

        dirty: Set[int] = set()
        for (u, v) in missing_edges:
            lst = surf.edge2face.get((u, v), [])
            if not lst or any(fid in dirty for fid, _ in lst):
                continue
            if len(lst) == 2:
                c = surf.opposite(lst[0][0], u, v)
                d = surf.opposite(lst[1][0], u, v)
                diag = (min(c, d), max(c, d))
                if (surf.dihedral_cos(u, v) >= cos_min and diag in del_edges
                        and diag not in surf.edge2face and surf.flip_edge(u, v)):
                    dirty.update(fid for fid, _ in lst)
                    flips += 1
                    continue
            _, touched = surf.split_edge(u, v, edge_split_point(surf, u, v))
            dirty.update(touched)
            edge_splits += 1

        if not missing_edges:
            by_key = {f.key(): fid for fid, f in enumerate(surf.faces_list)}
            for key in missing_faces:
                fid = by_key[key]
                surf.split_face(fid, centroid(surf.points[i] for i in surf.faces_list[fid].v))
                face_splits += 1

    logger.warning("surface conformance stopped after %d round(s): %d flip(s), %d edge split(s), %d face split(s)",
                   max_rounds, flips, edge_splits, face_splits)
    return surf, mesh
