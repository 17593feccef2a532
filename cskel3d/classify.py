# cskel3d/classify.py
"""
Класифікація тетраедрів і граней Делоне відносно тіла, обмеженого поверхнею.

Основний шлях - «заливка» від опуклої оболонки: тетра з гранню оболонки отримує
INTERIOR, якщо ця грань належить поверхні, інакше EXTERIOR; мітка змінюється лише
при переході через грань поверхні. Там, де заливка суперечить сама собі (поверхня
«протікає»), рішення приймає тест парності променя.
"""
from __future__ import annotations
from collections import deque
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, List, Sequence, Set
import logging

from .errors import InvalidParameter, NonManifoldSurface
from .geom import Pt, centroid
from .mesh import FaceKey, TetMesh
from .surface import SurfaceMesh

logger = logging.getLogger(__name__)

PROBES = ("centroid", "circumcenter")


class Label(IntEnum):
    EXTERIOR = 0
    INTERIOR = 1
    ON_SURFACE = 2


@dataclass
class Classification:
    tets: Dict[int, Label] = field(default_factory=dict)
    faces: Dict[FaceKey, Label] = field(default_factory=dict)
    leaks: List[FaceKey] = field(default_factory=list)       # не-поверхневі грані між INTERIOR і EXTERIOR
    fallback: List[int] = field(default_factory=list)        # тетри, мічені тестом парності
    missing_faces: List[FaceKey] = field(default_factory=list)  # грані поверхні, яких немає в Делоне

    def interior_tets(self) -> List[int]:
        return sorted(t for t, lab in self.tets.items() if lab == Label.INTERIOR)

    def is_interior(self, tid: int) -> bool:
        return self.tets.get(tid) == Label.INTERIOR


def _flip(label: Label) -> Label:
    return Label.EXTERIOR if label == Label.INTERIOR else Label.INTERIOR


def probe_point(mesh: TetMesh, tid: int, probe: str = "centroid") -> Pt:
    t = mesh.tets[tid]
    if probe == "circumcenter" and t.center is not None:
        return t.center
    return centroid(mesh.points[i] for i in t.v)


def ray_parity_labels(mesh: TetMesh, surface: SurfaceMesh, tids: Sequence[int],
                      probe: str = "centroid") -> Dict[int, Label]:
    tids = list(tids)
    if not tids:
        return {}
    inside = surface.contains([probe_point(mesh, tid, probe) for tid in tids])
    return {tid: (Label.INTERIOR if ins else Label.EXTERIOR) for tid, ins in zip(tids, inside)}


def _flood_fill(mesh: TetMesh, surf_faces: Set[FaceKey]):
    """Заливка від оболонки. Повертає (мітки, множина граней-конфліктів)."""
    labels: Dict[int, Label] = {}
    conflicts: Set[FaceKey] = set()
    queue: deque = deque()

    for key, lst in mesh.faces():
        if len(lst) != 1:
            continue
        tid = lst[0][0]
        want = Label.INTERIOR if key in surf_faces else Label.EXTERIOR
        have = labels.get(tid)
        if have is None:
            labels[tid] = want
            queue.append(tid)
        elif have != want:
            conflicts.add(key)

    while queue:
        tid = queue.popleft()
        t = mesh.tets[tid]
        for fi in range(4):
            nb = t.nbr[fi]
            if nb == -1:
                continue
            key = t.face_key(fi)
            want = _flip(labels[tid]) if key in surf_faces else labels[tid]
            have = labels.get(nb)
            if have is None:
                labels[nb] = want
                queue.append(nb)
            elif have != want:
                conflicts.add(key)
    return labels, conflicts


def _leak_faces(mesh: TetMesh, labels: Dict[int, Label], surf_faces: Set[FaceKey]) -> List[FaceKey]:
    """Не-поверхневі грані між INTERIOR і EXTERIOR (або грані оболонки внутрішньої тетри)."""
    out = []
    for key, lst in mesh.faces():
        if key in surf_faces:
            continue
        tlabels = [labels[tid] for tid, _ in lst]
        if Label.INTERIOR in tlabels and (len(tlabels) == 1 or Label.EXTERIOR in tlabels):
            out.append(key)
    return out


def classify(mesh: TetMesh, surface: SurfaceMesh, strict: bool = False,
             probe: str = "centroid") -> Classification:
    """
    Мітки для всіх живих тетр і граней.
    Якщо частини граней поверхні немає серед граней Делоне або заливка суперечить собі,
    заливці не можна вірити: мітки всіх тетр дає тест парності. Тетри біля граней-«протікань»
    теж перемічаються парністю, доки з'являються нові.
    strict=True: незамкнена поверхня або суперечлива заливка -> NonManifoldSurface.
    """
    if probe not in PROBES:
        raise InvalidParameter(f"probe: expected one of {PROBES}, got {probe!r}")

    res = Classification()
    surf_faces = set(surface.face_keys())
    res.missing_faces = sorted(k for k in surf_faces if not mesh.has_face(k))
    if res.missing_faces:
        logger.warning("%d surface face(s) are not Delaunay faces, e.g. %s",
                       len(res.missing_faces), res.missing_faces[0])

    redo: Set[int] = set()
    if surface.is_closed_manifold():
        labels, conflicts = _flood_fill(mesh, surf_faces)
        if strict and (conflicts or res.missing_faces):
            bad = sorted(conflicts) or res.missing_faces
            raise NonManifoldSurface(f"flood fill is inconsistent at {len(bad)} face(s), e.g. {bad[0]}")
        if conflicts or res.missing_faces:
            logger.warning("surface leaks through %d face(s); relabeling all tetrahedra with ray parity",
                           len(conflicts) + len(res.missing_faces))
            redo.update(mesh.alive_tets())
        else:
            redo.update(tid for tid in mesh.alive_tets() if tid not in labels)
    else:
        if strict:
            surface.raise_if_not_manifold()
        logger.warning("surface is not a closed manifold; using ray parity for all tetrahedra")
        labels = {}
        redo.update(mesh.alive_tets())

    while redo:
        labels.update(ray_parity_labels(mesh, surface, sorted(redo), probe))
        res.fallback = sorted(set(res.fallback) | redo)
        redo = {tid for key in _leak_faces(mesh, labels, surf_faces)
                for tid in mesh.face_tets(key) if tid not in res.fallback}
    res.tets = dict(sorted(labels.items()))

    # мітки граней
    for key, lst in mesh.faces():
        if key in surf_faces:
            res.faces[key] = Label.ON_SURFACE
        elif all(res.tets[tid] == Label.INTERIOR for tid, _ in lst):
            res.faces[key] = Label.INTERIOR
        else:
            res.faces[key] = Label.EXTERIOR
    res.leaks = _leak_faces(mesh, res.tets, surf_faces)
    if res.leaks:
        logger.warning("%d non-surface face(s) separate interior from exterior, e.g. %s",
                       len(res.leaks), res.leaks[0])

    n_in = sum(1 for lab in res.tets.values() if lab == Label.INTERIOR)
    logger.info("classified %d tetrahedra: %d interior, %d exterior", len(res.tets), n_in, len(res.tets) - n_in)
    return res
