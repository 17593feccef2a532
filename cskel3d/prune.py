# cskel3d/prune.py
"""
Спрощення скелета за порогом epsilon.

Значущість (saliency) - висота «шапки» кулі, яку відтинає примітив:
  альвеола (a,b), куля радіуса r:    sin φ = |ab| / 2r,  h = r (1 - cos φ);
  елемент кривої (трикутник радіуса ρ): h = r - sqrt(r² - ρ²).
Лист/крива - максимум по елементах, вузол - максимум по своїх кривих.
Примітиви знімаються з купи від найменшої значущості; сусіди зливаються через «дірку».
"""
from __future__ import annotations
from dataclasses import dataclass
from math import isfinite, sqrt
import heapq
import logging

from .errors import InvalidParameter
from .geom import dist, triangle_circumradius
from .mesh import EdgeKey, FaceKey
from .skeleton import Curve, Junction, SkeletonComplex

logger = logging.getLogger(__name__)


def alveola_saliency(skel: SkeletonComplex, edge: EdgeKey) -> float:
    a, b = (skel.points[i] for i in edge)
    chord = dist(a, b)
    best = 0.0
    for tid in skel.rings[edge]:
        r = skel.radii[tid]
        if r <= 0.0:
            continue
        s = min(1.0, chord / (2.0 * r))
        best = max(best, r * (1.0 - sqrt(1.0 - s * s)))
    return best


def triangle_saliency(skel: SkeletonComplex, key: FaceKey) -> float:
    rho = triangle_circumradius(*(skel.points[i] for i in key))
    best = 0.0
    for tid in skel.edges[key]:
        r = skel.radii[tid]
        best = max(best, r - sqrt(max(0.0, r * r - rho * rho)))
    return best


def compute_saliency(skel: SkeletonComplex) -> None:
    for s in skel.sheets.values():
        s.saliency = max((alveola_saliency(skel, e) for e in s.alveolae), default=0.0)
    for c in skel.curves.values():
        c.saliency = max((triangle_saliency(skel, k) for k in c.triangles), default=0.0)
    for j in skel.junctions.values():
        j.saliency = max((skel.curves[c].saliency for c in j.curves), default=0.0)


@dataclass
class PruneStats:
    epsilon: float
    removed_sheets: int = 0
    removed_curves: int = 0
    removed_junctions: int = 0
    merged_sheets: int = 0
    merged_curves: int = 0


class _Pruner:
    def __init__(self, skel: SkeletonComplex, stats: PruneStats):
        self.skel = skel
        self.stats = stats
        self.heap: list = []
        self.version: dict = {}

    def push(self, kind: str, prim) -> None:
        ver = self.version.get((kind, prim.id), -1) + 1
        self.version[(kind, prim.id)] = ver
        heapq.heappush(self.heap, (prim.saliency, prim.order, kind, prim.id, ver))

    def pop_below(self, eps: float):
        while self.heap and self.heap[0][0] < eps:
            _, _, kind, pid, ver = heapq.heappop(self.heap)
            if self.version.get((kind, pid)) != ver:
                continue  # застарілий запис
            yield kind, pid

    # ---- злиття ----
    def merge_sheets(self, a: int, b: int) -> int:
        sk = self.skel
        if a == b:
            return a
        keep, gone = sorted((sk.sheets[a], sk.sheets[b]), key=lambda s: s.order)
        keep.alveolae = sorted(keep.alveolae + gone.alveolae)
        keep.saliency = max(keep.saliency, gone.saliency)
        for cid in gone.curves:
            c = sk.curves[cid]
            c.sheets.discard(gone.id)
            c.sheets.add(keep.id)
            keep.curves.add(cid)
        del sk.sheets[gone.id]
        self.version.pop(("sheet", gone.id), None)
        self.stats.merged_sheets += 1
        self.push("sheet", keep)
        return keep.id

    def merge_curves(self, a: int, b: int, tet: int) -> None:
        sk = self.skel
        keep, gone = sorted((sk.curves[a], sk.curves[b]), key=lambda c: c.order)
        keep.triangles = keep.triangles + gone.triangles
        keep.nodes = _join_nodes(keep.nodes, gone.nodes, tet)
        keep.saliency = max(keep.saliency, gone.saliency)
        for sid in gone.sheets:
            s = sk.sheets.get(sid)
            if s is None:
                continue
            s.curves.discard(gone.id)
            s.curves.add(keep.id)
            keep.sheets.add(sid)
        for jid in gone.junctions:
            j = sk.junctions[jid]
            j.curves.discard(gone.id)
            j.curves.add(keep.id)
            keep.junctions.add(jid)
        del sk.curves[gone.id]
        self.version.pop(("curve", gone.id), None)
        self.stats.merged_curves += 1
        self.push("curve", keep)

    # ---- видалення ----
    def remove_sheet(self, sid: int) -> None:
        sheet = self.skel.sheets.pop(sid)
        self.stats.removed_sheets += 1
        # спершу відв'язати всі криві: settle може злити їх між собою через вузол
        for cid in sheet.curves:
            c = self.skel.curves.get(cid)
            if c is not None:
                c.sheets.discard(sid)
        for cid in sorted(sheet.curves):
            c = self.skel.curves.get(cid)
            if c is not None:
                self.settle_curve(c)

    def settle_curve(self, c: Curve) -> None:
        """Крива між листами після зникнення одного з них."""
        if len(c.sheets) == 2:
            a, b = sorted(c.sheets)
            self.merge_sheets(a, b)
            self.dissolve_curve(c.id)
        elif len(c.sheets) == 1:
            self.dissolve_curve(c.id)

    def dissolve_curve(self, cid: int) -> None:
        c = self.skel.curves.pop(cid)
        self.version.pop(("curve", cid), None)
        self.stats.removed_curves += 1
        for sid in c.sheets:
            s = self.skel.sheets.get(sid)
            if s is not None:
                s.curves.discard(cid)
        for jid in sorted(c.junctions):
            j = self.skel.junctions.get(jid)
            if j is not None:
                j.curves.discard(cid)
                self.settle_junction(j)

    def remove_curve(self, cid: int) -> None:
        c = self.skel.curves[cid]
        sheets = sorted(c.sheets)
        for sid in sheets[1:]:
            sheets[0] = self.merge_sheets(sheets[0], sid)
        c.sheets = set(sheets[:1])
        self.dissolve_curve(cid)

    def settle_junction(self, j: Junction) -> None:
        if len(j.curves) >= 3:
            return
        self.remove_junction(j.id)
        if len(j.curves) == 2:
            a, b = sorted(j.curves)
            self.merge_curves(a, b, j.tet)

    def remove_junction(self, jid: int) -> None:
        j = self.skel.junctions.pop(jid)
        self.version.pop(("junction", jid), None)
        self.stats.removed_junctions += 1
        for cid in j.curves:
            c = self.skel.curves.get(cid)
            if c is not None:
                c.junctions.discard(jid)

    def run(self, eps: float) -> None:
        sk = self.skel
        for s in sk.sheets.values():
            self.push("sheet", s)
        for c in sk.curves.values():
            self.push("curve", c)
        for j in sk.junctions.values():
            self.push("junction", j)
        for kind, pid in self.pop_below(eps):
            if kind == "sheet" and pid in sk.sheets:
                self.remove_sheet(pid)
            elif kind == "curve" and pid in sk.curves:
                self.remove_curve(pid)
            elif kind == "junction" and pid in sk.junctions:
                self.remove_junction(pid)


def _join_nodes(first: list, second: list, tet: int) -> list:
    """Склеїти два ланцюги вузлів у спільній тетрі tet."""
    if first and first[0] == tet:
        first = first[::-1]
    if second and second[-1] == tet:
        second = second[::-1]
    if first and second and first[-1] == second[0]:
        return first + second[1:]
    return first + second


def prune(skel: SkeletonComplex, epsilon: float) -> PruneStats:
    """
    Спрощує скелет на місці: знімає примітиви із значущістю < epsilon і зливає сусідів.
    epsilon = 0 нічого не змінює; більший epsilon продовжує ту саму послідовність.
    """
    if not isinstance(epsilon, (int, float)) or not isfinite(epsilon) or epsilon < 0:
        raise InvalidParameter(f"epsilon: must be a finite number >= 0, got {epsilon!r}")
    compute_saliency(skel)
    stats = PruneStats(epsilon=float(epsilon))
    if epsilon > 0:
        _Pruner(skel, stats).run(float(epsilon))
    logger.info("pruned at epsilon=%g: %d sheet(s), %d curve(s), %d junction(s) left",
                epsilon, len(skel.sheets), len(skel.curves), len(skel.junctions))
    return stats
