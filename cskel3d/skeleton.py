# cskel3d/skeleton.py
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple
import copy
import logging

from .classify import Classification
from .geom import Pt
from .mesh import EdgeKey, FaceKey, TetMesh
from .surface import SurfaceMesh

logger = logging.getLogger(__name__)


@dataclass
class Sheet:
    """Зв'язна множина альвеол (граней Вороного, дуальних внутрішнім ребрам Делоне)."""
    id: int
    order: int
    alveolae: List[EdgeKey] = field(default_factory=list)
    curves: Set[int] = field(default_factory=set)
    saliency: float = 0.0


@dataclass
class Curve:
    """
    Ланцюг ребер Вороного. triangles[i] з'єднує тетри nodes[i] і nodes[i+1]
    (для замкненого ланцюга nodes[0] == nodes[-1]).
    """
    id: int
    order: int
    triangles: List[FaceKey] = field(default_factory=list)
    nodes: List[int] = field(default_factory=list)
    sheets: Set[int] = field(default_factory=set)
    junctions: Set[int] = field(default_factory=set)
    saliency: float = 0.0


@dataclass
class Junction:
    id: int
    order: int
    tet: int
    curves: Set[int] = field(default_factory=set)
    saliency: float = 0.0


@dataclass
class SkeletonComplex:
    """
    Листи, криві, вузли і геометрія, на яку вони посилаються:
      centers/radii - центри і радіуси описаних сфер внутрішніх тетр;
      rings - альвеола (ребро Делоне) -> впорядковане кільце тетр;
      edges - трикутник кривої -> пара його тетр;
      poles - точка поверхні -> внутрішній полюс (tid).
    """
    points: List[Pt]
    centers: Dict[int, Pt] = field(default_factory=dict)
    radii: Dict[int, float] = field(default_factory=dict)
    rings: Dict[EdgeKey, List[int]] = field(default_factory=dict)
    edges: Dict[FaceKey, Tuple[int, int]] = field(default_factory=dict)
    sheets: Dict[int, Sheet] = field(default_factory=dict)
    curves: Dict[int, Curve] = field(default_factory=dict)
    junctions: Dict[int, Junction] = field(default_factory=dict)
    poles: Dict[int, int] = field(default_factory=dict)

    def copy(self) -> "SkeletonComplex":
        return copy.deepcopy(self)

    def counts(self) -> Dict[str, int]:
        return {"sheets": len(self.sheets), "curves": len(self.curves), "junctions": len(self.junctions)}

    def is_empty(self) -> bool:
        return not (self.sheets or self.curves or self.junctions)

    def sheet_polygons(self, sid: int) -> List[List[Pt]]:
        """Полігони альвеол листа (центри описаних сфер по кільцю)."""
        return [[self.centers[t] for t in self.rings[e]] for e in self.sheets[sid].alveolae]

    def curve_polyline(self, cid: int) -> List[Pt]:
        return [self.centers[t] for t in self.curves[cid].nodes]

    def junction_point(self, jid: int) -> Pt:
        return self.centers[self.junctions[jid].tet]

    def signature(self) -> dict:
        """Структура без saliency - для порівняння комплексів."""
        return {
            "sheets": {s.id: sorted(s.alveolae) for s in self.sheets.values()},
            "curves": {c.id: sorted(c.triangles) for c in self.curves.values()},
            "junctions": {j.id: (j.tet, sorted(j.curves)) for j in self.junctions.values()},
        }


class _UnionFind:
    def __init__(self, items):
        self.parent = {x: x for x in items}

    def find(self, x):
        root = x
        while self.parent[root] != root:
            root = self.parent[root]
        while self.parent[x] != root:
            self.parent[x], x = root, self.parent[x]
        return root

    def union(self, a, b) -> bool:
        ra, rb = self.find(a), self.find(b)
        if ra == rb:
            return False
        # менший корінь стає коренем, щоб результат не залежав від порядку
        if rb < ra:
            ra, rb = rb, ra
        self.parent[rb] = ra
        return True


def _tri_edges(key: FaceKey) -> List[EdgeKey]:
    a, b, c = key
    return [(a, b), (a, c), (b, c)]


def _chain_curves(edges: Dict[FaceKey, Tuple[int, int]], ckey) -> List[Tuple[List[FaceKey], List[int]]]:
    """
    Розбиває граф «тетра - трикутник кривої» на ланцюги.
    Ланцюг рветься на тетрах зі степенем 1 або >= 3; цикли без таких тетр - окремі криві.
    """
    incident: Dict[int, List[FaceKey]] = {}
    for key in sorted(edges):
        for tid in edges[key]:
            incident.setdefault(tid, []).append(key)

    def other(key: FaceKey, tid: int) -> int:
        t0, t1 = edges[key]
        return t1 if t0 == tid else t0

    visited: Set[FaceKey] = set()
    chains: List[Tuple[List[FaceKey], List[int]]] = []

    def walk(start: int, first: FaceKey) -> Tuple[List[FaceKey], List[int]]:
        tris, nodes = [first], [start]
        visited.add(first)
        cur = other(first, start)
        nodes.append(cur)
        while len(incident[cur]) == 2 and cur != start:
            nxt = next((k for k in incident[cur] if k not in visited), None)
            if nxt is None:
                break
            visited.add(nxt)
            tris.append(nxt)
            cur = other(nxt, cur)
            nodes.append(cur)
        return tris, nodes

    for tid in sorted(incident, key=ckey):
        if len(incident[tid]) == 2:
            continue
        for key in incident[tid]:
            if key not in visited:
                chains.append(walk(tid, key))
    # залишок - замкнені цикли
    for key in sorted(edges):
        if key not in visited:
            start = min(edges[key], key=ckey)
            chains.append(walk(start, key))
    return chains


def extract_skeleton(mesh: TetMesh, classification: Classification, surface: SurfaceMesh) -> SkeletonComplex:
    """
    Сирий скелет внутрішньої частини тетраедралізації:
      1) альвеоли: не-поверхневі ребра із замкненим кільцем (>= 3) внутрішніх тетр;
      2) внутрішній трикутник степеня 2 склеює дві альвеоли в один лист;
         степеня 3 (сингулярний) поглинається, доки його альвеоли охоплюють < 3 різних листи;
      3) криві - лише сингулярні трикутники, що лишились (зустріч >= 3 листів); ланцюги через тетри
         степеня 2. Трикутники степеня 0 і 1 лежать усередині листа або на його краю і кривих не дають;
      4) вузол - тетра, якої торкаються >= 3 різні криві.
    """
    interior = set(classification.interior_tets())
    surf_edges = set(surface.edge_keys())
    surf_faces = set(surface.face_keys())

    def ckey(tid: int) -> Tuple[int, ...]:
        return tuple(sorted(mesh.tets[tid].v))

    skel = SkeletonComplex(points=list(mesh.points))
    for tid in sorted(interior):
        skel.centers[tid] = mesh.tets[tid].center
        skel.radii[tid] = mesh.tets[tid].radius

    # 1) альвеоли
    star = mesh.edge_star()
    for e in sorted(star):
        tets = star[e]
        if e in surf_edges or len(tets) < 3 or any(t not in interior for t in tets):
            continue
        ring, closed = mesh.edge_ring(e[0], e[1], start=min(tets, key=ckey))
        if closed and len(ring) >= 3:
            skel.rings[e] = ring

    # 2) внутрішні трикутники і їхній степінь
    regular: List[Tuple[FaceKey, List[EdgeKey]]] = []
    singular: List[Tuple[FaceKey, List[EdgeKey]]] = []
    for key, lst in mesh.faces():
        if key in surf_faces or len(lst) != 2:
            continue
        t0, t1 = lst[0][0], lst[1][0]
        if t0 not in interior or t1 not in interior:
            continue
        alv = [e for e in _tri_edges(key) if e in skel.rings]
        if len(alv) == 2:
            regular.append((key, alv))
        elif len(alv) == 3:
            singular.append((key, alv))
        skel.edges[key] = tuple(sorted((t0, t1), key=ckey))

    uf = _UnionFind(skel.rings)
    for _, (e1, e2) in regular:
        uf.union(e1, e2)
    changed = True
    while changed:
        changed = False
        rest = []
        for key, alv in singular:
            if len({uf.find(e) for e in alv}) < 3:
                for e in alv[1:]:
                    uf.union(alv[0], e)
                changed = True
            else:
                rest.append((key, alv))
        singular = rest

    groups: Dict[EdgeKey, List[EdgeKey]] = {}
    for e in sorted(skel.rings):
        groups.setdefault(uf.find(e), []).append(e)
    order = 0
    sheet_of: Dict[EdgeKey, int] = {}
    for sid, members in enumerate(sorted(groups.values())):
        skel.sheets[sid] = Sheet(id=sid, order=order, alveolae=members)
        order += 1
        for e in members:
            sheet_of[e] = sid

    # 3) криві
    curve_tris = {key for key, _ in singular}
    skel.edges = {k: v for k, v in skel.edges.items() if k in curve_tris}
    chains = _chain_curves(skel.edges, ckey)
    chains.sort(key=lambda ch: min(ch[0]))
    curve_of: Dict[FaceKey, int] = {}
    for cid, (tris, nodes) in enumerate(chains):
        c = Curve(id=cid, order=order, triangles=tris, nodes=nodes)
        order += 1
        for key in tris:
            curve_of[key] = cid
            for e in _tri_edges(key):
                if e in sheet_of:
                    c.sheets.add(sheet_of[e])
        for sid in c.sheets:
            skel.sheets[sid].curves.add(cid)
        skel.curves[cid] = c

    # 4) вузли
    touching: Dict[int, Set[int]] = {}
    for key, (t0, t1) in skel.edges.items():
        touching.setdefault(t0, set()).add(curve_of[key])
        touching.setdefault(t1, set()).add(curve_of[key])
    jtets = sorted((tid for tid, cs in touching.items() if len(cs) >= 3), key=ckey)
    for jid, tid in enumerate(jtets):
        j = Junction(id=jid, order=order, tet=tid, curves=set(touching[tid]))
        order += 1
        for cid in j.curves:
            skel.curves[cid].junctions.add(jid)
        skel.junctions[jid] = j

    skel.poles = mesh.poles(sorted(interior, key=ckey))
    logger.info("raw skeleton: %d sheet(s) from %d alveolae, %d curve(s), %d junction(s)",
                len(skel.sheets), len(skel.rings), len(skel.curves), len(skel.junctions))
    return skel
