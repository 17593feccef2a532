# cskel3d/mesh.py
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Sequence, Set, Tuple
import logging
import random

from .errors import DegenerateInput, DuplicatePoint
from .geom import Pt, add, bbox, bbox_diagonal, circumsphere, find_duplicate
from .geom import scale as scale_pt
from .predicates import orientation, insphere, insphere_sos, collinear

logger = logging.getLogger(__name__)

FaceKey = Tuple[int, int, int]  # грань як зростаюча трійка індексів
EdgeKey = Tuple[int, int]       # відсортована пара вершин ребра

_TET_EDGES = ((0, 1), (0, 2), (0, 3), (1, 2), (1, 3), (2, 3))
_SUPER_ATTEMPTS = 5


@dataclass
class Tet:
    """
    Комірка тетраедралізації. Локальна грань i лежить навпроти v[i];
    nbr[i] - тетра по той бік грані i (-1 на межі).
    center/radius - описана сфера (None для пласкої комірки).
    """
    v: Tuple[int, int, int, int]
    nbr: List[int] = field(default_factory=lambda: [-1, -1, -1, -1])
    alive: bool = True
    center: Optional[Pt] = None
    radius: float = 0.0

    def face_vertices(self, i: int) -> Tuple[int, int, int]:
        a, b, c, d = self.v
        if i == 0: return (b, c, d)
        if i == 1: return (a, c, d)
        if i == 2: return (a, b, d)
        return (a, b, c)

    def face_key(self, i: int) -> FaceKey:
        return tuple(sorted(self.face_vertices(i)))

    def edges(self) -> List[EdgeKey]:
        return [tuple(sorted((self.v[i], self.v[j]))) for i, j in _TET_EDGES]


class TetMesh:
    """
    Тетра-сітка на арені індексів. Видалені комірки лишаються у tets з alive=False,
    їхні слоти повторно займає add_tet. facemap: ключ грані -> [(tid, локальна грань)].
    """
    def __init__(self, points: List[Pt]):
        self.points: List[Pt] = list(points)
        self.tets: List[Tet] = []
        self.facemap: Dict[FaceKey, List[Tuple[int, int]]] = {}
        self._free: List[int] = []

    def add_tet(self, v0: int, v1: int, v2: int, v3: int) -> int:
        P = self.points
        t = Tet((v0, v1, v2, v3))
        if orientation(P[v0], P[v1], P[v2], P[v3]) < 0:
            # додатна орієнтація
            t.v = (v0, v2, v1, v3)
        sph = circumsphere(*(P[i] for i in t.v))
        if sph is not None:
            t.center, t.radius = sph
        if self._free:
            tid = self._free.pop()
            self.tets[tid] = t
        else:
            tid = len(self.tets)
            self.tets.append(t)
        for i in range(4):
            self.facemap.setdefault(t.face_key(i), []).append((tid, i))
        return tid

    def link(self, ta: int, fa: int, tb: int, fb: int) -> None:
        self.tets[ta].nbr[fa] = tb
        self.tets[tb].nbr[fb] = ta

    def remove_tet(self, tid: int) -> None:
        """Позначити тетру як мертву, прибрати її грані з facemap, слот - у free-list."""
        if tid < 0 or tid >= len(self.tets) or not self.tets[tid].alive:
            return
        t = self.tets[tid]
        t.alive = False
        for i in range(4):
            key = t.face_key(i)
            lst = [(tt, ff) for (tt, ff) in self.facemap.get(key, []) if tt != tid]
            if lst:
                self.facemap[key] = lst
            else:
                self.facemap.pop(key, None)
        self._free.append(tid)

    # ---------- корисні операції ----------
    def alive_tets(self) -> List[int]:
        return [i for i, t in enumerate(self.tets) if t.alive]

    def tet_count(self) -> int:
        return len(self.tets) - len(self._free)

    def circumcenter(self, tid: int) -> Pt:
        return self.tets[tid].center

    def circumradius(self, tid: int) -> float:
        return self.tets[tid].radius

    def faces(self) -> Iterator[Tuple[FaceKey, List[Tuple[int, int]]]]:
        """Вид на грані: (key, [(tid, local_face), ...]) - 1 інцидент на межі, 2 всередині."""
        for key in sorted(self.facemap):
            yield key, self.facemap[key]

    def face_tets(self, key: FaceKey) -> List[int]:
        return [tt for (tt, _) in self.facemap.get(key, [])]

    def has_face(self, key: FaceKey) -> bool:
        return key in self.facemap

    def extract_boundary_faces(self) -> List[Tuple[int, int, int]]:
        """Повертає всі граничні трикутники (face має рівно 1 інцидентний тет)."""
        return [key for key, lst in self.faces() if len(lst) == 1]

    def edge_star(self) -> Dict[EdgeKey, List[int]]:
        """ребро -> живі тетри, що його містять."""
        star: Dict[EdgeKey, List[int]] = {}
        for tid in self.alive_tets():
            for e in self.tets[tid].edges():
                star.setdefault(e, []).append(tid)
        return star

    def point_tets(self) -> Dict[int, List[int]]:
        out: Dict[int, List[int]] = {}
        for tid in self.alive_tets():
            for v in self.tets[tid].v:
                out.setdefault(v, []).append(tid)
        return out

    def edge_ring(self, a: int, b: int, start: Optional[int] = None) -> Tuple[List[int], bool]:
        """
        Впорядковане кільце тетр навколо ребра (a,b) - вершини діаграми Вороного,
        що обходять грань Вороного, дуальну ребру.
        Повертає (ring, closed). Для незамкненого кільця (ребро на оболонці) обидва кінці - межа.
        """
        if start is None:
            for tid in self.alive_tets():
                if a in self.tets[tid].v and b in self.tets[tid].v:
                    start = tid
                    break
            if start is None:
                raise KeyError(f"edge ({a}, {b}) not in mesh")
        c, d = [v for v in self.tets[start].v if v not in (a, b)]

        def walk(drop: int) -> Tuple[List[int], bool]:
            out: List[int] = []
            cur = start
            limit = len(self.tets) + 1
            while limit > 0:
                limit -= 1
                t = self.tets[cur]
                nxt = t.nbr[t.v.index(drop)]
                if nxt == -1:
                    return out, False
                if nxt == start:
                    return out, True
                keep = next(v for v in t.v if v not in (a, b, drop))
                out.append(nxt)
                cur, drop = nxt, keep
            raise RuntimeError(f"edge_ring({a}, {b}): broken adjacency")

        fwd, closed = walk(c)
        if closed:
            return [start] + fwd, True
        back, _ = walk(d)
        return list(reversed(back)) + [start] + fwd, False

    def poles(self, tets: Optional[Sequence[int]] = None) -> Dict[int, int]:
        """
        Полюс кожної точки: інцидентна тетра з найвіддаленішим центром описаної сфери.
        Відстань від вершини до центру = радіус, тож це тетра з максимальним радіусом.
        tets - обмежити пошук підмножиною (наприклад, внутрішніми тетрами).
        """
        if tets is None:
            tets = self.alive_tets()
        best: Dict[int, Tuple[float, Tuple[int, ...], int]] = {}
        for tid in tets:
            t = self.tets[tid]
            key = (t.radius, tuple(sorted(t.v)))
            for v in t.v:
                cur = best.get(v)
                if cur is None or key > cur[:2]:
                    best[v] = (key[0], key[1], tid)
        return {v: val[2] for v, val in best.items()}

    def canonical_tets(self) -> List[Tuple[int, int, int, int]]:
        """Відсортований список відсортованих четвірок - для порівняння тетраедралізацій."""
        return sorted(tuple(sorted(self.tets[tid].v)) for tid in self.alive_tets())

    def remove_tets_touching(self, verts: Set[int]) -> None:
        """Прибрати всі тетри, що мають будь-яку з вершин у множині verts (для видалення «супер-тетра»)."""
        for tid, t in enumerate(self.tets):
            if not t.alive: continue
            if any(v in verts for v in t.v):
                self.remove_tet(tid)
        # посилання на мертвих сусідів стають межею
        for t in self.tets:
            if not t.alive: continue
            for fi in range(4):
                nb = t.nbr[fi]
                if nb != -1 and not self.tets[nb].alive:
                    t.nbr[fi] = -1

    # ---------- locate ----------
    def locate(self, p: Pt, start_tid: Optional[int] = None) -> Optional[int]:
        """
        Знаходить тетру, що містить точку p (разом з межею), простим «walking».
        Повертає tid або None (поза сіткою або цикл на виродженнях).
        """
        # вибір старту
        cur = start_tid
        if cur is None or cur >= len(self.tets) or not self.tets[cur].alive:
            cur = None
            for i, t in enumerate(self.tets):
                if t.alive:
                    cur = i
                    break
        if cur is None:
            return None

        P = self.points
        visited = set()
        while cur not in visited:
            visited.add(cur)
            t = self.tets[cur]
            moved = False
            for fi in range(4):
                a, b, c = t.face_vertices(fi)
                # p строго по інший бік грані від протилежної вершини - переходимо до сусіда
                sign_opp = orientation(P[a], P[b], P[c], P[t.v[fi]])
                sign_p = orientation(P[a], P[b], P[c], p)
                if sign_opp * sign_p < 0:
                    nb = t.nbr[fi]
                    if nb == -1:
                        return None  # пішли назовні
                    cur = nb
                    moved = True
                    break
            if not moved:
                return cur
        return None

    # ---------- валідація сітки ----------
    def validate(self) -> dict:
        """Діагностика сітки: орієнтація, кратність граней (1 або 2), взаємність сусідів."""
        P = self.points
        alive_tets = self.alive_tets()
        bad_orientation: List[int] = []
        bad_face_multiplicity: List[Tuple[FaceKey, int]] = []
        bad_neighbors: List[Tuple[int, int, str]] = []

        for tid in alive_tets:
            a, b, c, d = self.tets[tid].v
            if orientation(P[a], P[b], P[c], P[d]) <= 0:
                bad_orientation.append(tid)

        for key, owners in self.faces():
            n_alive = sum(1 for tt, _ in owners if self.tets[tt].alive)
            if n_alive not in (1, 2):
                bad_face_multiplicity.append((key, n_alive))

        for tid in alive_tets:
            t = self.tets[tid]
            for fi in range(4):
                nb = t.nbr[fi]
                key = t.face_key(fi)
                if nb == -1:
                    if len(self.facemap.get(key, [])) != 1:
                        bad_neighbors.append((tid, fi, "boundary face shared"))
                    continue
                if nb >= len(self.tets) or not self.tets[nb].alive:
                    bad_neighbors.append((tid, fi, "dead neighbor"))
                    continue
                nb_t = self.tets[nb]
                found = any(nb_t.face_key(fj) == key and nb_t.nbr[fj] == tid for fj in range(4))
                if not found:
                    bad_neighbors.append((tid, fi, f"{nb} does not link back"))

        return {
            "tets_alive": len(alive_tets),
            "bad_orientation": bad_orientation,
            "bad_face_multiplicity": bad_face_multiplicity,
            "bad_neighbors": bad_neighbors,
        }

    def hull_is_convex(self) -> bool:
        """
        Межа сітки - опукла оболонка точок: кожне ребро межі спільне рівно для двох граней
        і локально опукле, а кожна точка є вершиною живої тетри.
        """
        P = self.points
        bfaces = [_outward_face(self.tets[lst[0][0]], lst[0][1]) for _, lst in self.faces() if len(lst) == 1]
        around: Dict[EdgeKey, List[Tuple[int, int, int]]] = {}
        for tri in bfaces:
            for i in range(3):
                u, v = tri[i], tri[(i + 1) % 3]
                around.setdefault((min(u, v), max(u, v)), []).append(tri)
        for (u, v), tris in around.items():
            if len(tris) != 2:
                return False
            a, b, c = tris[0]
            d = next(w for w in tris[1] if w != u and w != v)
            # внутрішні точки лежать з від'ємного боку зовнішньої грані
            if orientation(P[a], P[b], P[c], P[d]) > 0:
                return False
        used = {v for tid in self.alive_tets() for v in self.tets[tid].v}
        return len(used) == len(P)

    def is_valid(self) -> bool:
        report = self.validate()
        return not (report["bad_orientation"] or report["bad_face_multiplicity"] or report["bad_neighbors"])

    def delaunay_violations(self) -> List[Tuple[int, int]]:
        """
        Перевірка порожньої сфери «в лоб»: [(tid, point_idx), ...] для точок строго всередині.
        O(тетр × точок) - для тестів і діагностики.
        """
        P = self.points
        out: List[Tuple[int, int]] = []
        for tid in self.alive_tets():
            t = self.tets[tid]
            a, b, c, d = (P[i] for i in t.v)
            for pi, p in enumerate(P):
                if pi in t.v:
                    continue
                if insphere(a, b, c, d, p) > 0:
                    out.append((tid, pi))
        return out

    # ---------- експорт ----------
    def boundary_off(self) -> str:
        """OFF-текст межі сітки; грані орієнтовані назовні, невживані вершини відкинуто."""
        bfaces = []
        for key, lst in self.faces():
            if len(lst) == 1:
                tid, fi = lst[0]
                bfaces.append(_outward_face(self.tets[tid], fi))
        kept = sorted({v for tri in bfaces for v in tri})
        new_index = {vi: k for k, vi in enumerate(kept)}

        lines = ["OFF", f"{len(kept)} {len(bfaces)} 0"]
        lines += [f"{self.points[vi].x!r} {self.points[vi].y!r} {self.points[vi].z!r}" for vi in kept]
        lines += ["3 " + " ".join(str(new_index[v]) for v in tri) for tri in bfaces]
        return "\n".join(lines) + "\n"

    def write_boundary_off(self, path: str) -> None:
        with open(path, "w", encoding="utf-8") as f:
            f.write(self.boundary_off())

    def write_vtk_unstructured(self, path: str, cell_scalars: Optional[Dict[int, int]] = None,
                               scalar_name: str = "label") -> None:
        """Уся тетра-сітка у legacy VTK (для ParaView); cell_scalars - tid -> ціле значення."""
        tids = self.alive_tets()
        lines = ["# vtk DataFile Version 3.0", "cskel3d tetrahedralization", "ASCII",
                 "DATASET UNSTRUCTURED_GRID", f"POINTS {len(self.points)} double"]
        for p in self.points:
            lines.append(f"{p.x!r} {p.y!r} {p.z!r}")
        lines.append(f"CELLS {len(tids)} {5 * len(tids)}")
        for tid in tids:
            a, b, c, d = self.tets[tid].v
            lines.append(f"4 {a} {b} {c} {d}")
        lines.append(f"CELL_TYPES {len(tids)}")
        lines.extend("10" for _ in tids)
        if cell_scalars is not None:
            lines += [f"CELL_DATA {len(tids)}", f"SCALARS {scalar_name} int 1", "LOOKUP_TABLE default"]
            lines.extend(str(cell_scalars.get(tid, -1)) for tid in tids)
        with open(path, "w", encoding="utf-8") as f:
            f.write("\n".join(lines) + "\n")


def check_input(points: Sequence[Pt], dup_tol: float = 1e-12) -> None:
    """
    Перевірка вхідних точок перед Делоне:
      - менше 4 точок або всі копланарні -> DegenerateInput;
      - дві точки ближче ніж dup_tol * діагональ bbox -> DuplicatePoint.
    """
    if len(points) < 4:
        raise DegenerateInput(f"need at least 4 points, got {len(points)}")
    tol = dup_tol * bbox_diagonal(points)
    dup = find_duplicate(points, tol)
    if dup is not None:
        raise DuplicatePoint(dup[0], dup[1], tol)

    # перші 4 афінно-незалежні точки: p0, p1 != p0, p2 не на прямій, p3 не в площині
    p0, p1 = points[0], points[1]
    i2 = next((i for i in range(2, len(points)) if not collinear(p0, p1, points[i])), None)
    if i2 is None:
        raise DegenerateInput("all points are collinear")
    p2 = points[i2]
    if all(orientation(p0, p1, p2, points[i]) == 0 for i in range(len(points))):
        raise DegenerateInput("all points are coplanar")


class Delaunay3D:
    """
    Інкрементальна 3D Делоне з порожньою сферою (Bowyer–Watson).
    Предикати точні, виродження (кососферичні точки) розв'язує insphere_sos,
    тож результат не залежить від порядку вставки.
    """
    def __init__(self, points: List[Pt], seed: int = 0, scale: float = 1000.0):
        self.mesh = TetMesh(points)
        self.scale = scale
        self.n_input = len(points)
        self.super_verts: Tuple[int, int, int, int] | None = None
        self._seed_tid: Optional[int] = None  # останній знайдений, для locate-walk
        self._rng = random.Random(seed)

    # ---- супер-тетра ----
    def _build_super_tetra(self, scale: float = 1000.0) -> Tuple[int, int, int, int]:
        lo, hi = bbox(self.mesh.points)
        mid = scale_pt(add(lo, hi), 0.5)
        R = scale * (max(hi.x - lo.x, hi.y - lo.y, hi.z - lo.z) or 1.0)
        # вершини куба через одну: тетраедр, що накриває весь bbox
        n0 = len(self.mesh.points)
        for sx, sy, sz in ((-1, -1, -1), (1, 1, -1), (1, -1, 1), (-1, 1, 1)):
            self.mesh.points.append(Pt(mid.x + sx * R, mid.y + sy * R, mid.z + sz * R))
        self.super_verts = (n0, n0 + 1, n0 + 2, n0 + 3)
        self._seed_tid = self.mesh.add_tet(*self.super_verts)
        return self.super_verts

    def _in_conflict(self, tid: int, p: Pt) -> bool:
        P = self.mesh.points
        a, b, c, d = self.mesh.tets[tid].v
        return insphere_sos(P[a], P[b], P[c], P[d], p) > 0

    # ---- вставка однієї точки ----
    def insert(self, p_idx: int) -> None:
        mesh = self.mesh
        p = mesh.points[p_idx]
        # 1) locate
        tid = mesh.locate(p, self._seed_tid)
        if tid is None or not self._in_conflict(tid, p):
            # walk не дійшов (цикл на виродженні) - шукаємо будь-яку конфліктну тетру
            tid = next((i for i in mesh.alive_tets() if self._in_conflict(i, p)), None)
            if tid is None:
                raise RuntimeError(f"point {p_idx} is outside the super tetrahedron")

        # 2) знайти cavity: тетри, у яких p всередині circumsphere
        cavity: Set[int] = set()
        stack = [tid]
        while stack:
            cur = stack.pop()
            if cur in cavity: continue
            if not self._in_conflict(cur, p): continue
            cavity.add(cur)
            for nb in mesh.tets[cur].nbr:
                if nb != -1 and nb not in cavity:
                    stack.append(nb)

        # 3) зібрати boundary faces (грані cavity, з іншого боку яких тетра не в cavity)
        boundary_faces: List[Tuple[int, int, int]] = []
        for ct in sorted(cavity):
            t = mesh.tets[ct]
            for fi in range(4):
                nb = t.nbr[fi]
                if nb == -1 or nb not in cavity:
                    boundary_faces.append(t.face_vertices(fi))

        # 4) видалити cavity (позначити мертвими і почистити facemap)
        for ct in cavity:
            mesh.remove_tet(ct)

        # 5) пришити нові тетри (p_idx + кожна boundary face)
        new_tets: List[int] = []
        # тимчасова мапа для зшивки нових між собою: sorted(face_with_p) -> (tid, local_face_idx)
        stitch_map: Dict[FaceKey, Tuple[int, int]] = {}
        for (a, b, c) in boundary_faces:
            tid_new = mesh.add_tet(a, b, c, p_idx)
            new_tets.append(tid_new)

            # зв'язок із «зовнішнім» тетром по той бік грані (a,b,c); у новому тетрі це грань 3
            for (tt, ff) in mesh.facemap.get(tuple(sorted((a, b, c))), []):
                if tt != tid_new:
                    mesh.link(tid_new, 3, tt, ff)
                    break

            # зшивка нових між собою по гранях, що містять p
            for face in ((b, c, p_idx), (a, p_idx, c), (a, b, p_idx)):
                fkey = tuple(sorted(face))
                local = _local_face_index_for_vertices(mesh.tets[tid_new], face)
                prev = stitch_map.get(fkey)
                if prev is None:
                    stitch_map[fkey] = (tid_new, local)
                else:
                    other_tid, other_local = prev
                    mesh.link(tid_new, local, other_tid, other_local)

        # 6) оновити seed для локалізації наступної точки
        if new_tets:
            self._seed_tid = new_tets[0]

    def build(self, insert_order: Optional[List[int]] = None) -> None:
        """Побудувати Делоне-тетраедралізацію для поточних points (окрім супер-вершин)."""
        self._build_super_tetra(self.scale)
        if insert_order is None:
            verts = list(range(self.n_input))
            self._rng.shuffle(verts)
        else:
            verts = list(insert_order)
        for k, vi in enumerate(verts, start=1):
            self.insert(vi)
            if k % 1000 == 0:
                logger.debug("inserted %d/%d points", k, len(verts))

    def remove_super_tetra(self) -> None:
        """Прибрати усі тетри, що торкаються супер-вершин, і самі супер-вершини."""
        if not self.super_verts:
            return
        self.mesh.remove_tets_touching(set(self.super_verts))
        del self.mesh.points[self.n_input:]
        self.super_verts = None


def build_mesh_from_tets(pts: List[Pt], tets: Sequence[Sequence[int]]) -> TetMesh:
    """
    Збирає TetMesh з готових тетраедрів (індекси у pts).
    1) add_tet(...)
    2) за facemap відновлює сусідів.
    """
    mesh = TetMesh(pts)
    for (i0, i1, i2, i3) in tets:
        mesh.add_tet(int(i0), int(i1), int(i2), int(i3))
    for key, lst in mesh.facemap.items():
        if len(lst) == 2:
            (t1, f1), (t2, f2) = lst
            mesh.link(t1, f1, t2, f2)
    return mesh


# ---------- утиліти ----------
def _local_face_index_for_vertices(t: Tet, face: Tuple[int, int, int]) -> int:
    target = set(face)
    for i in range(4):
        if set(t.face_vertices(i)) == target:
            return i
    raise ValueError("face not found in tet")


def _outward_face(t: Tet, fi: int) -> Tuple[int, int, int]:
    """Грань fi з орієнтацією нормалі назовні тетри (позитивна тетра)."""
    a, b, c = t.face_vertices(fi)
    # для позитивної (v0,v1,v2,v3) грані 0 і 2 вже зовнішні, 1 і 3 - треба розвернути
    if fi in (1, 3):
        return (a, c, b)
    return (a, b, c)


def tetrahedralize(points: Sequence[Pt], backend: str = "internal", seed: int = 0,
                   dup_tol: float = 1e-12, insert_order: Optional[List[int]] = None) -> TetMesh:
    """
    Делоне-тетраедралізація точок:
      - backend="internal": наш Bowyer–Watson з точними предикатами;
      - backend="scipy": SciPy Delaunay (Qhull), далі та сама TetMesh.
    Індекси точок у результаті збігаються з вхідними.
    """
    pts = list(points)
    check_input(pts, dup_tol)

    if backend.lower() == "internal":
        # тетри, чия сфера накриває супер-вершину, губляться разом із нею; для пласких наборів
        # таких багато, тож супер-тетру збільшуємо, доки межа не стане опуклою оболонкою
        lo, hi = bbox(pts)
        ext = sorted((hi.x - lo.x, hi.y - lo.y, hi.z - lo.z))
        grow = max(1e3, ext[2] / ext[0]) if ext[0] > 0 else 1e3
        scale = 1000.0
        for _ in range(_SUPER_ATTEMPTS):
            dt = Delaunay3D(pts, seed=seed, scale=scale)
            dt.build(insert_order)
            dt.remove_super_tetra()
            mesh = dt.mesh
            if mesh.hull_is_convex():
                break
            logger.debug("super tetrahedron at scale %g cut the hull; retrying", scale)
            scale *= grow
        else:
            logger.warning("boundary is not the convex hull even at super tetrahedron scale %g", scale / grow)
    elif backend.lower() == "scipy":
        import numpy as np
        from scipy.spatial import Delaunay

        arr = np.array([(p.x, p.y, p.z) for p in pts], dtype=float)
        dela = Delaunay(arr, qhull_options="QJ")  # QJ = joggle для робастності
        mesh = build_mesh_from_tets(pts, [tuple(int(i) for i in s) for s in dela.simplices])
    else:
        raise ValueError(f"Невідомий backend: {backend}")

    logger.debug("Delaunay (%s): %d points, %d tets", backend, len(pts), mesh.tet_count())
    return mesh
