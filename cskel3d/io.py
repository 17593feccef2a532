# cskel3d/io.py
"""Читання/запис сіток (OBJ, OFF) і файлів скелета."""
from __future__ import annotations
from pathlib import Path
from typing import Dict, List, Sequence, Tuple
import logging
import random

from .errors import MeshFormatError
from .geom import Pt
from .skeleton import SkeletonComplex

logger = logging.getLogger(__name__)

Mesh = Tuple[List[Pt], List[Tuple[int, int, int]]]


# ---------- читання ----------
def _floats(path: str, lineno: int, tokens: Sequence[str], n: int) -> List[float]:
    if len(tokens) < n:
        raise MeshFormatError(path, lineno, f"expected {n} coordinates, got {len(tokens)}")
    try:
        return [float(t) for t in tokens[:n]]
    except ValueError:
        raise MeshFormatError(path, lineno, f"bad number in {' '.join(tokens)!r}") from None


def _fan(poly: List[int]) -> List[Tuple[int, int, int]]:
    """Полігон -> трикутники віялом від першої вершини."""
    return [(poly[0], poly[i], poly[i + 1]) for i in range(1, len(poly) - 1)]


def read_obj(path: str) -> Mesh:
    """
    Вершини `v x y z` і грані `f a b c ...` (a, a/t, a/t/n, a//n; від'ємні індекси - від кінця).
    Полігони розбиваються на трикутники віялом, решта записів ігнорується.
    """
    pts: List[Pt] = []
    faces: List[Tuple[int, int, int]] = []
    with open(path, "r", encoding="utf-8") as f:
        for lineno, line in enumerate(f, start=1):
            tokens = line.split()
            if not tokens or tokens[0].startswith("#"):
                continue
            if tokens[0] == "v":
                pts.append(Pt(*_floats(path, lineno, tokens[1:], 3)))
            elif tokens[0] == "f":
                if len(tokens) < 4:
                    raise MeshFormatError(path, lineno, "face needs at least 3 vertices")
                poly = []
                for tok in tokens[1:]:
                    try:
                        idx = int(tok.split("/")[0])
                    except ValueError:
                        raise MeshFormatError(path, lineno, f"bad vertex reference {tok!r}") from None
                    idx = idx - 1 if idx > 0 else len(pts) + idx
                    if not 0 <= idx < len(pts):
                        raise MeshFormatError(path, lineno, f"vertex reference {tok!r} out of range")
                    poly.append(idx)
                faces.extend(_fan(poly))
    return pts, faces


def read_off(path: str) -> Mesh:
    with open(path, "r", encoding="utf-8") as f:
        rows = []
        for lineno, line in enumerate(f, start=1):
            body = line.split("#", 1)[0].split()
            if body:
                rows.append((lineno, body))
    if not rows:
        raise MeshFormatError(path, 1, "empty file")
    lineno, head = rows[0]
    if head[0] != "OFF":
        raise MeshFormatError(path, lineno, f"expected 'OFF' header, got {head[0]!r}")
    counts = head[1:]
    rest = rows[1:]
    if not counts:
        if not rest:
            raise MeshFormatError(path, lineno, "missing vertex/face counts")
        lineno, counts = rest[0]
        rest = rest[1:]
    try:
        nv, nf = int(counts[0]), int(counts[1])
    except (ValueError, IndexError):
        raise MeshFormatError(path, lineno, f"bad counts line {' '.join(counts)!r}") from None
    if len(rest) < nv + nf:
        raise MeshFormatError(path, rest[-1][0] if rest else lineno,
                              f"expected {nv} vertices and {nf} faces, file ends early")

    pts = [Pt(*_floats(path, ln, toks, 3)) for ln, toks in rest[:nv]]
    faces: List[Tuple[int, int, int]] = []
    for ln, toks in rest[nv:nv + nf]:
        try:
            k = int(toks[0])
            poly = [int(t) for t in toks[1:1 + k]]
        except ValueError:
            raise MeshFormatError(path, ln, f"bad face {' '.join(toks)!r}") from None
        if k < 3 or len(poly) != k:
            raise MeshFormatError(path, ln, f"face needs {max(k, 3)} vertex indices")
        for i in poly:
            if not 0 <= i < nv:
                raise MeshFormatError(path, ln, f"vertex index {i} out of range")
        faces.extend(_fan(poly))
    return pts, faces


def load_mesh(path: str) -> Mesh:
    """Формат за розширенням: .off - OFF, інакше OBJ."""
    if Path(path).suffix.lower() == ".off":
        pts, faces = read_off(path)
    else:
        pts, faces = read_obj(path)
    logger.info("loaded %s: %d vertices, %d triangles", path, len(pts), len(faces))
    return pts, faces


# ---------- запис сітки ----------
def write_obj(path: str, pts: Sequence[Pt], faces: Sequence[Sequence[int]]) -> None:
    lines = [f"v {p.x!r} {p.y!r} {p.z!r}" for p in pts]
    lines += [f"f {a + 1} {b + 1} {c + 1}" for (a, b, c) in faces]
    with open(path, "w", encoding="utf-8") as f:
        f.write("\n".join(lines) + "\n")


def write_off(path: str, pts: Sequence[Pt], faces: Sequence[Sequence[int]]) -> None:
    """OFF для трикутної поверхні; всі вершини зберігаються, щоб індекси не змінились."""
    lines = ["OFF", f"{len(pts)} {len(faces)} 0"]
    lines += [f"{p.x!r} {p.y!r} {p.z!r}" for p in pts]
    lines += [f"3 {a} {b} {c}" for (a, b, c) in faces]
    with open(path, "w", encoding="utf-8") as f:
        f.write("\n".join(lines) + "\n")


def save_mesh(path: str, pts: Sequence[Pt], faces: Sequence[Sequence[int]]) -> None:
    if Path(path).suffix.lower() == ".off":
        write_off(path, pts, faces)
    else:
        write_obj(path, pts, faces)


# ---------- запис скелета ----------
def alveola_triangles(ring: Sequence[int]) -> List[Tuple[int, int, int]]:
    """Трикутники «зигзагом» між двома половинами кільця альвеоли."""
    n = len(ring)
    tris = []
    for i in range(1, n >> 1):
        tris.append((ring[n - i], ring[i - 1], ring[i]))
        tris.append((ring[n - i - 1], ring[n - i], ring[i]))
    if n % 2 == 1:
        m = n >> 1
        tris.append((ring[m - 1], ring[m], ring[m + 1]))
    return tris


def sheet_color(sid: int) -> Tuple[float, float, float]:
    """Колір листа - детермінований від id."""
    rng = random.Random(sid)
    return tuple(rng.randint(0, 10) / 10.0 for _ in range(3))


def _vertex_table(skel: SkeletonComplex, tids) -> Tuple[List[str], Dict[int, int]]:
    lines, index = [], {}
    for tid in tids:
        if tid in index:
            continue
        c = skel.centers[tid]
        index[tid] = len(index) + 1
        lines.append(f"v {c.x!r} {c.y!r} {c.z!r}")
    return lines, index


def write_sheets_obj(path: str, skel: SkeletonComplex, mtl_name: str | None = None) -> None:
    sheets = [skel.sheets[sid] for sid in sorted(skel.sheets)]
    lines = [f"mtllib {mtl_name}"] if mtl_name else []
    vlines, index = _vertex_table(skel, (t for s in sheets for e in s.alveolae for t in skel.rings[e]))
    lines += vlines
    for s in sheets:
        lines.append(f"g sheet{s.id}")
        if mtl_name:
            lines.append(f"usemtl mtl_sheet{s.id}")
        for e in s.alveolae:
            for (a, b, c) in alveola_triangles(skel.rings[e]):
                lines.append(f"f {index[a]}// {index[b]}// {index[c]}//")
    with open(path, "w", encoding="utf-8") as f:
        f.write("\n".join(lines) + "\n")


def write_sheets_mtl(path: str, skel: SkeletonComplex) -> None:
    lines = []
    for sid in sorted(skel.sheets):
        r, g, b = sheet_color(sid)
        lines += [f"newmtl mtl_sheet{sid}", f"Kd {r} {g} {b}"]
    with open(path, "w", encoding="utf-8") as f:
        f.write("\n".join(lines) + "\n")


def write_curves_obj(path: str, skel: SkeletonComplex) -> None:
    """Криві - полілінії `l`, вузли - точки `p`."""
    curves = [skel.curves[cid] for cid in sorted(skel.curves)]
    junctions = [skel.junctions[jid] for jid in sorted(skel.junctions)]
    vlines, index = _vertex_table(skel, [t for c in curves for t in c.nodes] + [j.tet for j in junctions])
    lines = list(vlines)
    for c in curves:
        lines.append(f"g curve{c.id}")
        lines.append("l " + " ".join(str(index[t]) for t in c.nodes))
    if junctions:
        lines.append("g junctions")
        lines += [f"p {index[j.tet]}" for j in junctions]
    with open(path, "w", encoding="utf-8") as f:
        f.write("\n".join(lines) + "\n")


def write_poles_obj(path: str, skel: SkeletonComplex) -> None:
    lines = []
    for pi in sorted(skel.poles):
        c = skel.centers[skel.poles[pi]]
        lines.append(f"v {c.x!r} {c.y!r} {c.z!r}")
    with open(path, "w", encoding="utf-8") as f:
        f.write("\n".join(lines) + "\n")


def save_skeleton(skel: SkeletonComplex, outdir: str, sheets_name: str = "sheets.obj",
                  curves_name: str = "curves.obj", mtl: bool = True, poles: bool = False) -> List[str]:
    """Записує скелет у каталог outdir (створює його). Повертає список записаних файлів."""
    out = Path(outdir)
    out.mkdir(parents=True, exist_ok=True)
    written = []
    sheets_path = out / sheets_name
    mtl_name = None
    if mtl:
        mtl_name = sheets_path.with_suffix(".mtl").name
        write_sheets_mtl(str(out / mtl_name), skel)
        written.append(str(out / mtl_name))
    write_sheets_obj(str(sheets_path), skel, mtl_name)
    written.append(str(sheets_path))
    write_curves_obj(str(out / curves_name), skel)
    written.append(str(out / curves_name))
    if poles:
        write_poles_obj(str(out / "poles.obj"), skel)
        written.append(str(out / "poles.obj"))
    for p in written:
        logger.info("wrote %s", p)
    return written
