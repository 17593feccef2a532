# cskel3d/plot.py
"""Статична 3D-картинка скелета (matplotlib)."""
from __future__ import annotations
from typing import Optional, Sequence

from matplotlib.figure import Figure
from mpl_toolkits.mplot3d.art3d import Poly3DCollection

from .geom import Pt
from .io import sheet_color
from .skeleton import SkeletonComplex


def _equal_axes(ax, pts: Sequence[Pt]) -> None:
    """Однакові масштаби по всіх осях."""
    if not pts:
        return
    xs = [p.x for p in pts]
    ys = [p.y for p in pts]
    zs = [p.z for p in pts]
    max_range = max(max(xs) - min(xs), max(ys) - min(ys), max(zs) - min(zs)) or 1.0
    mx = 0.5 * (min(xs) + max(xs))
    my = 0.5 * (min(ys) + max(ys))
    mz = 0.5 * (min(zs) + max(zs))
    ax.set_xlim(mx - max_range / 2, mx + max_range / 2)
    ax.set_ylim(my - max_range / 2, my + max_range / 2)
    ax.set_zlim(mz - max_range / 2, mz + max_range / 2)


def plot_skeleton(skel: SkeletonComplex, path: Optional[str] = None, surface=None,
                  title: str = "Sheet skeleton") -> Figure:
    """
    Листи - напівпрозорі полігони альвеол (колір як у MTL), криві - лінії, вузли - точки.
    surface (SurfaceMesh) - якщо задано, малюємо її ребра сірим.
    path - зберегти PNG.
    """
    fig = Figure(figsize=(7, 7))
    ax = fig.add_subplot(111, projection="3d")

    for sid in sorted(skel.sheets):
        polys = [[(p.x, p.y, p.z) for p in poly] for poly in skel.sheet_polygons(sid)]
        if polys:
            ax.add_collection3d(Poly3DCollection(polys, facecolor=sheet_color(sid), edgecolor="none", alpha=0.6))

    for cid in sorted(skel.curves):
        line = skel.curve_polyline(cid)
        ax.plot([p.x for p in line], [p.y for p in line], [p.z for p in line], color="black", linewidth=1.5)

    if skel.junctions:
        js = [skel.junction_point(jid) for jid in sorted(skel.junctions)]
        ax.scatter([p.x for p in js], [p.y for p in js], [p.z for p in js], color="red", s=20)

    if surface is not None:
        for (u, v) in surface.edge_keys():
            pa, pb = surface.points[u], surface.points[v]
            ax.plot([pa.x, pb.x], [pa.y, pb.y], [pa.z, pb.z], color="0.7", linewidth=0.3)

    used = [skel.centers[t] for s in skel.sheets.values() for e in s.alveolae for t in skel.rings[e]]
    used += [p for cid in skel.curves for p in skel.curve_polyline(cid)]
    _equal_axes(ax, used or (surface.points if surface is not None else []))

    ax.set_xlabel("X")
    ax.set_ylabel("Y")
    ax.set_zlabel("Z")
    ax.set_title(title)
    if path:
        fig.savefig(path, dpi=120)
    return fig
