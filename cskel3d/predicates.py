# cskel3d/predicates.py
"""
Робастні предикати: orient3d / insphere.

Двоступенева схема: спершу float разом зі статичною оцінкою похибки (як у Shewchuk),
і лише коли |значення| <= оцінки - точне перерахування у fractions.Fraction.
Для точних вироджень insphere (кососферичні точки) - символьне збурення (insphere_sos).
"""
from __future__ import annotations
from fractions import Fraction
from functools import lru_cache
from typing import Tuple

from .geom import Pt

_EPSILON = 2.0 ** -53
_O3D_ERRBOUND = (7.0 + 56.0 * _EPSILON) * _EPSILON
_ISP_ERRBOUND = (16.0 + 224.0 * _EPSILON) * _EPSILON


@lru_cache(maxsize=None)
def _exact(p: Pt) -> Tuple[Fraction, Fraction, Fraction]:
    return Fraction(p.x), Fraction(p.y), Fraction(p.z)


def _sign(v) -> int:
    return (v > 0) - (v < 0)


def _lex(p: Pt) -> Tuple[float, float, float]:
    return (p.x, p.y, p.z)


def _det3(ux, uy, uz, vx, vy, vz, wx, wy, wz):
    return ux*(vy*wz - vz*wy) + uy*(vz*wx - vx*wz) + uz*(vx*wy - vy*wx)


def _perm3(ux, uy, uz, vx, vy, vz, wx, wy, wz) -> float:
    return (abs(ux)*(abs(vy*wz) + abs(vz*wy))
            + abs(uy)*(abs(vz*wx) + abs(vx*wz))
            + abs(uz)*(abs(vx*wy) + abs(vy*wx)))


# ---------- orient3d ----------
def _orient3d_exact(a: Pt, b: Pt, c: Pt, d: Pt) -> Fraction:
    ax, ay, az = _exact(a)
    bx, by, bz = _exact(b)
    cx, cy, cz = _exact(c)
    dx, dy, dz = _exact(d)
    return _det3(bx - ax, by - ay, bz - az,
                 cx - ax, cy - ay, cz - az,
                 dx - ax, dy - ay, dz - az)


def orient3d(a: Pt, b: Pt, c: Pt, d: Pt) -> float:
    """
    ((b-a) × (c-a)) · (d-a): > 0 якщо d з боку нормалі площини (a,b,c).
    Знак точний; величина - float-наближення.
    """
    ux, uy, uz = b.x - a.x, b.y - a.y, b.z - a.z
    vx, vy, vz = c.x - a.x, c.y - a.y, c.z - a.z
    wx, wy, wz = d.x - a.x, d.y - a.y, d.z - a.z
    det = _det3(ux, uy, uz, vx, vy, vz, wx, wy, wz)
    bound = _O3D_ERRBOUND * _perm3(ux, uy, uz, vx, vy, vz, wx, wy, wz)
    if det > bound or -det > bound:
        return det
    exact = _orient3d_exact(a, b, c, d)
    if exact == 0:
        return 0.0
    val = float(exact)
    if val == 0.0:  # underflow: зберігаємо знак
        return _sign(exact) * 5e-324
    return val


def orientation(a: Pt, b: Pt, c: Pt, d: Pt) -> int:
    """Знак orient3d: -1, 0, 1."""
    return _sign(orient3d(a, b, c, d))


def collinear(a: Pt, b: Pt, c: Pt) -> bool:
    """Точна перевірка колінеарності: (b-a) × (c-a) == 0."""
    ax, ay, az = _exact(a)
    bx, by, bz = _exact(b)
    cx, cy, cz = _exact(c)
    ux, uy, uz = bx - ax, by - ay, bz - az
    vx, vy, vz = cx - ax, cy - ay, cz - az
    return (uy*vz - uz*vy) == 0 and (uz*vx - ux*vz) == 0 and (ux*vy - uy*vx) == 0


# ---------- insphere ----------
def _lifted_det(rows):
    """
    4x4 детермінант рядків [x y z lift], розклад по стовпцю lift.
    Повертає (det, permanent).
    """
    (ax, ay, az, al), (bx, by, bz, bl), (cx, cy, cz, cl), (dx, dy, dz, dl) = rows
    ma = _det3(bx, by, bz, cx, cy, cz, dx, dy, dz)
    mb = _det3(ax, ay, az, cx, cy, cz, dx, dy, dz)
    mc = _det3(ax, ay, az, bx, by, bz, dx, dy, dz)
    md = _det3(ax, ay, az, bx, by, bz, cx, cy, cz)
    det = -al*ma + bl*mb - cl*mc + dl*md
    return det, (ma, mb, mc, md)


def _insphere_det_float(a: Pt, b: Pt, c: Pt, d: Pt, e: Pt) -> Tuple[float, float]:
    rows = []
    perm_rows = []
    for p in (a, b, c, d):
        x, y, z = p.x - e.x, p.y - e.y, p.z - e.z
        rows.append((x, y, z, x*x + y*y + z*z))
        perm_rows.append((abs(x), abs(y), abs(z)))
    det, _ = _lifted_det(rows)
    (ax, ay, az), (bx, by, bz), (cx, cy, cz), (dx, dy, dz) = perm_rows
    permanent = (rows[0][3] * _perm3(bx, by, bz, cx, cy, cz, dx, dy, dz)
                 + rows[1][3] * _perm3(ax, ay, az, cx, cy, cz, dx, dy, dz)
                 + rows[2][3] * _perm3(ax, ay, az, bx, by, bz, dx, dy, dz)
                 + rows[3][3] * _perm3(ax, ay, az, bx, by, bz, cx, cy, cz))
    return det, _ISP_ERRBOUND * permanent


def _insphere_det_exact(a: Pt, b: Pt, c: Pt, d: Pt, e: Pt) -> Fraction:
    ex, ey, ez = _exact(e)
    rows = []
    for p in (a, b, c, d):
        px, py, pz = _exact(p)
        x, y, z = px - ex, py - ey, pz - ez
        rows.append((x, y, z, x*x + y*y + z*z))
    det, _ = _lifted_det(rows)
    return det


def insphere(a: Pt, b: Pt, c: Pt, d: Pt, e: Pt) -> float:
    """
    Знак тесту «чи всередині сфери, що проходить через a,b,c,d, лежить e?».
    Повертає:
      >0  якщо e всередині circumsphere(a,b,c,d),
      <0  якщо зовні,
       0  якщо на сфері (точно) або (a,b,c,d) пласка.
    Від орієнтації (a,b,c,d) не залежить.
    """
    ori = orientation(a, b, c, d)
    if ori == 0:
        return 0.0
    det, bound = _insphere_det_float(a, b, c, d, e)
    if not (det > bound or -det > bound):
        exact = _insphere_det_exact(a, b, c, d, e)
        if exact == 0:
            return 0.0
        det = float(exact)
        if det == 0.0:
            det = _sign(exact) * 5e-324
    # при додатній орієнтації det < 0 означає «всередині»
    return -det if ori > 0 else det


def insphere_sos(a: Pt, b: Pt, c: Pt, d: Pt, e: Pt) -> int:
    """
    insphere із символьним збуренням: ніколи не повертає 0.
    Точки впорядковані лексикографічно за (x, y, z); більша точка має більше
    збурення «висоти» на параболоїді. Порядок вставки на відповідь не впливає.
    """
    s = _sign(insphere(a, b, c, d, e))
    if s != 0:
        return s
    tet = [a, b, c, d]
    ori = orientation(a, b, c, d)
    if ori == 0:
        raise ValueError("insphere_sos: flat tetrahedron")
    if ori < 0:
        tet[0], tet[1] = tet[1], tet[0]
    five = tet + [e]
    for i in sorted(range(5), key=lambda k: _lex(five[k]), reverse=True):
        if i == 4:
            return -1  # найбільше збурення у самої e - вона зовні
        q = list(tet)
        q[i] = e
        o = orientation(q[0], q[1], q[2], q[3])
        if o != 0:
            return o
    return -1
