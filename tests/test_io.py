import pytest

from cskel3d.errors import MeshFormatError
from cskel3d.geom import Pt
from cskel3d.io import (alveola_triangles, load_mesh, read_obj, read_off, save_mesh, save_skeleton,
                        sheet_color)


def test_obj_faces_and_index_forms(tmp_path):
    path = tmp_path / "quad.obj"
    path.write_text(
        "# comment\n"
        "o thing\n"
        "v 0 0 0\nv 1 0 0\nv 1 1 0\nv 0 1 0\n"
        "vn 0 0 1\n"
        "f 1/1/1 2/2/1 3/3/1 4/4/1\n"
        "f -4//1 -2//1 -1//1\n"
    )
    pts, faces = read_obj(str(path))
    assert pts[2] == Pt(1.0, 1.0, 0.0)
    assert faces == [(0, 1, 2), (0, 2, 3), (0, 2, 3)]


@pytest.mark.parametrize("body, lineno, message", [
    ("v 0 0\n", 1, "expected 3 coordinates"),
    ("v 0 0 0\nv 1 x 0\n", 2, "bad number"),
    ("v 0 0 0\nv 1 0 0\nv 0 1 0\nf 1 2\n", 4, "at least 3"),
    ("v 0 0 0\nv 1 0 0\nv 0 1 0\nf 1 2 7\n", 4, "out of range"),
])
def test_obj_errors_name_file_and_line(tmp_path, body, lineno, message):
    path = tmp_path / "bad.obj"
    path.write_text(body)
    with pytest.raises(MeshFormatError, match=message) as info:
        read_obj(str(path))
    assert info.value.lineno == lineno
    assert str(info.value).startswith(f"{path}:{lineno}:")


def test_off(tmp_path, cube_surface):
    pts, faces = cube_surface
    path = tmp_path / "cube.off"
    save_mesh(str(path), pts, faces)
    assert path.read_text().startswith("OFF\n8 12 0\n")
    assert load_mesh(str(path)) == (pts, faces)

    obj = tmp_path / "cube.obj"
    save_mesh(str(obj), pts, faces)
    assert load_mesh(str(obj)) == (pts, faces)


@pytest.mark.parametrize("body, message", [
    ("", "empty file"),
    ("PLY\n", "expected 'OFF'"),
    ("OFF\n4 1 0\n0 0 0\n1 0 0\n", "ends early"),
    ("OFF\n3 1 0\n0 0 0\n1 0 0\n0 1 0\n3 0 1 5\n", "out of range"),
])
def test_off_errors(tmp_path, body, message):
    path = tmp_path / "bad.off"
    path.write_text(body)
    with pytest.raises(MeshFormatError, match=message):
        read_off(str(path))


def test_missing_file_is_os_error(tmp_path):
    with pytest.raises(OSError):
        load_mesh(str(tmp_path / "nope.obj"))


@pytest.mark.parametrize("n", [3, 4, 5, 6, 7])
def test_alveola_fan_covers_polygon(n):
    ring = list(range(10, 10 + n))
    tris = alveola_triangles(ring)
    assert len(tris) == n - 2
    assert {v for t in tris for v in t} == set(ring)


def test_sheet_colors_are_deterministic():
    assert sheet_color(3) == sheet_color(3)
    assert all(0.0 <= c <= 1.0 for c in sheet_color(42))


def test_save_skeleton(tmp_path, slab_result):
    skel = slab_result.skeleton
    out = tmp_path / "skel"
    written = save_skeleton(skel, str(out), poles=True)
    assert {p.split("/")[-1] for p in written} == {"sheets.obj", "sheets.mtl", "curves.obj", "poles.obj"}

    sheets = (out / "sheets.obj").read_text().splitlines()
    assert sheets[0] == "mtllib sheets.mtl"
    assert sum(1 for l in sheets if l.startswith("g sheet")) == len(skel.sheets)
    assert sum(1 for l in sheets if l.startswith("usemtl mtl_sheet")) == len(skel.sheets)
    n_faces = sum(len(skel.rings[e]) - 2 for s in skel.sheets.values() for e in s.alveolae)
    assert sum(1 for l in sheets if l.startswith("f ")) == n_faces

    mtl = (out / "sheets.mtl").read_text()
    assert mtl.count("newmtl") == len(skel.sheets)

    curves = (out / "curves.obj").read_text().splitlines()
    assert sum(1 for l in curves if l.startswith("l ")) == len(skel.curves)
    assert sum(1 for l in curves if l.startswith("p ")) == len(skel.junctions)

    poles = (out / "poles.obj").read_text().splitlines()
    assert len(poles) == len(skel.poles)


def test_save_skeleton_without_materials(tmp_path, slab_result):
    written = save_skeleton(slab_result.skeleton, str(tmp_path), sheets_name="s.obj",
                            curves_name="c.obj", mtl=False)
    assert len(written) == 2
    text = (tmp_path / "s.obj").read_text()
    assert "mtllib" not in text and "usemtl" not in text
